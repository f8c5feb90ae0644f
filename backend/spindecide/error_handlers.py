"""
Centralized error handlers.

Every error leaves the API in the same shape:
{
    "success": false,
    "error": "ERROR_CODE",
    "message": "Message for the client",
    "details": {...},  // optional
    "status_code": 400
}
Expected failures (AppException) keep their specific code. Storage and
unexpected errors collapse to GEN_001 and never expose internals unless
DEBUG is on.
"""

from traceback import format_exception
from typing import Any, Union

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from spindecide.config import settings
from spindecide.exceptions import AppException, ErrorCode
from spindecide.utils.logging_config import get_logger

logger = get_logger("errors")

GENERIC_ERROR_MESSAGE = "Internal server error"


class ErrorResponse:
    @staticmethod
    def create(
        error_code: Union[ErrorCode, str],
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build the standard error body"""
        response: dict[str, Any] = {
            "success": False,
            "error": error_code.value if isinstance(error_code, ErrorCode) else error_code,
            "message": message,
            "status_code": status_code,
        }
        if details:
            response["details"] = details
        return response


def log_error(
    error: Exception,
    request: Request | None = None,
    level: str = "ERROR",
    with_traceback: bool = False,
) -> None:
    """
    Log an error with the request it happened on.

    Args:
        error: The exception
        request: FastAPI Request (optional)
        level: Loguru level name
        with_traceback: Attach the active traceback
    """
    where = ""
    if request is not None:
        client_host = request.client.host if request.client is not None else None
        where = f" on {request.method} {request.url.path} from {client_host}"

    code = f" [{error.code.value}]" if isinstance(error, AppException) else ""
    message = f"{type(error).__name__}{code}{where}"
    logger.opt(exception=error if with_traceback else None).log(level, message)


def _error_response(
    code: Union[ErrorCode, str],
    message: str,
    status_code: int,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse.create(code, message, status_code, details),
        headers=headers,
    )


def _internal_error_response(exc: Exception) -> JSONResponse:
    if settings.DEBUG:
        return _error_response(
            ErrorCode.INTERNAL_SERVER_ERROR,
            GENERIC_ERROR_MESSAGE,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"traceback": "".join(format_exception(type(exc), exc, exc.__traceback__))},
        )
    return _error_response(
        ErrorCode.INTERNAL_SERVER_ERROR,
        GENERIC_ERROR_MESSAGE,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the app; call once from main.py."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        level = "WARNING" if exc.status_code >= 500 or exc.status_code == 429 else "INFO"
        log_error(exc, request, level=level)
        return _error_response(
            exc.code,
            exc.message,
            exc.status_code,
            exc.details or None,
            exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        error_code_map = {
            400: ErrorCode.VALIDATION_ERROR,
            401: ErrorCode.NOT_AUTHENTICATED,
            422: ErrorCode.VALIDATION_ERROR,
            429: ErrorCode.RATE_LIMIT_EXCEEDED,
            503: ErrorCode.SERVICE_UNAVAILABLE,
        }
        error_code = error_code_map.get(exc.status_code, f"HTTP_{exc.status_code}")

        log_error(exc, request, level="INFO")
        return _error_response(
            error_code,
            str(exc.detail) if exc.detail else "HTTP error",
            exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"][1:])  # skip 'body' / 'path'
            errors.append({
                "field": field,
                "message": error["msg"],
                "type": error["type"],
            })

        log_error(exc, request, level="INFO")
        return _error_response(
            ErrorCode.VALIDATION_ERROR,
            "Invalid request",
            422,
            {"validation_errors": errors},
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        # The transaction has already been rolled back by the time we get here
        log_error(exc, request, level="ERROR", with_traceback=True)
        return _internal_error_response(exc)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log_error(exc, request, level="ERROR", with_traceback=True)
        return _internal_error_response(exc)
