"""
Custom exception classes for SpinDecide.

Every expected failure of a room action has its own exception class and its
own ErrorCode, so callers can branch on the code instead of the message.
"""

from typing import Any, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Stable error codes returned in every error response"""

    # Validation (VAL_xxx)
    VALIDATION_ERROR = "VAL_001"
    INVALID_ROOM_CODE = "VAL_002"
    INVALID_NAME = "VAL_003"
    INVALID_OPTION_TEXT = "VAL_004"
    INVALID_CATEGORY = "VAL_005"

    # Authentication & Authorization (AUTH_xxx)
    NOT_AUTHENTICATED = "AUTH_001"
    INVALID_SESSION = "AUTH_002"
    NOT_HOST = "AUTH_003"

    # Room (ROOM_xxx)
    ROOM_NOT_FOUND = "ROOM_001"
    ROOM_LOCKED = "ROOM_002"
    ALREADY_SPUN = "ROOM_003"
    DUPLICATE_NAME = "ROOM_004"
    INSUFFICIENT_OPTIONS = "ROOM_005"
    CODE_GENERATION_FAILED = "ROOM_006"

    # Options & vetoes (OPT_xxx)
    OPTION_NOT_FOUND = "OPT_001"
    OPTION_LIMIT_REACHED = "OPT_002"
    CANNOT_VETO_OWN = "OPT_003"
    ALREADY_VETOED = "OPT_004"
    ALREADY_USED_VETO = "OPT_005"

    # General (GEN_xxx)
    INTERNAL_SERVER_ERROR = "GEN_001"
    SERVICE_UNAVAILABLE = "GEN_002"
    RATE_LIMIT_EXCEEDED = "GEN_003"


class AppException(Exception):
    """
    Base exception class for all application errors.

    Attributes:
        message: Human readable message shown to the client
        code: ErrorCode member identifying the failure kind
        status_code: HTTP status code
        details: Extra structured details (optional)
        headers: Extra response headers (optional)
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        result = {
            "error": self.code.value,
            "message": self.message,
            "status_code": self.status_code,
        }
        if self.details:
            result["details"] = self.details
        return result


# ==================== Validation Exceptions ====================

class ValidationException(AppException):
    """Malformed input; no state was touched"""

    def __init__(
        self,
        message: str = "Validation error",
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, 400, details)


class InvalidRoomCodeException(ValidationException):
    def __init__(self, message: str = "Invalid room code format"):
        super().__init__(message, ErrorCode.INVALID_ROOM_CODE, {"field": "code"})


class InvalidNameException(ValidationException):
    def __init__(self, message: str = "Name must be between 1 and 50 characters."):
        super().__init__(message, ErrorCode.INVALID_NAME, {"field": "name"})


class InvalidOptionTextException(ValidationException):
    def __init__(self, message: str = "Option text must be between 1 and 100 characters."):
        super().__init__(message, ErrorCode.INVALID_OPTION_TEXT, {"field": "text"})


class InvalidCategoryException(ValidationException):
    def __init__(self, message: str = "Invalid category. Must be eat, watch, or do."):
        super().__init__(message, ErrorCode.INVALID_CATEGORY, {"field": "category"})


# ==================== Authentication Exceptions ====================

class AuthenticationException(AppException):
    """Missing or unusable session credential"""

    def __init__(
        self,
        message: str = "Not authenticated",
        code: ErrorCode = ErrorCode.NOT_AUTHENTICATED,
    ):
        super().__init__(message, code, 401)


class NotAuthenticatedException(AuthenticationException):
    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, ErrorCode.NOT_AUTHENTICATED)


class InvalidSessionException(AuthenticationException):
    """Unknown or expired session token"""

    def __init__(self, message: str = "Invalid or expired session"):
        super().__init__(message, ErrorCode.INVALID_SESSION)


class NotHostException(AppException):
    """Only the room host may perform this action"""

    def __init__(self, message: str = "Only the host can spin the wheel"):
        super().__init__(message, ErrorCode.NOT_HOST, 403)


# ==================== Room Exceptions ====================

class RoomException(AppException):
    """A room precondition failed"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.ROOM_NOT_FOUND,
        status_code: int = 400,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, status_code, details)


class RoomNotFoundException(RoomException):
    """
    Room does not exist, or the caller is not one of its participants.
    Both cases share this exception so membership is never disclosed.
    """

    def __init__(self, message: str = "Room not found"):
        super().__init__(message, ErrorCode.ROOM_NOT_FOUND, 404)


class RoomLockedException(RoomException):
    def __init__(self, message: str = "Room is no longer accepting changes"):
        super().__init__(message, ErrorCode.ROOM_LOCKED)


class AlreadySpunException(RoomException):
    def __init__(self, message: str = "Room has already been spun"):
        super().__init__(message, ErrorCode.ALREADY_SPUN)


class DuplicateNameException(RoomException):
    def __init__(self, message: str = "This name is already taken"):
        super().__init__(message, ErrorCode.DUPLICATE_NAME, details={"field": "name"})


class InsufficientOptionsException(RoomException):
    def __init__(self, minimum: int = 2):
        super().__init__(
            f"Need at least {minimum} non-vetoed options to spin",
            ErrorCode.INSUFFICIENT_OPTIONS,
            details={"minimum": minimum},
        )


class CodeGenerationFailedException(RoomException):
    def __init__(self, attempts: int = 3):
        super().__init__(
            "Failed to generate unique room code. Please try again.",
            ErrorCode.CODE_GENERATION_FAILED,
            409,
            {"attempts": attempts},
        )


# ==================== Option Exceptions ====================

class OptionNotFoundException(RoomException):
    def __init__(self, message: str = "Option not found"):
        super().__init__(message, ErrorCode.OPTION_NOT_FOUND, 404)


class OptionLimitReachedException(RoomException):
    def __init__(self, limit: int = 3):
        super().__init__(
            f"You have already added {limit} options",
            ErrorCode.OPTION_LIMIT_REACHED,
            details={"limit": limit},
        )


class CannotVetoOwnException(RoomException):
    def __init__(self, message: str = "You cannot veto your own option"):
        super().__init__(message, ErrorCode.CANNOT_VETO_OWN)


class AlreadyVetoedException(RoomException):
    def __init__(self, message: str = "This option has already been vetoed"):
        super().__init__(message, ErrorCode.ALREADY_VETOED)


class AlreadyUsedVetoException(RoomException):
    def __init__(self, message: str = "You have already used your veto"):
        super().__init__(message, ErrorCode.ALREADY_USED_VETO)


# ==================== General Exceptions ====================

class RateLimitExceededException(AppException):
    """Caller exceeded the sliding-window limit for an action"""

    def __init__(self, limit: int, window: int, reset: int):
        super().__init__(
            "Too many requests. Please try again later.",
            ErrorCode.RATE_LIMIT_EXCEEDED,
            429,
            {"limit": limit, "window": window},
            headers={
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(reset),
                "Retry-After": str(window),
            },
        )
