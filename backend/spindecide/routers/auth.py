"""
Session authentication.

A participant is identified by the opaque token in the session cookie;
this module resolves it to a participant id and lets a client drop it.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from spindecide.config import settings
from spindecide.database import get_session_factory
from spindecide.services.session_service import SessionService
from spindecide.utils.logging_config import session_logger
from spindecide.exceptions import InvalidSessionException, NotAuthenticatedException

router = APIRouter(prefix="/api/session", tags=["Session"])


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_HOURS * 3600,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


async def get_current_participant_id(
    request: Request,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> int:
    """
    Participant id behind the session cookie.

    Raises:
        NotAuthenticatedException: No session cookie
        InvalidSessionException: Unknown or expired token
    """
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        raise NotAuthenticatedException()

    # Short transaction of its own: must not hold locks while the action runs
    async with session_factory() as db:
        participant_id = await SessionService(db).verify_session(token)

    if participant_id is None:
        session_logger.info("Rejected invalid or expired session")
        raise InvalidSessionException()
    return participant_id


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Request,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
):
    """Delete the current session, if any, and clear the cookie. Idempotent."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        async with session_factory.begin() as db:
            await SessionService(db).delete_session(token)
        session_logger.info("Session deleted on logout")

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return response
