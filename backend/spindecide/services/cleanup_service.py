"""
Retention cleanup.

Deletes rooms older than ROOM_RETENTION_HOURS (participants, options and
their sessions go with them through ON DELETE CASCADE) and sessions past
their expiry. Runs as a background loop inside the app, or once from the
command line:

    python -m spindecide.services.cleanup_service
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from spindecide.models.room import Room
from spindecide.services.session_service import SessionService
from spindecide.config import settings
from spindecide.utils.logging_config import cleanup_logger


@dataclass
class CleanupResult:
    rooms_deleted: int
    sessions_deleted: int


async def run_cleanup(
    session_factory: async_sessionmaker[AsyncSession],
    retention: timedelta | None = None,
) -> CleanupResult:
    retention = retention or timedelta(hours=settings.ROOM_RETENTION_HOURS)
    cutoff = datetime.now(timezone.utc) - retention

    async with session_factory.begin() as db:
        rooms = await db.execute(delete(Room).where(Room.created_at < cutoff))
        sessions_deleted = await SessionService(db).delete_expired()

    result = CleanupResult(rooms_deleted=rooms.rowcount or 0, sessions_deleted=sessions_deleted)
    cleanup_logger.info(
        f"Cleanup finished: {result.rooms_deleted} room(s), {result.sessions_deleted} session(s) deleted"
    )
    return result


async def cleanup_loop(session_factory: async_sessionmaker[AsyncSession], interval: int) -> None:
    """Run cleanup every `interval` seconds until cancelled."""
    while True:
        try:
            await run_cleanup(session_factory)
        except Exception as e:
            cleanup_logger.error(f"Error in cleanup task: {type(e).__name__}: {e}")

        await asyncio.sleep(interval)


async def main() -> None:
    from spindecide.database import async_session, close_db
    from spindecide.utils.logging_config import setup_logging

    setup_logging()
    try:
        await run_cleanup(async_session)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
