from datetime import datetime, timedelta, timezone
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from spindecide.models.session import ParticipantSession
from spindecide.config import settings
from spindecide.utils.security import generate_session_token
from spindecide.utils.logging_config import session_logger


class SessionService:
    """
    Opaque bearer tokens mapped to participant ids.

    Expiry is fixed at issuance; there is no renewal. Works inside the
    caller's transaction and never commits on its own.
    """

    def __init__(self, db: AsyncSession, ttl: timedelta | None = None):
        self.db = db
        self.ttl = ttl or timedelta(hours=settings.SESSION_TTL_HOURS)

    async def create_session(self, participant_id: int) -> str:
        token = generate_session_token()
        session = ParticipantSession(
            token=token,
            participant_id=participant_id,
            expires_at=datetime.now(timezone.utc) + self.ttl,
        )
        self.db.add(session)
        await self.db.flush()
        session_logger.debug(f"Session issued for participant {participant_id}")
        return token

    async def verify_session(self, token: str) -> int | None:
        """Participant id for a live token; expired tokens count as unknown."""
        if not token:
            return None
        result = await self.db.execute(
            select(ParticipantSession.participant_id)
            .where(
                ParticipantSession.token == token,
                ParticipantSession.expires_at > datetime.now(timezone.utc),
            )
        )
        return result.scalar_one_or_none()

    async def delete_session(self, token: str) -> None:
        await self.db.execute(
            delete(ParticipantSession).where(ParticipantSession.token == token)
        )

    async def delete_expired(self) -> int:
        result = await self.db.execute(
            delete(ParticipantSession).where(
                ParticipantSession.expires_at <= datetime.now(timezone.utc)
            )
        )
        return result.rowcount or 0
