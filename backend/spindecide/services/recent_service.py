from datetime import datetime
from dataclasses import dataclass
from sqlalchemy import select, func, distinct
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from spindecide.models.room import Room, Participant, Option, RoomStatus
from spindecide.config import settings


@dataclass
class RecentDecision:
    id: int
    code: str
    category: str
    created_at: datetime
    winner_text: str
    winner_participant: str
    participant_count: int


class RecentDecisionsService:
    """Read-only listing of the latest decided rooms"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_recent_decisions(self, limit: int | None = None) -> list[RecentDecision]:
        author = aliased(Participant)
        member = aliased(Participant)

        result = await self.db.execute(
            select(
                Room.id,
                Room.code,
                Room.category,
                Room.created_at,
                Option.text.label("winner_text"),
                author.name.label("winner_participant"),
                func.count(distinct(member.id)).label("participant_count"),
            )
            .join(Option, Room.winner_option_id == Option.id)
            .join(author, Option.participant_id == author.id)
            .join(member, member.room_id == Room.id)
            .where(Room.status == RoomStatus.DECIDED.value)
            .group_by(Room.id, Room.code, Room.category, Room.created_at, Option.text, author.name)
            .order_by(Room.created_at.desc(), Room.id.desc())
            .limit(limit or settings.RECENT_DECISIONS_LIMIT)
        )
        return [RecentDecision(**row) for row in result.mappings().all()]
