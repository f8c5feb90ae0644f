from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import String, Boolean, DateTime, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from spindecide.database import Base


class RoomStatus(str, Enum):
    GATHERING = "gathering"
    DECIDED = "decided"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(6), unique=True, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RoomStatus.GATHERING.value)
    # Set exactly when status becomes "decided"
    winner_option_id: Mapped[int | None] = mapped_column(
        ForeignKey("options.id", ondelete="SET NULL", use_alter=True, name="fk_rooms_winner_option"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    participants = relationship(
        "Participant", back_populates="room", cascade="all, delete-orphan", passive_deletes=True
    )
    options = relationship(
        "Option",
        back_populates="room",
        cascade="all, delete-orphan",
        passive_deletes=True,
        foreign_keys="Option.room_id",
    )

    __table_args__ = (Index("idx_rooms_created_at", "created_at"),)

    @property
    def is_decided(self) -> bool:
        return self.status == RoomStatus.DECIDED


class Participant(Base):
    __tablename__ = "participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[int] = mapped_column(ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    is_host: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_vetoed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    room = relationship("Room", back_populates="participants")

    __table_args__ = (
        UniqueConstraint("room_id", "name", name="uq_participants_room_name"),
        Index("idx_participants_room_id", "room_id"),
    )


class Option(Base):
    __tablename__ = "options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[int] = mapped_column(ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    participant_id: Mapped[int] = mapped_column(ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    text: Mapped[str] = mapped_column(String(100), nullable=False)
    is_vetoed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    vetoed_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("participants.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    room = relationship("Room", back_populates="options", foreign_keys=[room_id])

    __table_args__ = (
        Index("idx_options_room_id", "room_id"),
        Index("idx_options_participant_id", "participant_id"),
    )
