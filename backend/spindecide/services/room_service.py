import secrets
from dataclasses import dataclass
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from spindecide.models.room import Room, Participant, Option, RoomStatus
from spindecide.services.session_service import SessionService
from spindecide.config import settings
from spindecide.utils.security import generate_room_code
from spindecide.utils.validation import (
    Category,
    validate_category,
    validate_name,
    validate_option_text,
    validate_room_code,
)
from spindecide.utils.logging_config import room_logger
from spindecide.exceptions import (
    AlreadySpunException,
    AlreadyUsedVetoException,
    AlreadyVetoedException,
    CannotVetoOwnException,
    CodeGenerationFailedException,
    DuplicateNameException,
    InsufficientOptionsException,
    InvalidCategoryException,
    InvalidNameException,
    InvalidOptionTextException,
    InvalidRoomCodeException,
    NotHostException,
    OptionLimitReachedException,
    OptionNotFoundException,
    RoomLockedException,
    RoomNotFoundException,
)


@dataclass
class RoomCreated:
    room: Room
    host: Participant
    session_token: str


@dataclass
class RoomJoined:
    room: Room
    participant: Participant
    session_token: str


@dataclass
class RoomState:
    room: Room
    participants: list[Participant]
    options: list[Option]


@dataclass
class SpinResult:
    winner: Option
    winner_name: str
    winner_index: int
    # Non-vetoed options in creation order; winner == options[winner_index]
    options: list[Option]

    @property
    def total_options(self) -> int:
        return len(self.options)


class RoomService:
    """
    Room lifecycle and decision rules.

    Each public method is one transaction. Mutations lock the room row first,
    so concurrent calls against the same room run one after another and
    re-check their preconditions against committed data. Any exception rolls
    the whole transaction back.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    # ---------- helpers ----------

    async def _allocate_code(self, db: AsyncSession) -> str:
        attempts = settings.ROOM_CODE_MAX_ATTEMPTS
        for attempt in range(1, attempts + 1):
            candidate = generate_room_code()
            existing = await db.scalar(select(Room.id).where(Room.code == candidate))
            if existing is None:
                return candidate
            room_logger.warning(f"Room code collision (attempt {attempt}/{attempts})")
        raise CodeGenerationFailedException(attempts)

    async def _get_membership(
        self, db: AsyncSession, code: str, participant_id: int
    ) -> tuple[Room, Participant]:
        """Room and participant, locked; RoomNotFound if either is missing or unrelated."""
        result = await db.execute(
            select(Room, Participant)
            .join(Participant, Participant.room_id == Room.id)
            .where(Room.code == code, Participant.id == participant_id)
            .with_for_update()
        )
        row = result.first()
        if row is None:
            raise RoomNotFoundException("Room not found or access denied")
        return row[0], row[1]

    @staticmethod
    def _require_room_code(code: str) -> None:
        if not validate_room_code(code):
            raise InvalidRoomCodeException()

    # ---------- operations ----------

    async def create_room(self, category: str, host_name: str) -> RoomCreated:
        if not validate_category(category):
            raise InvalidCategoryException()
        name = validate_name(host_name)
        if not name.is_valid:
            raise InvalidNameException()

        async with self.session_factory.begin() as db:
            code = await self._allocate_code(db)
            room = Room(
                code=code,
                category=Category(category).value,
                status=RoomStatus.GATHERING.value,
            )
            db.add(room)
            await db.flush()

            host = Participant(room_id=room.id, name=name.trimmed, is_host=True, has_vetoed=False)
            db.add(host)
            await db.flush()

            token = await SessionService(db).create_session(host.id)

        room_logger.info(
            f"Room created: {room.code}",
            extra={"room_id": room.id, "category": room.category, "host_id": host.id},
        )
        return RoomCreated(room=room, host=host, session_token=token)

    async def join_room(self, code: str, name: str) -> RoomJoined:
        self._require_room_code(code)
        validated = validate_name(name)
        if not validated.is_valid:
            raise InvalidNameException()

        async with self.session_factory.begin() as db:
            room = await db.scalar(select(Room).where(Room.code == code).with_for_update())
            if room is None:
                raise RoomNotFoundException()

            # Names are unique per room, compared case-sensitively
            taken = await db.scalar(
                select(Participant.id).where(
                    Participant.room_id == room.id,
                    Participant.name == validated.trimmed,
                )
            )
            if taken is not None:
                raise DuplicateNameException()

            participant = Participant(
                room_id=room.id, name=validated.trimmed, is_host=False, has_vetoed=False
            )
            db.add(participant)
            await db.flush()

            token = await SessionService(db).create_session(participant.id)

        room_logger.info(
            f"Participant joined room {room.code}",
            extra={"room_id": room.id, "participant_id": participant.id, "room_status": room.status},
        )
        return RoomJoined(room=room, participant=participant, session_token=token)

    async def get_room_state(self, code: str) -> RoomState:
        self._require_room_code(code)

        async with self.session_factory() as db:
            room = await db.scalar(select(Room).where(Room.code == code))
            if room is None:
                raise RoomNotFoundException()

            participants = await db.scalars(
                select(Participant)
                .where(Participant.room_id == room.id)
                .order_by(Participant.created_at, Participant.id)
            )
            options = await db.scalars(
                select(Option)
                .where(Option.room_id == room.id)
                .order_by(Option.created_at, Option.id)
            )
            return RoomState(room=room, participants=list(participants), options=list(options))

    async def add_option(self, code: str, participant_id: int, text: str) -> Option:
        self._require_room_code(code)
        validated = validate_option_text(text)
        if not validated.is_valid:
            raise InvalidOptionTextException()

        async with self.session_factory.begin() as db:
            room, participant = await self._get_membership(db, code, participant_id)

            if room.status != RoomStatus.GATHERING:
                raise RoomLockedException("Room is no longer accepting options")

            limit = settings.MAX_OPTIONS_PER_PARTICIPANT
            count = await db.scalar(
                select(func.count(Option.id)).where(
                    Option.room_id == room.id,
                    Option.participant_id == participant.id,
                )
            )
            if count >= limit:
                raise OptionLimitReachedException(limit)

            option = Option(
                room_id=room.id,
                participant_id=participant.id,
                text=validated.trimmed,
                is_vetoed=False,
                vetoed_by_id=None,
            )
            db.add(option)
            await db.flush()

        room_logger.info(
            f"Option {option.id} added to room {code}",
            extra={"participant_id": participant_id, "option_count": count + 1},
        )
        return option

    async def veto_option(self, code: str, option_id: int, participant_id: int) -> Option:
        self._require_room_code(code)

        async with self.session_factory.begin() as db:
            room, participant = await self._get_membership(db, code, participant_id)

            if room.status != RoomStatus.GATHERING:
                raise RoomLockedException("Room is no longer accepting vetoes")

            option = await db.scalar(
                select(Option)
                .where(Option.id == option_id, Option.room_id == room.id)
                .with_for_update()
            )
            if option is None:
                raise OptionNotFoundException()
            if option.participant_id == participant.id:
                raise CannotVetoOwnException()
            if option.is_vetoed:
                raise AlreadyVetoedException()
            if participant.has_vetoed:
                raise AlreadyUsedVetoException()

            # Both flags commit together or not at all
            option.is_vetoed = True
            option.vetoed_by_id = participant.id
            participant.has_vetoed = True
            await db.flush()

        room_logger.info(
            f"Option {option.id} vetoed in room {code}",
            extra={"vetoed_by": participant_id},
        )
        return option

    async def spin(self, code: str, participant_id: int) -> SpinResult:
        self._require_room_code(code)

        async with self.session_factory.begin() as db:
            room, participant = await self._get_membership(db, code, participant_id)

            if not participant.is_host:
                raise NotHostException()
            if room.status != RoomStatus.GATHERING:
                raise AlreadySpunException()

            result = await db.scalars(
                select(Option)
                .where(Option.room_id == room.id, Option.is_vetoed.is_(False))
                .order_by(Option.created_at, Option.id)
            )
            candidates = list(result)

            minimum = settings.MIN_OPTIONS_TO_SPIN
            if len(candidates) < minimum:
                raise InsufficientOptionsException(minimum)

            # CSPRNG so the host can neither predict nor steer the outcome
            winner_index = secrets.randbelow(len(candidates))
            winner = candidates[winner_index]

            room.status = RoomStatus.DECIDED.value
            room.winner_option_id = winner.id
            await db.flush()

            winner_name = await db.scalar(
                select(Participant.name).where(Participant.id == winner.participant_id)
            )

        room_logger.info(
            f"Room {code} decided: option {winner.id} won",
            extra={"winner_index": winner_index, "total_options": len(candidates)},
        )
        return SpinResult(
            winner=winner,
            winner_name=winner_name or "Unknown",
            winner_index=winner_index,
            options=candidates,
        )
