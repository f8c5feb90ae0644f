"""
Room endpoints: create, join, read state, add option, veto, spin.

Inputs are passed to RoomService as received; it validates them and raises
the specific AppException for each failed precondition.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from spindecide.database import get_session_factory
from spindecide.services.room_service import RoomService
from spindecide.schemas.room import (
    RoomCreate, RoomJoin, OptionCreate,
    RoomCreatedResponse, JoinResponse, MessageResponse,
    RoomResponse, ParticipantResponse, OptionResponse, RoomStateResponse,
    OptionCreatedResponse, SpinOption, SpinWinner, SpinResponse,
)
from spindecide.routers.auth import get_current_participant_id, set_session_cookie
from spindecide.utils.rate_limit import RateLimitAction, rate_limited

router = APIRouter(prefix="/api/rooms", tags=["Rooms"])


def get_room_service(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
) -> RoomService:
    return RoomService(session_factory)


@router.post(
    "",
    response_model=RoomCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limited(RateLimitAction.CREATE_ROOM))],
)
async def create_room(
    response: Response,
    room_data: RoomCreate,
    room_service: Annotated[RoomService, Depends(get_room_service)],
):
    """
    Create a room and its host; the host's session comes back as a cookie.

    Raises:
        InvalidCategoryException, InvalidNameException, CodeGenerationFailedException
    """
    created = await room_service.create_room(room_data.category, room_data.host_name)
    set_session_cookie(response, created.session_token)
    return RoomCreatedResponse(code=created.room.code)


@router.post(
    "/{code}/join",
    response_model=JoinResponse,
    dependencies=[Depends(rate_limited(RateLimitAction.JOIN_ROOM))],
)
async def join_room(
    response: Response,
    code: str,
    join_data: RoomJoin,
    room_service: Annotated[RoomService, Depends(get_room_service)],
):
    """
    Join as a regular participant. Decided rooms can still be joined (read-only).

    Raises:
        InvalidRoomCodeException, RoomNotFoundException, InvalidNameException, DuplicateNameException
    """
    joined = await room_service.join_room(code, join_data.name)
    set_session_cookie(response, joined.session_token)
    return JoinResponse(success=True)


@router.get("/{code}", response_model=RoomStateResponse)
async def get_room_state(
    code: str,
    room_service: Annotated[RoomService, Depends(get_room_service)],
):
    """Room, participants and options in creation order. Clients poll this."""
    state = await room_service.get_room_state(code)
    return RoomStateResponse(
        room=RoomResponse.model_validate(state.room),
        participants=[ParticipantResponse.model_validate(p) for p in state.participants],
        options=[OptionResponse.model_validate(o) for o in state.options],
    )


@router.post(
    "/{code}/options",
    response_model=OptionCreatedResponse,
    dependencies=[Depends(rate_limited(RateLimitAction.SUBMIT_OPTION))],
)
async def add_option(
    code: str,
    option_data: OptionCreate,
    participant_id: Annotated[int, Depends(get_current_participant_id)],
    room_service: Annotated[RoomService, Depends(get_room_service)],
):
    """
    Raises:
        RoomNotFoundException, RoomLockedException, InvalidOptionTextException, OptionLimitReachedException
    """
    option = await room_service.add_option(code, participant_id, option_data.text)
    return OptionCreatedResponse(option=OptionResponse.model_validate(option))


@router.post(
    "/{code}/options/{option_id}/veto",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limited(RateLimitAction.VETO))],
)
async def veto_option(
    code: str,
    option_id: int,
    participant_id: Annotated[int, Depends(get_current_participant_id)],
    room_service: Annotated[RoomService, Depends(get_room_service)],
):
    """
    Raises:
        RoomNotFoundException, RoomLockedException, OptionNotFoundException,
        CannotVetoOwnException, AlreadyVetoedException, AlreadyUsedVetoException
    """
    await room_service.veto_option(code, option_id, participant_id)
    return MessageResponse(message="Option vetoed successfully")


@router.post(
    "/{code}/spin",
    response_model=SpinResponse,
    dependencies=[Depends(rate_limited(RateLimitAction.SPIN))],
)
async def spin(
    code: str,
    participant_id: Annotated[int, Depends(get_current_participant_id)],
    room_service: Annotated[RoomService, Depends(get_room_service)],
):
    """
    Host only.

    Raises:
        RoomNotFoundException, NotHostException, AlreadySpunException, InsufficientOptionsException
    """
    result = await room_service.spin(code, participant_id)
    winner = result.winner
    return SpinResponse(
        winner=SpinWinner(
            id=winner.id,
            text=winner.text,
            participant_id=winner.participant_id,
            participant_name=result.winner_name,
        ),
        winner_index=result.winner_index,
        total_options=result.total_options,
        all_options=[SpinOption.model_validate(o) for o in result.options],
    )
