from spindecide.schemas.room import (
    RoomCreate, RoomJoin, OptionCreate,
    RoomCreatedResponse, JoinResponse, MessageResponse,
    RoomResponse, ParticipantResponse, OptionResponse, RoomStateResponse,
    OptionCreatedResponse, SpinOption, SpinWinner, SpinResponse, RecentDecisionResponse,
)

__all__ = [
    "RoomCreate", "RoomJoin", "OptionCreate",
    "RoomCreatedResponse", "JoinResponse", "MessageResponse",
    "RoomResponse", "ParticipantResponse", "OptionResponse", "RoomStateResponse",
    "OptionCreatedResponse", "SpinOption", "SpinWinner", "SpinResponse", "RecentDecisionResponse",
]
