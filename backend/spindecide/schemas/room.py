from datetime import datetime
from pydantic import AliasChoices, BaseModel, Field


# ---------- requests ----------
# Lengths and formats are checked by the room service so that each failure
# gets its own error code; here we only require strings.

class RoomCreate(BaseModel):
    category: str
    host_name: str = Field(..., validation_alias=AliasChoices("hostName", "host_name"))


class RoomJoin(BaseModel):
    name: str


class OptionCreate(BaseModel):
    text: str


# ---------- responses ----------

class RoomCreatedResponse(BaseModel):
    code: str


class JoinResponse(BaseModel):
    success: bool = True


class MessageResponse(BaseModel):
    message: str


class RoomResponse(BaseModel):
    id: int
    code: str
    category: str
    status: str
    winner_option_id: int | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class ParticipantResponse(BaseModel):
    id: int
    room_id: int
    name: str
    is_host: bool
    has_vetoed: bool
    created_at: datetime

    class Config:
        from_attributes = True


class OptionResponse(BaseModel):
    id: int
    room_id: int
    participant_id: int
    text: str
    is_vetoed: bool
    vetoed_by_id: int | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class RoomStateResponse(BaseModel):
    room: RoomResponse
    participants: list[ParticipantResponse] = []
    options: list[OptionResponse] = []


class OptionCreatedResponse(BaseModel):
    option: OptionResponse
    message: str = "Option added successfully"


class SpinOption(BaseModel):
    id: int
    text: str
    participant_id: int

    class Config:
        from_attributes = True


class SpinWinner(SpinOption):
    participant_name: str


class SpinResponse(BaseModel):
    """Winner plus the ordered list the client animates over"""
    winner: SpinWinner
    winner_index: int = Field(..., serialization_alias="winnerIndex")
    total_options: int = Field(..., serialization_alias="totalOptions")
    all_options: list[SpinOption] = Field(..., serialization_alias="allOptions")
    message: str = "Spin complete!"


class RecentDecisionResponse(BaseModel):
    id: int
    code: str
    category: str
    created_at: datetime
    winner_text: str
    winner_participant: str
    participant_count: int

    class Config:
        from_attributes = True
