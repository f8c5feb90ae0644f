from spindecide.models.room import Room, Participant, Option, RoomStatus
from spindecide.models.session import ParticipantSession

__all__ = ["Room", "Participant", "Option", "RoomStatus", "ParticipantSession"]
