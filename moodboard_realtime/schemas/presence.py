"""Pydantic schemas for the presence query API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PresenceEntry(BaseModel):
    """Schema for one user's presence in a room."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str = Field(..., description="Client-reported user id")
    username: str = Field(..., description="Last reported display name")
    is_online: bool = Field(..., description="Last reported online status")
    last_seen: datetime = Field(..., description="Server time of the last report")


class RoomPresenceResponse(BaseModel):
    """Schema for the presence list of a project room."""

    room_id: str = Field(..., description="Project id of the room")
    connections: int = Field(..., description="Sessions currently joined on this worker")
    users: list[PresenceEntry] = Field(default_factory=list)
