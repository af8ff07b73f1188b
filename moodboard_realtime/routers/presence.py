"""Presence query endpoints.

Read-only view of what clients last reported through ``setPresence``,
for a "who's here" panel loaded before the socket catches up.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..schemas.presence import PresenceEntry, RoomPresenceResponse
from ..websocket.hub import RealtimeHub, get_hub

router = APIRouter(prefix="/api/rooms", tags=["presence"])


@router.get("/{room_id}/presence", response_model=RoomPresenceResponse)
async def get_room_presence(
    room_id: str,
    hub: Annotated[RealtimeHub, Depends(get_hub)],
    online_only: bool = Query(False, description="Only users last reported online"),
) -> RoomPresenceResponse:
    """
    Get the latest presence entries for a project room.

    Unknown rooms return an empty list.
    """
    entries = hub.tracker.presence_of(room_id, online_only=online_only)
    return RoomPresenceResponse(
        room_id=room_id,
        connections=hub.registry.room_count(room_id),
        users=[PresenceEntry.model_validate(entry) for entry in entries],
    )
