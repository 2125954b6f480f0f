# samvaad/api/routes/rooms.py

from fastapi import APIRouter, HTTPException, Query

from samvaad.core import state
from samvaad.core.rooms import derive_room_id
from samvaad.models.models import RoomPresence

router = APIRouter(prefix="/rooms", tags=["Rooms"])

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================
# Rooms are never stored. An id is a pure function of the two participants
# and presence is whatever the connection manager currently holds.

@router.get("/derive")
async def derive(a: str = Query(...), b: str = Query(...)):
    """
    Room id for a pair of participants.

    Clients can compute this themselves; the endpoint exists so every client
    uses the same rule.

    Raises:
        HTTPException: 400 if either id is blank
    """
    try:
        return {"roomId": derive_room_id(a, b)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{room_id}", response_model=RoomPresence, response_model_by_alias=True)
async def get_room(room_id: str):
    """Who is connected to a room right now (possibly nobody)."""
    members = state.connection_manager.users_in(room_id)
    return RoomPresence(
        room_id=room_id,
        member_count=len(state.connection_manager.members_of(room_id)),
        members=members,
    )
