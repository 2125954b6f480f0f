# samvaad/api/routes/messages.py

from typing import List

from fastapi import APIRouter, HTTPException, status

from samvaad.core import state
from samvaad.core.errors import StoreUnavailable, ValidationError
from samvaad.models.models import Message, SendMessageRequest

router = APIRouter(tags=["Messages"])

# ============================================================================
# MESSAGE HISTORY & HTTP SEND
# ============================================================================

@router.get(
    "/messages/{room_id}",
    response_model=List[Message],
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def get_history(room_id: str):
    """
    Message history for a room, oldest first.

    A room nobody has written to returns an empty list.

    Raises:
        HTTPException: 503 if the message store cannot be reached
    """
    try:
        return await state.chat_service.history(room_id)
    except StoreUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.post(
    "/messages",
    response_model=Message,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def post_message(request: SendMessageRequest):
    """
    Send a message without a WebSocket.

    Goes through the same persist-then-broadcast path as "sendMessage", so
    members joined over WebSocket receive it as a "receiveMessage" frame.
    """
    try:
        return await state.chat_service.send(request)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
