# samvaad/api/websocket.py

from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError as PayloadError

from samvaad.core import state
from samvaad.core.errors import AuthError, StoreUnavailable, ValidationError
from samvaad.core.logging import get_logger
from samvaad.models.models import SendMessageRequest
from samvaad.services.auth_service import user_id_from_token

logger = get_logger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = None, user_id: str = "anonymous"):
    """
    WebSocket endpoint for real-time one-to-one chat.

    Protocol:
    =========

    Client -> Server Actions:
    -------------------------
    Join Room:
        {"action": "join", "roomId": "alice_bob"}
        Response: {"type": "joined", "roomId": "alice_bob", "memberCount": 2}

    Leave Room:
        {"action": "leave", "roomId": "alice_bob"}
        Response: {"type": "left", "roomId": "alice_bob", "memberCount": 1}

    Send Message:
        {
            "action": "sendMessage",
            "data": {
                "roomId": "alice_bob",
                "senderId": "alice",
                "body": "hello",
                "timestamp": "2024-01-01T10:00:00Z",
                "clientId": "<random correlation key>"
            }
        }
        On failure (sender only):
            {"type": "sendFailed", "clientId": "...", "roomId": "...", "error": "..."}

    Server -> Client Messages:
    -------------------------
    Chat Message (every member of the room, sender included):
        {"type": "receiveMessage", "data": {"roomId", "senderId", "body",
                                            "timestamp", "id", "clientId"}}

    Error:
        {"type": "error", "message": "..."}

    Lifecycle:
    ==========
    1. Client connects with ?token=<jwt> (or ?user_id=<id> in development)
    2. Client sends "join" for each room it shows
    3. Client receives messages for joined rooms only
    4. On disconnect, it is removed from every room; a reconnecting client
       must join again
    """
    if token:
        try:
            user_id = user_id_from_token(token)
            authenticated = True
        except AuthError as e:
            logger.warning("Rejected WebSocket connection: %s", e)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
    else:
        authenticated = False

    await state.connection_manager.connect(websocket, user_id)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "message": "Invalid frame"})
                continue

            action = message.get("action")
            logger.debug("Websocket input: Action: %s, Message: %s", action, message)

            if action == "join":
                room_id = message.get("roomId")
                if room_id:
                    count = state.connection_manager.join_room(websocket, room_id)
                    await websocket.send_json({"type": "joined", "roomId": room_id, "memberCount": count})

            elif action == "leave":
                room_id = message.get("roomId")
                if room_id:
                    count = state.connection_manager.leave_room(websocket, room_id)
                    await websocket.send_json({"type": "left", "roomId": room_id, "memberCount": count})

            elif action == "sendMessage":
                await handle_send(websocket, message.get("data"), user_id if authenticated else None)

            else:
                await websocket.send_json({"type": "error", "message": f"Unknown action: {action}"})

    except WebSocketDisconnect:
        state.connection_manager.disconnect(websocket)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
        state.connection_manager.disconnect(websocket)


async def handle_send(websocket: WebSocket, data, sender_id: Optional[str]) -> None:
    """Persist and broadcast one sendMessage; report failures to the sender only."""
    data = data if isinstance(data, dict) else {}

    try:
        request = SendMessageRequest.model_validate(data)
    except PayloadError as e:
        await websocket.send_json(_send_failed(data, f"Invalid message: {e.errors()[0]['msg']}"))
        return

    try:
        await state.chat_service.send(request, sender_id=sender_id)
    except ValidationError as e:
        await websocket.send_json(_send_failed(data, str(e)))
    except StoreUnavailable as e:
        logger.error("Send failed for room %s: %s", request.room_id, e)
        await websocket.send_json(_send_failed(data, "Message failed to send"))


def _send_failed(data: dict, error: str) -> dict:
    frame = {"type": "sendFailed", "error": error}
    for key in ("clientId", "roomId"):
        if data.get(key):
            frame[key] = data[key]
    return frame
