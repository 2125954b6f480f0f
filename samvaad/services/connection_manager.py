# samvaad/services/connection_manager.py

from __future__ import annotations

from typing import Dict, List, Set
from fastapi import WebSocket

from samvaad.core.logging import get_logger

logger = get_logger(__name__)

# ============================================================================
# WEBSOCKET CONNECTION MANAGER (PRESENCE / ROOM REGISTRY)
# ============================================================================

class ConnectionManager:
    """
    Tracks live WebSocket connections and the rooms they have joined.

    Rooms are not created up front: a room exists in memory while at least
    one connection is joined to it and disappears with its last member.
    Its history lives in the message store under the same id.

    Data Structures:
        rooms: Maps room_id -> Set of WebSocket connections in that room
               Example: {"alice_bob": {websocket1, websocket2}}

        connection_rooms: Maps WebSocket -> Set of room_ids it has joined
                         Example: {websocket1: {"alice_bob", "alice_carol"}}

        connection_users: Maps WebSocket -> user_id of the caller

    Concurrency:
        All mutation happens on the event loop, so no locking is needed
        around these dicts.
    """

    def __init__(self) -> None:
        """Initialize connection manager with empty data structures."""
        # Map: room_id -> Set[WebSocket connections]
        self.rooms: Dict[str, Set[WebSocket]] = {}

        # Map: WebSocket -> Set[room_ids it's subscribed to]
        self.connection_rooms: Dict[WebSocket, Set[str]] = {}

        # Map: WebSocket -> user_id
        self.connection_users: Dict[WebSocket, str] = {}

    async def connect(self, websocket: WebSocket, user_id: str = "anonymous") -> None:
        """
        Accept a new WebSocket connection.

        Args:
            websocket: The WebSocket connection object
            user_id: Identity of the caller

        Note:
            The connection is not joined to any room. Clients send "join"
            for each room they want, and must do so again after a reconnect.
        """
        await websocket.accept()
        self.register(websocket, user_id)

    def register(self, websocket: WebSocket, user_id: str = "anonymous") -> None:
        """Start tracking an already-accepted connection."""
        self.connection_rooms[websocket] = set()
        self.connection_users[websocket] = user_id

        logger.info("✓ User %s connected. Total: %d", user_id, len(self.connection_rooms))

    def disconnect(self, websocket: WebSocket) -> None:
        """
        Forget a connection and release every room membership it held.

        Safe to call more than once for the same connection.
        """
        if websocket not in self.connection_rooms:
            return

        user_id = self.connection_users.get(websocket, "unknown")

        for room_id in self.connection_rooms[websocket]:
            self._discard_member(room_id, websocket)

        del self.connection_rooms[websocket]
        del self.connection_users[websocket]

        logger.info("✗ User %s disconnected. Total: %d", user_id, len(self.connection_rooms))

    def join_room(self, websocket: WebSocket, room_id: str) -> int:
        """
        Add a connection to a room's member set.

        Joining a room twice is a no-op. Joining from a connection that is
        not registered (already closed) is ignored.

        Returns:
            Current member count of the room
        """
        if websocket not in self.connection_rooms:
            return len(self.rooms.get(room_id, ()))

        self.rooms.setdefault(room_id, set()).add(websocket)
        self.connection_rooms[websocket].add(room_id)

        member_count = len(self.rooms[room_id])
        user_id = self.connection_users.get(websocket, "anonymous")
        logger.info("→ %s joined '%s' (%s members)", user_id, room_id, member_count)
        return member_count

    def leave_room(self, websocket: WebSocket, room_id: str) -> int:
        """
        Remove a connection from a room. No-op if it was not a member.

        Returns:
            Member count of the room after leaving
        """
        if websocket in self.connection_rooms and room_id in self.connection_rooms[websocket]:
            self.connection_rooms[websocket].discard(room_id)
            self._discard_member(room_id, websocket)

            user_id = self.connection_users.get(websocket, "anonymous")
            logger.info("← %s left '%s'", user_id, room_id)

        return len(self.rooms.get(room_id, ()))

    def members_of(self, room_id: str) -> Set[WebSocket]:
        """Point-in-time snapshot of a room's connections (may be empty)."""
        return set(self.rooms.get(room_id, ()))

    def users_in(self, room_id: str) -> List[str]:
        """User ids currently present in a room, sorted."""
        return sorted({self.connection_users.get(ws, "unknown") for ws in self.members_of(room_id)})

    def _discard_member(self, room_id: str, websocket: WebSocket) -> None:
        if room_id in self.rooms:
            self.rooms[room_id].discard(websocket)
            # Clean up empty rooms from memory
            if not self.rooms[room_id]:
                del self.rooms[room_id]

    async def broadcast_to_room(self, room_id: str, message: dict) -> int:
        """
        Send a message to every connection joined to a room, sender included.

        Connections are served one after another, so a connection always
        receives a room's messages in the order they were broadcast.

        Args:
            room_id: Target room
            message: Frame to send (JSON serialized)

        Returns:
            Number of connections the frame was delivered to

        Error Handling:
            If a send fails, the connection is treated as gone and removed
            from every room.
        """
        connections = self.members_of(room_id)
        if not connections:
            logger.info("[routing] Skipped broadcast: room=%s has 0 subscribers", room_id)
            return 0

        disconnected = set()
        delivered = 0

        logger.info("📨 Broadcasting to room %s: %d clients", room_id, len(connections))

        for connection in connections:
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as e:
                logger.error("Send error: %s", e)
                disconnected.add(connection)

        for conn in disconnected:
            self.disconnect(conn)

        return delivered

    def get_rooms_info(self) -> Dict[str, dict]:
        """
        Active rooms with their member counts.

        Used by the /metrics endpoint and for debugging.
        """
        return {
            room_id: {"member_count": len(connections), "members": self.users_in(room_id)}
            for room_id, connections in self.rooms.items()
        }
