# samvaad/client/session.py

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PayloadError

from samvaad.client.channel import DeliveryChannel, get_channel
from samvaad.core.config import settings
from samvaad.core.errors import ChannelUnavailable, HistoryFetchFailed, ValidationError
from samvaad.core.logging import get_logger
from samvaad.models.models import Message, WireModel

logger = get_logger(__name__)

LOADING_TEXT = "Loading messages..."
NO_MESSAGES_TEXT = "No messages yet. Start the conversation!"
HISTORY_ERROR_TEXT = "Could not load previous messages."
RECONNECTING_TEXT = "Disconnected, reconnecting..."
DISCONNECTED_TEXT = "Disconnected. Could not reach the chat server."
SEND_FAILED_TEXT = "Message failed to send."

# Echoes without a correlation key are matched to a pending local copy
# sent within this many seconds.
DEFAULT_MATCH_WINDOW = 5.0


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class ErrorCause(str, Enum):
    HISTORY = "history"
    CHANNEL = "channel"


class ChatEntry(WireModel):
    """A message as the view shows it, including optimistic local copies."""

    room_id: str
    sender_id: str
    body: str
    timestamp: datetime
    id: Optional[str] = None
    client_id: Optional[str] = None
    confirmed: bool = False
    failed: bool = False
    error: Optional[str] = None

    @classmethod
    def from_message(cls, message: Message) -> "ChatEntry":
        return cls(**message.model_dump(), confirmed=True)

    def send_payload(self) -> dict:
        return self.model_dump(
            mode="json",
            by_alias=True,
            include={"room_id", "sender_id", "body", "timestamp", "client_id"},
        )


class ChatSession:
    """
    Controller behind one chat view (one room, one user).

    Lifecycle:
        mount()    IDLE -> LOADING -> READY, or ERROR with the cause recorded
        send()     optimistic append + "sendMessage" (READY only)
        retry()    re-run mount() after an ERROR
        unmount()  leave the room; the shared channel stays open

    Reconciliation:
        Each send carries a random client_id that the server echoes back, so
        the echo replaces the optimistic entry exactly. Echoes without one
        fall back to matching sender, body and room within a time window.

    Results of a history fetch that completes after unmount() are dropped.
    """

    def __init__(
        self,
        room_id: str,
        user_id: str,
        channel: Optional[DeliveryChannel] = None,
        api_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        history_timeout: Optional[float] = None,
        match_window: float = DEFAULT_MATCH_WINDOW,
    ):
        self.room_id = room_id
        self.user_id = user_id
        self.channel = channel or get_channel(user_id=user_id)
        self.api_url = (api_url or settings.API_URL).rstrip("/")
        self.history_timeout = history_timeout or settings.HISTORY_TIMEOUT
        self.match_window = match_window
        self._http_client = http_client

        self.state = SessionState.IDLE
        self.error_cause: Optional[ErrorCause] = None
        self.error: Optional[str] = None
        self.reconnecting = False
        self.last_send_error: Optional[str] = None
        self.messages: List[ChatEntry] = []

        self._mounted = False
        self._generation = 0
        self._subscribed = False

    # ------------------------------------------------------------------
    # View-facing state
    # ------------------------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return self.state is SessionState.LOADING

    @property
    def status_message(self) -> Optional[str]:
        """The one line of status text the view should show, if any."""
        if self.state is SessionState.LOADING:
            return LOADING_TEXT
        if self.state is SessionState.ERROR:
            if self.error_cause is ErrorCause.HISTORY:
                return HISTORY_ERROR_TEXT
            return RECONNECTING_TEXT if self.reconnecting else DISCONNECTED_TEXT
        if self.last_send_error:
            return SEND_FAILED_TEXT
        if self.state is SessionState.READY and not self.messages:
            return NO_MESSAGES_TEXT
        return None

    def can_send(self, text: str) -> bool:
        """Whether the send control should be enabled for this input."""
        return bool(text and text.strip()) and self.state is SessionState.READY and self.channel.connected

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def mount(self) -> SessionState:
        self._mounted = True
        self._generation += 1
        generation = self._generation

        self.state = SessionState.LOADING
        self.error_cause = None
        self.error = None
        self.reconnecting = False

        try:
            history = await self.fetch_history()
        except HistoryFetchFailed as e:
            if generation == self._generation:
                logger.error("History fetch failed for %s: %s", self.room_id, e)
                self._fail(ErrorCause.HISTORY, str(e))
            return self.state

        if generation != self._generation:
            # Unmounted (or remounted) while the fetch was in flight
            return self.state

        self.messages = [ChatEntry.from_message(m) for m in history]
        self._subscribe()

        try:
            if not self.channel.connected:
                await self.channel.connect()
            await self.channel.emit("join", roomId=self.room_id)
        except ChannelUnavailable as e:
            logger.error("Could not join %s: %s", self.room_id, e)
            self._fail(ErrorCause.CHANNEL, str(e))
            return self.state

        self.state = SessionState.READY
        logger.info("Chat view ready for room %s (%d messages)", self.room_id, len(self.messages))
        return self.state

    async def retry(self) -> SessionState:
        """Manual retry after an error."""
        if self.state is not SessionState.ERROR:
            return self.state
        return await self.mount()

    async def unmount(self) -> None:
        """Leave the room and stop listening. The channel itself stays up."""
        self._mounted = False
        self._generation += 1

        if self.channel.connected:
            try:
                await self.channel.emit("leave", roomId=self.room_id)
            except ChannelUnavailable as e:
                # The server drops memberships of a closed connection anyway
                logger.debug("Leave for %s not sent: %s", self.room_id, e)

        self._unsubscribe()
        self.state = SessionState.IDLE

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def fetch_history(self) -> List[Message]:
        """
        GET /messages/<room_id>.

        Raises:
            HistoryFetchFailed: network error, timeout, non-2xx or bad payload
        """
        url = f"{self.api_url}/messages/{quote(self.room_id, safe='')}"
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, timeout=self.history_timeout)
            else:
                async with httpx.AsyncClient(timeout=self.history_timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
            return [Message.model_validate(item) for item in response.json()]
        except httpx.HTTPError as e:
            raise HistoryFetchFailed(f"Failed to fetch messages: {e}") from e
        except (ValueError, TypeError) as e:
            # ValueError also covers pydantic validation errors
            raise HistoryFetchFailed(f"Unexpected history payload: {e}") from e

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send(self, text: str) -> ChatEntry:
        """
        Append an optimistic entry and emit it.

        Raises:
            ValidationError: blank input (nothing is sent)
            ChannelUnavailable: not READY/connected, or the emit failed; in
                the latter case the entry stays in the list marked failed
        """
        if not text or not text.strip():
            raise ValidationError("Message body must not be empty")
        if self.state is not SessionState.READY or not self.channel.connected:
            raise ChannelUnavailable("Cannot send while disconnected")

        entry = ChatEntry(
            room_id=self.room_id,
            sender_id=self.user_id,
            body=text,
            timestamp=datetime.now(timezone.utc),
            client_id=uuid.uuid4().hex,
        )
        self.messages.append(entry)

        try:
            await self.channel.emit("sendMessage", data=entry.send_payload())
        except ChannelUnavailable as e:
            entry.failed = True
            entry.error = str(e)
            self.last_send_error = SEND_FAILED_TEXT
            raise

        self.last_send_error = None
        return entry

    # ------------------------------------------------------------------
    # Channel events
    # ------------------------------------------------------------------

    def _subscribe(self) -> None:
        if self._subscribed:
            return
        self.channel.on("receiveMessage", self._on_receive)
        self.channel.on("sendFailed", self._on_send_failed)
        self.channel.on("connect", self._on_connect)
        self.channel.on("disconnect", self._on_disconnect)
        self.channel.on("connect_error", self._on_connect_error)
        self._subscribed = True

    def _unsubscribe(self) -> None:
        if not self._subscribed:
            return
        self.channel.off("receiveMessage", self._on_receive)
        self.channel.off("sendFailed", self._on_send_failed)
        self.channel.off("connect", self._on_connect)
        self.channel.off("disconnect", self._on_disconnect)
        self.channel.off("connect_error", self._on_connect_error)
        self._subscribed = False

    def _on_receive(self, frame: Any) -> None:
        data = (frame or {}).get("data") or {}
        if data.get("roomId") != self.room_id:
            return
        try:
            message = Message.model_validate(data)
        except PayloadError as e:
            logger.warning("Dropping malformed message frame: %s", e)
            return
        self.reconcile(message)

    def reconcile(self, message: Message) -> ChatEntry:
        """Merge a server-confirmed message into the local list."""
        if message.id:
            for entry in self.messages:
                if entry.id == message.id:
                    return entry

        pending = self._find_pending(message)
        if pending is not None:
            pending.id = message.id
            pending.confirmed = True
            pending.failed = False
            pending.error = None
            return pending

        entry = ChatEntry.from_message(message)
        self.messages.append(entry)
        return entry

    def _find_pending(self, message: Message) -> Optional[ChatEntry]:
        candidates = [e for e in self.messages if not e.confirmed]
        if message.client_id:
            return next((e for e in candidates if e.client_id == message.client_id), None)

        # No correlation key: best-effort match on content and time
        for entry in candidates:
            if (
                entry.sender_id == message.sender_id
                and entry.body == message.body
                and entry.room_id == message.room_id
                and abs((entry.timestamp - message.timestamp).total_seconds()) <= self.match_window
            ):
                return entry
        return None

    def _on_send_failed(self, frame: Any) -> None:
        frame = frame or {}
        if frame.get("roomId") not in (None, self.room_id):
            return
        client_id = frame.get("clientId")
        if not client_id:
            return
        for entry in self.messages:
            if entry.client_id == client_id and not entry.confirmed:
                entry.failed = True
                entry.error = frame.get("error")
                # Only the session that owns the entry shows the failure
                self.last_send_error = SEND_FAILED_TEXT

    async def _on_connect(self, _: Any = None) -> None:
        if not self._mounted or self.error_cause is not ErrorCause.CHANNEL:
            return
        # A new connection has no memberships; join again
        try:
            await self.channel.emit("join", roomId=self.room_id)
        except ChannelUnavailable as e:
            self._fail(ErrorCause.CHANNEL, str(e))
            return
        self.state = SessionState.READY
        self.error_cause = None
        self.error = None
        self.reconnecting = False
        logger.info("Rejoined room %s after reconnect", self.room_id)

    def _on_disconnect(self, reason: Any = None) -> None:
        if not self._mounted or self.state is not SessionState.READY:
            return
        self._fail(ErrorCause.CHANNEL, str(reason or "disconnected"))
        self.reconnecting = True

    def _on_connect_error(self, reason: Any = None) -> None:
        if not self._mounted:
            return
        self._fail(ErrorCause.CHANNEL, str(reason or "connection failed"))
        self.reconnecting = False

    def _fail(self, cause: ErrorCause, error: str) -> None:
        self.state = SessionState.ERROR
        self.error_cause = cause
        self.error = error
