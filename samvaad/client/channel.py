# samvaad/client/channel.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
from collections import defaultdict
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from samvaad.core.config import settings
from samvaad.core.errors import ChannelUnavailable
from samvaad.core.logging import get_logger

logger = get_logger(__name__)

Listener = Callable[[Any], Any]
Connector = Callable[[str], Awaitable[Any]]


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


# ============================================================================
# DELIVERY CHANNEL (CLIENT)
# ============================================================================

class DeliveryChannel:
    """
    Client end of the real-time channel.

    One instance is shared by every chat view in the process (see
    get_channel). Views subscribe to server events with on()/off() and send
    with emit(); room membership belongs to the views, not to the channel.

    Events dispatched to listeners:
        connect        transport (re)established; views must re-join rooms
        disconnect     transport lost; a reconnect is attempted
        connect_error  retry budget exhausted; channel is FAILED
        <type>         every server frame, keyed by its "type"
                       (receiveMessage, sendFailed, joined, left, error)

    Reconnection:
        Up to ``reconnection_attempts`` tries with a fixed
        ``reconnection_delay`` between them, then the channel gives up and
        reports connect_error. emit() never queues: while not connected it
        raises ChannelUnavailable.
    """

    def __init__(
        self,
        url: str,
        reconnection_attempts: Optional[int] = None,
        reconnection_delay: Optional[float] = None,
        connector: Optional[Connector] = None,
    ):
        self.url = url
        self.reconnection_attempts = reconnection_attempts or settings.RECONNECTION_ATTEMPTS
        self.reconnection_delay = (
            settings.RECONNECTION_DELAY if reconnection_delay is None else reconnection_delay
        )
        self.connector = connector or websockets.connect
        self.state = ChannelState.DISCONNECTED
        self.attempts = 0

        self._connection = None
        self._reader: Optional[asyncio.Task] = None
        self._closing = False
        self._connect_lock = asyncio.Lock()
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    @property
    def connected(self) -> bool:
        return self.state is ChannelState.CONNECTED and self._connection is not None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on(self, event: str, listener: Listener) -> None:
        if listener not in self._listeners[event]:
            self._listeners[event].append(listener)

    def off(self, event: str, listener: Listener) -> None:
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    async def _dispatch(self, event: str, payload: Any = None) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener for '%s' failed", event)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Open the transport, retrying a bounded number of times.

        Raises:
            ChannelUnavailable: every attempt failed
        """
        async with self._connect_lock:
            if self.connected:
                return

            opened = False
            self._closing = False
            self.state = ChannelState.CONNECTING
            last_error: Optional[BaseException] = None

            for attempt in range(1, self.reconnection_attempts + 1):
                self.attempts = attempt
                try:
                    connection = await self.connector(self.url)
                except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                    last_error = e
                    logger.warning(
                        "Connection attempt %d/%d failed: %s", attempt, self.reconnection_attempts, e
                    )
                    if attempt < self.reconnection_attempts:
                        await asyncio.sleep(self.reconnection_delay)
                    continue

                self._connection = connection
                self.state = ChannelState.CONNECTED
                self.attempts = 0
                self._reader = asyncio.create_task(self._read_loop(connection))
                logger.info("✓ Channel connected to %s", self.url)
                opened = True
                break

            if not opened:
                self.state = ChannelState.FAILED

        if not opened:
            logger.error("✗ Channel gave up after %d attempts", self.reconnection_attempts)
            await self._dispatch("connect_error", last_error)
            raise ChannelUnavailable(
                f"Could not connect after {self.reconnection_attempts} attempts"
            ) from last_error

        await self._dispatch("connect")

    async def _read_loop(self, connection) -> None:
        reason: Any = None
        try:
            async for raw in connection:
                try:
                    frame = json.loads(raw)
                except (TypeError, ValueError):
                    logger.warning("Ignoring non-JSON frame")
                    continue
                if isinstance(frame, dict) and frame.get("type"):
                    await self._dispatch(frame["type"], frame)
        except ConnectionClosed as e:
            reason = e

        # close() or a newer connection took over
        if self._closing or connection is not self._connection:
            return

        self._connection = None
        self.state = ChannelState.DISCONNECTED
        logger.warning("Channel disconnected: %s", reason or "closed by server")
        await self._dispatch("disconnect", reason)

        try:
            await self.connect()
        except ChannelUnavailable:
            # connect_error has already been dispatched
            pass

    async def close(self) -> None:
        """Close the transport for good (no reconnect)."""
        self._closing = True
        connection, self._connection = self._connection, None
        self.state = ChannelState.DISCONNECTED
        if connection is not None:
            await connection.close()
        if self._reader is not None and self._reader is not asyncio.current_task():
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
        self._reader = None

    # ------------------------------------------------------------------
    # Outgoing
    # ------------------------------------------------------------------

    async def emit(self, action: str, **fields: Any) -> None:
        """
        Send one action frame.

        Raises:
            ChannelUnavailable: not connected, or the transport dropped mid-send
        """
        if not self.connected:
            raise ChannelUnavailable("Channel is disconnected")
        try:
            await self._connection.send(json.dumps({"action": action, **fields}))
        except ConnectionClosed as e:
            raise ChannelUnavailable(f"Channel closed while sending: {e}") from e


# ============================================================================
# PROCESS-WIDE CHANNEL
# ============================================================================
# One channel per client process, created lazily by the first chat view and
# kept across navigations. Only shutdown_channel() (at process exit) tears
# it down; views release their rooms themselves.

_channel: Optional[DeliveryChannel] = None


def channel_url(base_url: str, token: Optional[str] = None, user_id: Optional[str] = None) -> str:
    """Attach the caller identity to the socket URL as query parameters."""
    params = {}
    if token:
        params["token"] = token
    elif user_id:
        params["user_id"] = user_id
    if not params:
        return base_url
    return str(httpx.URL(base_url).copy_merge_params(params))


def get_channel(
    url: Optional[str] = None,
    token: Optional[str] = None,
    user_id: Optional[str] = None,
    **kwargs: Any,
) -> DeliveryChannel:
    """Return the shared channel, creating it on first use."""
    global _channel
    if _channel is None:
        _channel = DeliveryChannel(channel_url(url or settings.SOCKET_URL, token, user_id), **kwargs)
    return _channel


async def shutdown_channel() -> None:
    global _channel
    if _channel is not None:
        await _channel.close()
        _channel = None
