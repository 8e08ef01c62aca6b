"""
Presence/message relay client.

One Socket.IO connection per signed-in session. The transport negotiates
with HTTP long-polling first and upgrades to WebSocket afterwards; forcing
WebSocket directly races the handshake.

Reconnection is fixed-delay and bounded: after an unexpected disconnect (or
a failed handshake) the connection retries every `reconnection_delay`
seconds, at most `reconnection_attempts` times. Once exhausted the
connection is FAILED and only a new RelayClient.connect() brings it back.
A disconnect initiated by the server is final and is not retried.
RelayClient.disconnect() is the only cancellation primitive; it also stops
any reconnection in flight.
"""
import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import socketio

from draftio.core.config import settings
from draftio.core.logging import relay_logger

Handler = Callable[[Any], Any]
Dispatch = Callable[[str, Any], Awaitable[None]]

# Server events forwarded to subscribers as-is
RELAY_EVENTS = (
    "receive_message",
    "message_sent",
    "user_online",
    "user_offline",
    "typing_indicator",
    "messages_read",
    "online_status",
    "error",
)


class ConnectionState(str, Enum):
    idle = "idle"
    connecting = "connecting"
    connected = "connected"
    reconnecting = "reconnecting"
    failed = "failed"
    closed = "closed"


ALIVE_STATES = (ConnectionState.connecting, ConnectionState.connected, ConnectionState.reconnecting)

# Disconnect reasons meaning the server closed the session on purpose
SERVER_DISCONNECT_REASONS = ("server disconnect", "io server disconnect")


class RelayConnection:
    """Owns exactly one transport client for one bearer token."""

    def __init__(
        self,
        url: str,
        token: str,
        dispatch: Dispatch,
        *,
        transports: Sequence[str],
        reconnection_delay: float,
        reconnection_attempts: int,
        timeout: float,
        socketio_path: str,
        client_factory: Callable[..., Any],
    ):
        self.url = url
        self.transports = list(transports)
        self.reconnection_delay = reconnection_delay
        self.reconnection_attempts = reconnection_attempts
        self.timeout = timeout
        self.socketio_path = socketio_path
        self.token = token
        self.state = ConnectionState.idle

        self._auth = {"token": token}
        self._dispatch = dispatch
        self._closed = False
        self._reconnect_task: Optional[asyncio.Task] = None
        self.log = relay_logger.bind(url=url)

        # Reconnection is driven here, not by the library, so that the
        # fixed delay, the attempt cap and the FAILED state are observable.
        self._client = client_factory(reconnection=False, logger=False, engineio_logger=False)
        self._client.on("connect", self._on_connect)
        self._client.on("connect_error", self._on_connect_error)
        self._client.on("disconnect", self._on_disconnect)
        for event in RELAY_EVENTS:
            self._client.on(event, self._forward(event))

    @property
    def sid(self) -> Optional[str]:
        return getattr(self._client, "sid", None)

    @property
    def connected(self) -> bool:
        return bool(self._client.connected)

    @property
    def is_alive(self) -> bool:
        return not self._closed and self.state in ALIVE_STATES

    async def open(self) -> None:
        self.state = ConnectionState.connecting
        self.log.info("Relay connecting", transports=self.transports)
        if not await self._attempt():
            self._start_reconnect()

    async def emit(self, event: str, data: Any = None) -> bool:
        if not self.connected:
            self.log.debug(f"Relay not connected, dropping {event}")
            return False
        await self._client.emit(event, data)
        return True

    async def close(self) -> None:
        """Tear the transport down. Idempotent."""
        if self._closed:
            return
        self._closed = True

        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._client.connected:
            await self._client.disconnect()
        self.state = ConnectionState.closed
        self.log.info("Relay closed")

    async def _attempt(self) -> bool:
        try:
            await self._client.connect(
                self.url,
                auth=self._auth,
                transports=self.transports,
                socketio_path=self.socketio_path,
                wait_timeout=self.timeout,
            )
        except socketio.exceptions.ConnectionError as e:
            self.log.warning("Relay connect error", error=str(e))
            return False

        if self._closed:
            # disconnect() raced the handshake
            await self._client.disconnect()
            return True
        self.state = ConnectionState.connected
        return True

    def _start_reconnect(self) -> None:
        if self._closed or (self._reconnect_task is not None and not self._reconnect_task.done()):
            return
        self.state = ConnectionState.reconnecting
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect())

    async def _reconnect(self) -> None:
        for attempt in range(1, self.reconnection_attempts + 1):
            await asyncio.sleep(self.reconnection_delay)
            if self._closed:
                return
            self.log.info("Relay reconnect attempt", attempt=attempt, max_attempts=self.reconnection_attempts)
            if await self._attempt():
                self._reconnect_task = None
                return

        self.state = ConnectionState.failed
        self._reconnect_task = None
        self.log.error("Relay reconnection attempts exhausted", attempts=self.reconnection_attempts)
        await self._dispatch("reconnect_failed", None)

    async def _on_connect(self) -> None:
        self.state = ConnectionState.connected
        self.log.info("Relay connected", sid=self.sid)
        await self._dispatch("connect", None)

    async def _on_connect_error(self, data: Any = None) -> None:
        self.log.warning("Relay connect error event", error=str(data))

    async def _on_disconnect(self, *args) -> None:
        reason = args[0] if args else None
        await self._dispatch("disconnect", reason)
        if self._closed:
            return
        if reason in SERVER_DISCONNECT_REASONS:
            self.state = ConnectionState.closed
            self.log.warning("Relay disconnected by server, not reconnecting")
            return
        self.log.warning("Relay disconnected unexpectedly")
        self._start_reconnect()

    def _forward(self, event: str):
        async def handler(*args):
            await self._dispatch(event, args[0] if args else None)
        return handler


class RelayClient:
    """
    Holder of the session's single relay connection.

    Subscriptions registered with on() live here, so they keep working
    across reconnects and across connections replaced after a failure.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        transports: Optional[Sequence[str]] = None,
        reconnection_delay: Optional[float] = None,
        reconnection_attempts: Optional[int] = None,
        timeout: Optional[float] = None,
        socketio_path: Optional[str] = None,
        client_factory: Callable[..., Any] = socketio.AsyncClient,
    ):
        self.url = url or settings.CHAT_WS_URL
        self.transports = list(transports or settings.RELAY_TRANSPORTS)
        self.reconnection_delay = settings.RELAY_RECONNECTION_DELAY if reconnection_delay is None else reconnection_delay
        self.reconnection_attempts = (
            settings.RELAY_RECONNECTION_ATTEMPTS if reconnection_attempts is None else reconnection_attempts
        )
        self.timeout = settings.RELAY_CONNECT_TIMEOUT if timeout is None else timeout
        self.socketio_path = socketio_path or settings.SOCKETIO_PATH
        self.client_factory = client_factory

        self._connection: Optional[RelayConnection] = None
        self._subscribers: Dict[str, List[Handler]] = {}

    @property
    def connection(self) -> Optional[RelayConnection]:
        return self._connection

    @property
    def connected(self) -> bool:
        return self._connection is not None and self._connection.connected

    async def connect(self, token: Optional[str]) -> Optional[RelayConnection]:
        """
        Return the live connection for this session, creating it if needed.

        No token: nothing is created and None is returned. A live
        connection opened with a different token belongs to an earlier
        session and is replaced.
        """
        if not token:
            relay_logger.warning("Relay connect skipped: no session token")
            return None

        current = self._connection
        if current is not None and current.is_alive and current.token == token:
            return current

        if current is not None:
            if current.is_alive:
                relay_logger.info("Relay token changed, replacing connection", url=self.url)
            await current.close()

        connection = RelayConnection(
            self.url,
            token,
            self._dispatch,
            transports=self.transports,
            reconnection_delay=self.reconnection_delay,
            reconnection_attempts=self.reconnection_attempts,
            timeout=self.timeout,
            socketio_path=self.socketio_path,
            client_factory=self.client_factory,
        )
        # Held before the first await so a concurrent connect() reuses it
        self._connection = connection
        await connection.open()
        return connection

    async def disconnect(self) -> None:
        connection, self._connection = self._connection, None
        if connection is not None:
            await connection.close()

    async def emit(self, event: str, data: Any = None) -> bool:
        if self._connection is None:
            relay_logger.debug(f"Relay not open, dropping {event}")
            return False
        return await self._connection.emit(event, data)

    def on(self, event: str, handler: Handler) -> None:
        self._subscribers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Optional[Handler] = None) -> None:
        if handler is None:
            self._subscribers.pop(event, None)
            return
        handlers = self._subscribers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    async def _dispatch(self, event: str, payload: Any) -> None:
        for handler in list(self._subscribers.get(event, ())):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                # One failing subscriber must not stop the event stream
                relay_logger.exception(f"Relay handler for {event} failed", error=e)
