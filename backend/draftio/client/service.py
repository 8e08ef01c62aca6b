"""
Realtime chat service.

The one object that owns the session's relay connection. Consumers get a
reference to it instead of reaching for a module-level socket; the relay
is opened by start(), closed by stop(), and closed automatically when the
session store logs out.
"""
import asyncio
from typing import Any, Dict, Optional

from draftio.client.normalizer import (
    normalize_message,
    normalize_online_status,
    normalize_presence,
    normalize_typing,
)
from draftio.client.notifications import NotificationProjector
from draftio.client.relay import RelayClient, RelayConnection
from draftio.client.state import ChatStore
from draftio.client.storage import SessionStore
from draftio.core.logging import chat_logger, log_operation, set_log_user


class ChatRealtimeService:
    def __init__(
        self,
        session: SessionStore,
        chat_store: ChatStore,
        projector: NotificationProjector,
        relay: Optional[RelayClient] = None,
    ):
        self.session = session
        self.chat_store = chat_store
        self.projector = projector
        self.relay = relay or RelayClient()
        self._user_id: Optional[str] = None
        self._pending_stop: Optional[asyncio.Task] = None

        self.relay.on("connect", self._handle_connect)
        self.relay.on("receive_message", self._handle_receive_message)
        self.relay.on("message_sent", self._handle_message_sent)
        self.relay.on("user_online", self._handle_user_online)
        self.relay.on("user_offline", self._handle_user_offline)
        self.relay.on("typing_indicator", self._handle_typing_indicator)
        self.relay.on("online_status", self._handle_online_status)
        self.relay.on("messages_read", self._handle_messages_read)
        self.relay.on("error", self._handle_error)
        self.relay.on("reconnect_failed", self._handle_reconnect_failed)

        self._unsubscribe_session = session.subscribe(self._on_session_change)

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def connected(self) -> bool:
        return self.relay.connected

    @log_operation("relay_start", chat_logger)
    async def start(self) -> Optional[RelayConnection]:
        # A logout's teardown must finish before the next session connects
        pending, self._pending_stop = self._pending_stop, None
        if pending is not None and not pending.done():
            await pending

        user = self.session.user
        token = self.session.access_token
        if not self.session.is_authenticated or user is None or not token:
            chat_logger.warning("Realtime service not started: no authenticated session")
            return None
        self._user_id = user.id
        set_log_user(user.id)
        return await self.relay.connect(token)

    async def stop(self) -> None:
        pending = self._pending_stop
        if pending is not None and pending is not asyncio.current_task():
            self._pending_stop = None
            if not pending.done():
                await pending
        await self.relay.disconnect()
        self.chat_store.typing.clear()
        self.chat_store.presence.clear()
        self._user_id = None

    def close(self) -> None:
        """Detach from the session store. Call stop() first if still running."""
        self._unsubscribe_session()

    def _on_session_change(self, state: Dict[str, Any]) -> None:
        if state.get("is_authenticated") or self._user_id is None:
            return
        chat_logger.info("Session ended, stopping realtime service", user_id=self._user_id)
        self._user_id = None
        set_log_user(None)
        self.chat_store.reset()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            chat_logger.warning("Logout outside the event loop; relay left for stop()")
            return
        self._pending_stop = loop.create_task(self.stop())

    # Inbound

    def _handle_connect(self, _payload: Any) -> None:
        # Presence is rebuilt from broadcasts after every (re)connect
        self.chat_store.presence.clear()

    def _handle_receive_message(self, payload: Any) -> None:
        message = normalize_message(payload)
        if self.chat_store.add_message(message):
            active = self.chat_store.active_conversation
            conv = self.chat_store.find_conversation(message.sender_id)
            if conv is not None and (active is None or active.id != message.sender_id):
                conv.unread_count += 1
        self.projector.project(message)

    def _handle_message_sent(self, payload: Any) -> None:
        self.chat_store.add_message(normalize_message(payload))

    def _handle_user_online(self, payload: Any) -> None:
        self.chat_store.presence.add(normalize_presence(payload))

    def _handle_user_offline(self, payload: Any) -> None:
        self.chat_store.presence.discard(normalize_presence(payload))

    def _handle_typing_indicator(self, payload: Any) -> None:
        sender_id, is_typing = normalize_typing(payload)
        if is_typing:
            self.chat_store.typing.start(sender_id)
        else:
            self.chat_store.typing.stop(sender_id)

    def _handle_online_status(self, payload: Any) -> None:
        user_id, is_online = normalize_online_status(payload)
        if is_online:
            self.chat_store.presence.add(user_id)
        else:
            self.chat_store.presence.discard(user_id)

    def _handle_messages_read(self, payload: Any) -> None:
        chat_logger.debug("Messages read", payload=payload)

    def _handle_error(self, payload: Any) -> None:
        message = payload.get("message") if isinstance(payload, dict) else payload
        chat_logger.warning("Relay reported an error", message=str(message))

    def _handle_reconnect_failed(self, _payload: Any) -> None:
        chat_logger.error("Realtime chat unavailable: reconnection gave up", user_id=self._user_id)

    # Outbound

    async def send_message(self, receiver_id: str, content: str) -> bool:
        if not receiver_id or not content:
            return False
        return await self.relay.emit("send_message", {"receiverId": receiver_id, "content": content})

    async def start_typing(self, receiver_id: str) -> bool:
        return await self.relay.emit("typing_start", {"receiverId": receiver_id})

    async def stop_typing(self, receiver_id: str) -> bool:
        return await self.relay.emit("typing_stop", {"receiverId": receiver_id})

    async def mark_read(self, sender_id: str) -> bool:
        self.chat_store.mark_as_read(sender_id)
        return await self.relay.emit("mark_read", {"senderId": sender_id})

    async def join_conversation(self, user_id: str) -> bool:
        return await self.relay.emit("join_conversation", {"userId": user_id})

    async def check_online(self, user_id: str) -> bool:
        return await self.relay.emit("check_online", {"userId": user_id})
