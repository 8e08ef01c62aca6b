"""
Client-local chat state driven by relay events.

PresenceSet and TypingSet are mutated only by relay events; nothing here
makes a server round-trip. All mutation happens on the event loop thread,
so no locking is needed.
"""
import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set

from draftio.client.models import ChatMessage, ChatUser, Conversation
from draftio.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class PresenceSet:
    """Online user ids. Not persisted; reset whenever the relay (re)connects."""
    user_ids: Set[str] = field(default_factory=set)

    def add(self, user_id: str) -> None:
        if user_id:
            self.user_ids.add(user_id)

    def discard(self, user_id: str) -> None:
        self.user_ids.discard(user_id)

    def replace(self, user_ids: Iterable[str]) -> None:
        self.user_ids = {uid for uid in user_ids if uid}

    def clear(self) -> None:
        self.user_ids.clear()

    def __contains__(self, user_id: object) -> bool:
        return user_id in self.user_ids

    def __iter__(self) -> Iterator[str]:
        return iter(self.user_ids)

    def __len__(self) -> int:
        return len(self.user_ids)


@dataclass
class TypingSet:
    """
    User ids currently typing.

    Each start schedules an expiry on the running loop after `ttl_seconds`.
    A repeated start for the same user cancels the pending expiry and
    schedules a fresh one, so the indicator stays up while typing continues.
    """
    ttl_seconds: float = settings.TYPING_TIMEOUT
    on_change: Optional[Callable[[Set[str]], None]] = None

    _timers: Dict[str, asyncio.TimerHandle] = field(default_factory=dict, init=False, repr=False)

    def start(self, user_id: str) -> None:
        if not user_id:
            return
        loop = asyncio.get_running_loop()

        previous = self._timers.pop(user_id, None)
        if previous is not None:
            previous.cancel()
        else:
            logger.debug(f"User {user_id} started typing")

        self._timers[user_id] = loop.call_later(self.ttl_seconds, self._expire, user_id)
        if previous is None:
            self._changed()

    def stop(self, user_id: str) -> bool:
        """Returns True if the user was typing."""
        timer = self._timers.pop(user_id, None)
        if timer is None:
            return False
        timer.cancel()
        logger.debug(f"User {user_id} stopped typing")
        self._changed()
        return True

    def _expire(self, user_id: str) -> None:
        if self._timers.pop(user_id, None) is not None:
            logger.debug(f"Typing indicator for {user_id} expired")
            self._changed()

    def clear(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        had_entries = bool(self._timers)
        self._timers.clear()
        if had_entries:
            self._changed()

    @property
    def user_ids(self) -> Set[str]:
        return set(self._timers)

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self.user_ids)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._timers

    def __len__(self) -> int:
        return len(self._timers)


def _sort_key(message: ChatMessage) -> datetime:
    value = message.created_at.replace("Z", "+00:00") if message.created_at else ""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _belongs_to(message: ChatMessage, other_user_id: str, self_user_id: str) -> bool:
    return (
        (message.sender_id == self_user_id and message.receiver_id == other_user_id)
        or (message.sender_id == other_user_id and message.receiver_id == self_user_id)
    )


@dataclass
class ChatStore:
    """
    In-memory chat state for one signed-in session.

    Messages form a single ordered, unbounded sequence across conversations;
    a conversation is the set of messages exchanged with one counterpart.
    """
    conversations: List[Conversation] = field(default_factory=list)
    active_conversation: Optional[ChatUser] = None
    messages: List[ChatMessage] = field(default_factory=list)
    presence: PresenceSet = field(default_factory=PresenceSet)
    typing: TypingSet = field(default_factory=TypingSet)

    def set_conversations(self, conversations: List[Conversation]) -> None:
        self.conversations = list(conversations)

    def set_active_conversation(self, user: Optional[ChatUser]) -> None:
        """Move the focus pointer. Messages are left alone."""
        self.active_conversation = user

    def find_conversation(self, user_id: str) -> Optional[Conversation]:
        for conv in self.conversations:
            if conv.user.id == user_id:
                return conv
        return None

    def add_message(self, message: ChatMessage) -> bool:
        """
        Append a message and bump the matching sidebar entry.

        Returns False (and changes nothing) when a message with the same
        non-empty id is already stored.
        """
        if message.id and any(m.id == message.id for m in self.messages):
            return False

        self.messages.append(message)
        for conv in self.conversations:
            if conv.user.id in (message.sender_id, message.receiver_id):
                conv.last_message = message
        return True

    def set_conversation_messages(self, other_user_id: str, self_user_id: str, loaded: List[ChatMessage]) -> None:
        """
        Replace the history of one conversation with freshly loaded messages.

        Messages of other conversations are kept. Realtime messages for this
        conversation that the loaded history does not contain yet are merged
        in rather than dropped.
        """
        loaded_ids = {m.id for m in loaded if m.id}
        others = [m for m in self.messages if not _belongs_to(m, other_user_id, self_user_id)]
        realtime_extras = [
            m for m in self.messages
            if _belongs_to(m, other_user_id, self_user_id) and m.id and m.id not in loaded_ids
        ]
        merged = sorted([*loaded, *realtime_extras], key=_sort_key)
        self.messages = others + merged

    def conversation_messages(self, other_user_id: str, self_user_id: str) -> List[ChatMessage]:
        return [m for m in self.messages if _belongs_to(m, other_user_id, self_user_id)]

    def update_message(self, message_id: str, **updates) -> bool:
        for index, message in enumerate(self.messages):
            if message.id == message_id:
                self.messages[index] = replace(message, **updates)
                return True
        return False

    def mark_as_read(self, conversation_user_id: str) -> None:
        conv = self.find_conversation(conversation_user_id)
        if conv is not None:
            conv.unread_count = 0

    def reset(self) -> None:
        """Drop everything (logout)."""
        self.typing.clear()
        self.presence.clear()
        self.conversations = []
        self.active_conversation = None
        self.messages = []
