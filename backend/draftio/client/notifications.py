"""
Notification projection for inbound chat messages.

When a message arrives for a conversation the user is not looking at, a
notification record is synthesized and merged into the shared query cache
under the "notifications" key, and a toast is raised. The bell badge reads
the same cache, so nothing here talks to the notification service.
"""
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from draftio.client.models import ChatMessage, Notification, NotificationType
from draftio.client.state import ChatStore
from draftio.client.toast import Toaster
from draftio.core.config import settings
from draftio.core.logging import notifications_logger

NOTIFICATIONS_KEY = "notifications"
ELLIPSIS = "…"


class QueryCache:
    """
    Keyed read cache with functional updates.

    Eviction and TTL belong to whoever owns the cache; this only stores.
    """

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get_query_data(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set_query_data(self, key: str, value_or_updater: Any) -> Any:
        """Set a value, or pass a callable mapping the old value (None if absent) to the new one."""
        if callable(value_or_updater):
            value = value_or_updater(self._data.get(key))
        else:
            value = value_or_updater
        self._data[key] = value
        return value

    def invalidate(self, key: str) -> None:
        self._data.pop(key, None)


def truncate_preview(text: str, limit: int = settings.NOTIFICATION_PREVIEW_LENGTH) -> str:
    if len(text) > limit:
        return text[:limit] + ELLIPSIS
    return text


def notification_id(message: ChatMessage) -> str:
    if message.id:
        return f"msg-{message.id}"
    return f"msg-{int(time.time() * 1000)}"


def merge_notification(existing: Optional[Sequence[Notification]], notification: Notification) -> List[Notification]:
    """
    Newest-first insert. If an entry with the same id is already present the
    sequence is returned unchanged.
    """
    existing = existing if existing is not None else []
    if any(n.id == notification.id for n in existing):
        return existing
    return [notification, *existing]


class NotificationProjector:
    def __init__(
        self,
        chat_store: ChatStore,
        cache: QueryCache,
        toaster: Toaster,
        current_user_id: Callable[[], Optional[str]],
        preview_length: int = settings.NOTIFICATION_PREVIEW_LENGTH,
    ):
        self.chat_store = chat_store
        self.cache = cache
        self.toaster = toaster
        self.current_user_id = current_user_id
        self.preview_length = preview_length

    def is_active_conversation(self, message: ChatMessage) -> bool:
        active = self.chat_store.active_conversation
        return active is not None and active.id == message.sender_id

    def sender_name(self, sender_id: str) -> str:
        conv = self.chat_store.find_conversation(sender_id)
        if conv is not None and conv.user.display_name:
            return conv.user.display_name
        return "Someone"

    def project(self, message: ChatMessage) -> Optional[Notification]:
        """
        Returns the synthesized notification, or None when the user is
        already viewing the sender's conversation.
        """
        if self.is_active_conversation(message):
            notifications_logger.debug("Notification suppressed for active conversation", sender_id=message.sender_id)
            return None

        name = self.sender_name(message.sender_id)
        preview = truncate_preview(message.message, self.preview_length)
        notification = Notification(
            id=notification_id(message),
            user_id=self.current_user_id() or "",
            type=NotificationType.message,
            title=f"New message from {name}",
            message=preview,
            link=f"/chat?userId={message.sender_id}",
            is_read=False,
            created_at=message.created_at,
        )

        self.toaster.show(title=f"💬 {name}", description=preview, toast_id=notification.id)
        self.cache.set_query_data(
            NOTIFICATIONS_KEY,
            lambda prev: merge_notification(prev, notification),
        )
        return notification

    def notifications(self) -> List[Notification]:
        return list(self.cache.get_query_data(NOTIFICATIONS_KEY, []))

    def unread_count(self) -> int:
        return sum(1 for n in self.notifications() if not n.is_read)
