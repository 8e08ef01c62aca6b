"""
Inbound relay payload normalization.

The relay and the REST API deliver the same logical message under either
camelCase (``senderId``, ``createdAt``, ``_id``) or snake_case field names.
Everything here is pure and total: any input, including ``None`` or a
non-mapping, produces a complete record. Malformed fields degrade to empty
values so one bad event never interrupts the stream.
"""
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional, Sequence, Tuple

from draftio.client.models import ChatMessage

# Ordered fallbacks: first present, non-None key wins
MESSAGE_FIELDS = {
    "id": ("_id", "id"),
    "sender_id": ("senderId", "sender_id"),
    "receiver_id": ("receiverId", "receiver_id"),
    "conversation_id": ("conversationId", "conversation_id"),
    "message": ("content", "message"),
    "created_at": ("createdAt", "created_at"),
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_mapping(raw: Any) -> Mapping:
    return raw if isinstance(raw, Mapping) else {}


def _lookup(raw: Mapping, keys: Sequence[str]) -> Optional[Any]:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (int, float, bool)):
        return str(value)
    # ObjectId-like values serialize through str(); anything else is dropped
    if type(value).__str__ is not object.__str__:
        try:
            return str(value)
        except Exception:
            return ""
    return ""


def normalize_message(raw: Any) -> ChatMessage:
    data = _as_mapping(raw)
    values = {name: _as_text(_lookup(data, keys)) for name, keys in MESSAGE_FIELDS.items()}
    if not values["created_at"]:
        values["created_at"] = utc_now_iso()
    return ChatMessage(**values)


def normalize_presence(raw: Any) -> str:
    """``{userId}`` / ``{user_id}`` -> user id ("" when missing)."""
    return _as_text(_lookup(_as_mapping(raw), ("userId", "user_id")))


def normalize_typing(raw: Any) -> Tuple[str, bool]:
    """``{senderId, isTyping}`` -> (sender id, typing flag)."""
    data = _as_mapping(raw)
    sender_id = _as_text(_lookup(data, ("senderId", "sender_id")))
    is_typing = _lookup(data, ("isTyping", "is_typing"))
    return sender_id, is_typing is True


def normalize_online_status(raw: Any) -> Tuple[str, bool]:
    """``{userId, isOnline}`` -> (user id, online flag)."""
    data = _as_mapping(raw)
    return normalize_presence(data), _lookup(data, ("isOnline", "is_online")) is True
