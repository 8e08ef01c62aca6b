"""
Client-side chat records.

Relay payloads are converted into these before anything else touches them
(see draftio.client.normalizer). Session data that crosses the local
storage boundary uses pydantic models so it can be dumped and validated.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel


class SessionUser(BaseModel):
    id: str
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class AuthTokens(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None


@dataclass(frozen=True)
class ChatMessage:
    """A relayed message. Immutable once created."""
    id: str
    sender_id: str
    receiver_id: str
    conversation_id: str
    message: str
    created_at: str


@dataclass(frozen=True)
class ChatUser:
    id: str
    username: str = ""
    full_name: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.full_name or self.username or None


@dataclass
class Conversation:
    """Sidebar entry: the counterpart plus the latest message."""
    user: ChatUser
    last_message: Optional[ChatMessage] = None
    unread_count: int = 0


class NotificationType(str, Enum):
    follow = "follow"
    like = "like"
    comment = "comment"
    mention = "mention"
    message = "message"


@dataclass(frozen=True)
class Notification:
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    is_read: bool = False
    created_at: str = ""


@dataclass(frozen=True)
class Toast:
    id: str
    title: str
    description: str
    duration: float
    created_at: float


@dataclass
class MessagePage:
    """One page of history from the chat REST API."""
    messages: List[ChatMessage] = field(default_factory=list)
    total: int = 0
    has_more: bool = False
