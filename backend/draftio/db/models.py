from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Index
from datetime import datetime, timezone
from draftio.db.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class DirectMessage(Base):
    """One-to-one chat message. Conversations are derived from these rows."""
    __tablename__ = "direct_messages"
    __table_args__ = (
        Index("ix_direct_messages_conversation_created", "conversation_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Sorted "<user_a>_<user_b>" pair key
    conversation_id = Column(String(128), nullable=False, index=True)
    sender_id = Column(String(64), nullable=False, index=True)
    receiver_id = Column(String(64), nullable=False, index=True)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_payload(self) -> dict:
        """Wire shape used by the relay and REST API (camelCase, like the JS clients expect)."""
        return {
            "_id": str(self.id),
            "conversationId": self.conversation_id,
            "senderId": self.sender_id,
            "receiverId": self.receiver_id,
            "content": self.content,
            "isRead": bool(self.is_read),
            "isDeleted": bool(self.is_deleted),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
