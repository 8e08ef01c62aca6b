"""
Direct message service layer.
Persistence for the chat relay and the chat REST API.
"""
from typing import List, Dict, Any
from datetime import datetime, timezone
from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from draftio.db.models import DirectMessage
from draftio.core.config import settings
from draftio.core.logging import chat_logger, log_operation


def generate_conversation_id(user_id_1: str, user_id_2: str) -> str:
    """Conversation key for a pair of users, identical whichever side asks."""
    return "_".join(sorted([str(user_id_1), str(user_id_2)]))


class MessageService:
    """Service for one-to-one messages"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @log_operation("send_message", chat_logger)
    async def send_message(self, sender_id: str, receiver_id: str, content: str) -> DirectMessage:
        message = DirectMessage(
            conversation_id=generate_conversation_id(sender_id, receiver_id),
            sender_id=str(sender_id),
            receiver_id=str(receiver_id),
            content=content,
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def get_messages(
        self,
        user_id_1: str,
        user_id_2: str,
        page: int = 1,
        limit: int = settings.MESSAGES_PAGE_SIZE,
    ) -> Dict[str, Any]:
        """
        Page through a conversation, newest page first.
        Messages inside the page are returned oldest first.
        """
        page = max(page, 1)
        limit = max(limit, 1)
        conversation_id = generate_conversation_id(user_id_1, user_id_2)
        skip = (page - 1) * limit

        q = (
            select(DirectMessage)
            .where(
                DirectMessage.conversation_id == conversation_id,
                DirectMessage.is_deleted == False,
            )
            .order_by(DirectMessage.created_at.desc(), DirectMessage.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(q)
        messages = list(result.scalars().all())

        count_q = select(func.count(DirectMessage.id)).where(
            DirectMessage.conversation_id == conversation_id,
            DirectMessage.is_deleted == False,
        )
        total = int((await self.db.execute(count_q)).scalar_one() or 0)

        messages.reverse()
        return {
            "messages": messages,
            "total": total,
            "has_more": skip + len(messages) < total,
        }

    async def mark_as_read(self, user_id: str, sender_id: str) -> int:
        """Mark everything `sender_id` sent to `user_id` as read. Returns rows changed."""
        result = await self.db.execute(
            update(DirectMessage)
            .where(
                DirectMessage.conversation_id == generate_conversation_id(user_id, sender_id),
                DirectMessage.receiver_id == str(user_id),
                DirectMessage.sender_id == str(sender_id),
                DirectMessage.is_read == False,
            )
            .values(is_read=True, updated_at=datetime.now(timezone.utc))
        )
        await self.db.commit()
        return result.rowcount or 0

    async def delete_message(self, message_id: int, user_id: str) -> bool:
        """Soft delete. Only the sender may delete their message."""
        result = await self.db.execute(
            update(DirectMessage)
            .where(
                DirectMessage.id == message_id,
                DirectMessage.sender_id == str(user_id),
                DirectMessage.is_deleted == False,
            )
            .values(is_deleted=True, updated_at=datetime.now(timezone.utc))
        )
        await self.db.commit()
        return (result.rowcount or 0) > 0

    async def get_conversations(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Derive the user's conversation list from the messages themselves.

        Each entry carries the latest message and the other participant.
        Sorted by last activity, newest first.
        """
        user_id = str(user_id)
        q = (
            select(DirectMessage)
            .where(
                DirectMessage.is_deleted == False,
                or_(DirectMessage.sender_id == user_id, DirectMessage.receiver_id == user_id),
            )
            .order_by(DirectMessage.created_at.desc(), DirectMessage.id.desc())
        )
        result = await self.db.execute(q)

        conversations: Dict[str, Dict[str, Any]] = {}
        for message in result.scalars().all():
            entry = conversations.get(message.conversation_id)
            if entry is None:
                other_user_id = message.receiver_id if message.sender_id == user_id else message.sender_id
                if not other_user_id:
                    continue
                conversations[message.conversation_id] = {
                    "conversation_id": message.conversation_id,
                    "participants": [user_id, other_user_id],
                    "last_message": message.content,
                    "last_message_at": message.created_at,
                    "updated_at": message.updated_at,
                    "created_at": message.created_at,
                }
            else:
                # Rows arrive newest first, so the last one seen is the oldest
                entry["created_at"] = message.created_at

        return list(conversations.values())

    async def get_unread_count(self, user_id: str) -> int:
        q = select(func.count(DirectMessage.id)).where(
            DirectMessage.receiver_id == str(user_id),
            DirectMessage.is_read == False,
            DirectMessage.is_deleted == False,
        )
        return int((await self.db.execute(q)).scalar_one() or 0)

    async def get_unread_by_conversation(self, user_id: str, sender_id: str) -> int:
        q = select(func.count(DirectMessage.id)).where(
            DirectMessage.conversation_id == generate_conversation_id(user_id, sender_id),
            DirectMessage.receiver_id == str(user_id),
            DirectMessage.sender_id == str(sender_id),
            DirectMessage.is_read == False,
            DirectMessage.is_deleted == False,
        )
        return int((await self.db.execute(q)).scalar_one() or 0)

