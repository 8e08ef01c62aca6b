from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime

from draftio.db.database import get_db
from draftio.core.config import settings
from draftio.core.security import get_current_user
from draftio.core.logging import api_logger
from draftio.services.messages import MessageService

router = APIRouter()
conversations_router = APIRouter()


class ConversationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    conversation_id: str
    participants: List[str]
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MessageHistoryResponse(BaseModel):
    messages: List[dict]
    total: int
    has_more: bool


@conversations_router.get("", response_model=List[ConversationResponse])
async def list_conversations(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessageService(db)
    user_id = current_user["user_id"]
    conversations = await service.get_conversations(user_id)
    response = []
    for conv in conversations:
        other_user_id = conv["participants"][1]
        unread = await service.get_unread_by_conversation(user_id, other_user_id)
        response.append(ConversationResponse(**conv, unread_count=unread))
    return response


@router.get("/unread/count")
async def get_unread_count(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    count = await MessageService(db).get_unread_count(current_user["user_id"])
    return {"count": count}


@router.get("/{user_id}", response_model=MessageHistoryResponse)
async def get_message_history(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.MESSAGES_PAGE_SIZE, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await MessageService(db).get_messages(current_user["user_id"], user_id, page, limit)
    return MessageHistoryResponse(
        messages=[m.to_payload() for m in result["messages"]],
        total=result["total"],
        has_more=result["has_more"],
    )


@router.delete("/{message_id}")
async def delete_message(
    message_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    deleted = await MessageService(db).delete_message(message_id, current_user["user_id"])
    if not deleted:
        raise HTTPException(status_code=404, detail="Message not found or unauthorized")
    api_logger.info("Message deleted", message_id=message_id, user_id=current_user["user_id"])
    return {"message": "Message deleted successfully"}
