"""
HTTP client for the chat REST API.

History and the conversation list come from here; everything after the
initial load arrives over the relay.
"""
from typing import Any, List, Optional

import httpx

from draftio.client.models import ChatMessage, ChatUser, Conversation, MessagePage
from draftio.client.normalizer import normalize_message
from draftio.client.storage import SessionStore
from draftio.core.config import settings
from draftio.core.logging import api_logger


class ChatApiClient:
    def __init__(
        self,
        session: SessionStore,
        *,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self.base_url = base_url or settings.CHAT_API_URL
        self.timeout = timeout
        # Injected in tests to route requests into the ASGI app
        self.transport = transport

    def _headers(self) -> dict:
        token = self.session.access_token
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            response = await client.request(method, path, headers=self._headers(), **kwargs)
        if response.status_code >= 400:
            api_logger.warning(
                f"Chat API {method} {path} failed",
                status_code=response.status_code,
                body=response.text[:200],
            )
        response.raise_for_status()
        return response.json()

    async def get_conversations(self) -> List[Conversation]:
        data = await self._request("GET", "/conversations")
        me = self.session.user.id if self.session.user else None

        conversations = []
        for item in data:
            participants = [p for p in item.get("participants", []) if p != me]
            if not participants:
                continue
            last_text = item.get("last_message")
            last_message = None
            if last_text is not None:
                last_message = ChatMessage(
                    id="",
                    sender_id="",
                    receiver_id="",
                    conversation_id=item.get("conversation_id") or "",
                    message=last_text,
                    created_at=item.get("last_message_at") or "",
                )
            conversations.append(
                Conversation(
                    user=ChatUser(id=participants[0]),
                    last_message=last_message,
                    unread_count=int(item.get("unread_count") or 0),
                )
            )
        return conversations

    async def get_messages(
        self,
        user_id: str,
        page: int = 1,
        limit: int = settings.MESSAGES_PAGE_SIZE,
    ) -> MessagePage:
        data = await self._request("GET", f"/messages/{user_id}", params={"page": page, "limit": limit})
        return MessagePage(
            messages=[normalize_message(m) for m in data.get("messages", [])],
            total=int(data.get("total") or 0),
            has_more=bool(data.get("has_more")),
        )

    async def delete_message(self, message_id: str) -> None:
        await self._request("DELETE", f"/messages/{message_id}")

    async def get_unread_count(self) -> int:
        data = await self._request("GET", "/messages/unread/count")
        return int(data.get("count") or 0)
