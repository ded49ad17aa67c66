import logging
from typing import List, Optional, Tuple

import httpx

from portal_chat.exceptions.serialization import row_to_dict, serialize_message
from portal_chat.services.chat_service import ChatService
from portal_chat.services.exceptions import (
    ChatSessionClosedError,
    ChatSessionNotFound,
    EmptyMessageError,
)

logger = logging.getLogger(__name__)


class LocalChatBackend:
    """Виклики ChatService напряму (той самий процес, власна DB-сесія на виклик)."""

    def __init__(self, session_factory, feed, notifier=None):
        self.session_factory = session_factory
        self.feed = feed
        self.notifier = notifier

    def _service(self, db) -> ChatService:
        return ChatService(db, self.feed, self.notifier)

    async def get_latest_session(self, user_id: str) -> Optional[dict]:
        async with self.session_factory() as db:
            session = await self._service(db).get_latest_session(user_id)
            return row_to_dict(session) if session else None

    async def get_session(self, session_id: str) -> dict:
        async with self.session_factory() as db:
            return row_to_dict(await self._service(db).get_session(session_id))

    async def get_messages(self, session_id: str) -> List[dict]:
        async with self.session_factory() as db:
            messages = await self._service(db).get_messages(session_id)
            return [serialize_message(m, m.sender) for m in messages]

    async def create_session(self, user_id: str, content: str) -> Tuple[dict, List[dict]]:
        async with self.session_factory() as db:
            service = self._service(db)
            session = await service.create_session(user_id, content)
            messages = await service.get_messages(session.id)
            return row_to_dict(session), [serialize_message(m, m.sender) for m in messages]

    async def send_message(self, session_id: str, content: str, user_id: str, is_admin: bool = False) -> dict:
        async with self.session_factory() as db:
            message = await self._service(db).send_message(session_id, content, user_id, is_admin=is_admin)
            return serialize_message(message, message.sender)

    async def mark_read(self, session_id: str) -> bool:
        async with self.session_factory() as db:
            return await self._service(db).mark_read(session_id)

    async def mark_active(self, session_id: str) -> bool:
        async with self.session_factory() as db:
            return await self._service(db).mark_active(session_id)

    async def close(self, session_id: str) -> dict:
        async with self.session_factory() as db:
            return row_to_dict(await self._service(db).close(session_id))


class HttpChatBackend:
    """REST API через httpx; роль визначає сервер за токеном."""

    def __init__(self, base_url: str, token: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.headers = {"Authorization": f"Bearer {token}"}

    async def aclose(self):
        await self.client.aclose()

    async def _request(self, method: str, url: str, session_id: Optional[str] = None, **kwargs):
        response = await self.client.request(method, url, headers=self.headers, **kwargs)
        if response.status_code == 404 and session_id:
            raise ChatSessionNotFound(session_id)
        if response.status_code == 409 and session_id:
            raise ChatSessionClosedError(session_id)
        if response.status_code == 400 and method == "POST" and "messages" in url:
            raise EmptyMessageError()
        response.raise_for_status()
        return response.json()

    async def get_latest_session(self, user_id: str) -> Optional[dict]:
        return await self._request("GET", "/api/v1/chat/session/latest")

    async def get_session(self, session_id: str) -> dict:
        return await self._request("GET", f"/api/v1/chat/sessions/{session_id}", session_id)

    async def get_messages(self, session_id: str) -> List[dict]:
        return await self._request("GET", f"/api/v1/chat/sessions/{session_id}/messages", session_id)

    async def create_session(self, user_id: str, content: str) -> Tuple[dict, List[dict]]:
        data = await self._request("POST", "/api/v1/chat/sessions", json={"message": content})
        return data["session"], data["messages"]

    async def send_message(self, session_id: str, content: str, user_id: str, is_admin: bool = False) -> dict:
        return await self._request(
            "POST",
            f"/api/v1/chat/sessions/{session_id}/messages",
            session_id,
            json={"content": content},
        )

    async def mark_read(self, session_id: str) -> bool:
        await self._request("POST", f"/api/v1/admin/chats/{session_id}/read", session_id)
        return True

    async def mark_active(self, session_id: str) -> bool:
        try:
            await self._request("POST", f"/api/v1/admin/chats/{session_id}/active", session_id)
        except (httpx.HTTPError, ChatSessionNotFound, ChatSessionClosedError) as e:
            logger.error(f"❌ Failed to mark session {session_id} active: {e}")
            return False
        return True

    async def close(self, session_id: str) -> dict:
        return await self._request("POST", f"/api/v1/admin/chats/{session_id}/close", session_id)
