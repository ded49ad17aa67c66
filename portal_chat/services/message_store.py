from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal_chat.models.chat import ChatMessage
from portal_chat.utils import utcnow


class MessageStore:
    """Запис і читання повідомлень сесії (завжди за created_at)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, session_id: str, content: str, sender_id: str) -> ChatMessage:
        message = ChatMessage(
            session_id=session_id,
            content=content,
            sender_id=sender_id,
            created_at=utcnow(),
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message, ["sender"])
        return message

    async def select_by_session(self, session_id: str) -> List[ChatMessage]:
        result = await self.db.execute(
            select(ChatMessage)
            .options(selectinload(ChatMessage.sender))
            .where(ChatMessage.session_id == session_id)
            .order_by(ChatMessage.created_at.asc())
        )
        return list(result.scalars().all())
