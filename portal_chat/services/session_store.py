from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal_chat.models.chat import ChatSession, ChatStatus
from portal_chat.utils import utcnow


class SessionStore:
    """CRUD над таблицею chat_sessions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, user_id: str, status: ChatStatus = ChatStatus.UNREAD) -> ChatSession:
        now = utcnow()
        session = ChatSession(
            user_id=user_id,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.db.add(session)
        await self.db.commit()
        await self.db.refresh(session)
        return session

    async def get(self, session_id: str) -> Optional[ChatSession]:
        return await self.db.get(ChatSession, session_id)

    async def update(self, session_id: str, **fields) -> Optional[ChatSession]:
        session = await self.get(session_id)
        if session is None:
            return None

        for key, value in fields.items():
            setattr(session, key, value)
        session.updated_at = utcnow()

        await self.db.commit()
        await self.db.refresh(session)
        return session

    async def select_latest_by_user(self, user_id: str) -> Optional[ChatSession]:
        result = await self.db.execute(
            select(ChatSession)
            .where(ChatSession.user_id == user_id)
            .order_by(ChatSession.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def select_all_with_users(self) -> List[ChatSession]:
        result = await self.db.execute(
            select(ChatSession)
            .options(selectinload(ChatSession.user))
            .order_by(ChatSession.updated_at.desc())
        )
        return list(result.scalars().all())

    async def count_by_status(self, status: ChatStatus) -> int:
        return await self.db.scalar(
            select(func.count()).select_from(ChatSession).where(ChatSession.status == status)
        )
