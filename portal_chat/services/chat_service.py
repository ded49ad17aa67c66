import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from portal_chat.exceptions.serialization import row_to_dict
from portal_chat.models.chat import SYSTEM_SENDER_ID, ChatMessage, ChatSession, ChatStatus
from portal_chat.realtime.change_feed import ChangeFeed, InsertEvent, UpdateEvent
from portal_chat.services.exceptions import (
    ChatCloseError,
    ChatSessionClosedError,
    ChatSessionNotFound,
    EmptyMessageError,
)
from portal_chat.services.message_store import MessageStore
from portal_chat.services.session_store import SessionStore

logger = logging.getLogger(__name__)

CLOSED_NOTICE = (
    "このチャットセッションは終了しました。"
    "新しい質問がある場合は、新しいチャットを開始してください。"
)


class ChatService:
    """Життєвий цикл сесій чату та надсилання повідомлень."""

    def __init__(self, db: AsyncSession, feed: ChangeFeed, notifier=None):
        self.sessions = SessionStore(db)
        self.messages = MessageStore(db)
        self.feed = feed
        self.notifier = notifier

    # ─────────────────────────── Сесії ───────────────────────────
    async def get_latest_session(self, user_id: str) -> Optional[ChatSession]:
        # None - нормальний результат: перше повідомлення створить сесію
        return await self.sessions.select_latest_by_user(user_id)

    async def get_session(self, session_id: str) -> ChatSession:
        session = await self.sessions.get(session_id)
        if session is None:
            raise ChatSessionNotFound(session_id)
        return session

    async def get_session_status(self, session_id: str) -> Optional[str]:
        session = await self.sessions.get(session_id)
        return session.status.value if session else None

    async def create_session(self, user_id: str, initial_message: str = "") -> ChatSession:
        session = await self.sessions.insert(user_id, ChatStatus.UNREAD)
        logger.info(f"🆕 Chat session {session.id} created for {user_id}")
        await self.feed.publish(InsertEvent(table="chat_sessions", new=row_to_dict(session)))

        if initial_message and initial_message.strip():
            await self.send_message(session.id, initial_message, user_id, is_admin=False)
            await self.sessions.db.refresh(session)

        return session

    async def list_admin_sessions(self) -> List[ChatSession]:
        return await self.sessions.select_all_with_users()

    async def count_unread_sessions(self) -> int:
        return await self.sessions.count_by_status(ChatStatus.UNREAD)

    async def _set_status(self, session_id: str, status: ChatStatus) -> ChatSession:
        session = await self.get_session(session_id)
        if session.status == ChatStatus.CLOSED and status != ChatStatus.CLOSED:
            # closed - кінцевий стан, продовження лише в новій сесії
            raise ChatSessionClosedError(session_id)
        old = row_to_dict(session)
        session = await self.sessions.update(session_id, status=status)
        await self.feed.publish(
            UpdateEvent(table="chat_sessions", new=row_to_dict(session), old=old)
        )
        return session

    async def mark_read(self, session_id: str) -> bool:
        await self._set_status(session_id, ChatStatus.READ)
        return True

    async def mark_active(self, session_id: str) -> bool:
        try:
            await self._set_status(session_id, ChatStatus.ACTIVE)
        except ChatSessionClosedError:
            logger.info(f"Session {session_id} is closed, status left as is")
            return False
        except Exception as e:
            logger.error(f"❌ Failed to mark session {session_id} active: {e}")
            return False
        return True

    async def close(self, session_id: str) -> ChatSession:
        """Системне повідомлення про завершення, потім статус closed."""
        session = await self.get_session(session_id)
        if session.status == ChatStatus.CLOSED:
            return session

        notice = await self.messages.insert(session_id, CLOSED_NOTICE, SYSTEM_SENDER_ID)
        await self.feed.publish(InsertEvent(table="messages", new=row_to_dict(notice)))

        try:
            session = await self._set_status(session_id, ChatStatus.CLOSED)
        except Exception as e:
            # системне повідомлення лишається - без компенсації
            logger.error(f"❌ Session {session_id} has closing notice but status update failed: {e}")
            raise ChatCloseError(session_id, e) from e

        logger.info(f"🔒 Chat session {session_id} closed")
        return session

    # ──────────────────────── Повідомлення ────────────────────────
    async def get_messages(self, session_id: str) -> List[ChatMessage]:
        await self.get_session(session_id)
        return await self.messages.select_by_session(session_id)

    async def send_message(
        self,
        session_id: str,
        content: str,
        sender_id: str,
        *,
        is_admin: bool,
    ) -> ChatMessage:
        if not content or not content.strip():
            raise EmptyMessageError()

        session = await self.get_session(session_id)
        if session.status == ChatStatus.CLOSED:
            raise ChatSessionClosedError(session_id)

        message = await self.messages.insert(session_id, content, sender_id)
        await self.feed.publish(InsertEvent(table="messages", new=row_to_dict(message)))

        # після запису повідомлення, щоб updated_at сесії був новішим
        await self._set_status(
            session_id,
            ChatStatus.ACTIVE if is_admin else ChatStatus.UNREAD,
        )

        if not is_admin and self.notifier is not None:
            user_name = message.sender.display_name if message.sender else sender_id
            await self.notifier.notify_new_message(session_id, sender_id, user_name, content)

        return message
