import logging
from typing import Callable, List, Optional, Union

from portal_chat.client.reconciler import LocalMessage, MessageList
from portal_chat.models.chat import SYSTEM_SENDER_ID, ChatStatus
from portal_chat.realtime.change_feed import (
    Channel,
    ChangeEvent,
    ChangeFeed,
    parse_change_event,
    unique_channel_name,
)
from portal_chat.services.chat_service import CLOSED_NOTICE
from portal_chat.services.exceptions import ChatSessionClosedError
from portal_chat.utils import utcnow

logger = logging.getLogger(__name__)

WELCOME_MESSAGE_ID = "welcome-1"
WELCOME_TEXT = (
    "Frogエージェントサポートです。\n"
    "メールでのご連絡をご希望の場合は、「support@frogagent.com」へご連絡ください。 "
    "チャットでのお問い合わせをご希望の場合は、担当者が戻り次第回答させていただきます。"
)

SEND_FAILED_NOTICE = "メッセージの送信に失敗しました。再度お試しください。"
NEW_CHAT_FAILED_NOTICE = "新しいチャットの開始に失敗しました。再度お試しください。"
LOAD_FAILED_NOTICE = "メッセージの読み込みに失敗しました"

# маркер системного повідомлення про завершення сесії
CLOSED_MARKER = CLOSED_NOTICE.split("。")[0]


def welcome_message() -> LocalMessage:
    return LocalMessage(
        id=WELCOME_MESSAGE_ID,
        content=WELCOME_TEXT,
        sender_id=SYSTEM_SENDER_ID,
        created_at=utcnow(),
    )


class ChatComposer:
    """
    Стан одного вікна чату (віджет користувача або консоль адміна):
    поле вводу, список повідомлень, статус сесії та realtime-підписки.
    """

    def __init__(
        self,
        backend,
        user_id: str,
        *,
        is_admin: bool = False,
        session_id: Optional[str] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.backend = backend
        self.user_id = user_id
        self.is_admin = is_admin
        self.session_id = session_id
        self.status: Optional[ChatStatus] = None
        self.is_closed = False
        self.input_text = ""
        self.sending = False
        self.notices: List[str] = []
        self.on_change = on_change
        self.messages = MessageList(pinned=None if is_admin else [welcome_message()])

        self.feed: Optional[ChangeFeed] = None
        self._channels: List[Channel] = []

    def _changed(self):
        if self.on_change is not None:
            self.on_change()

    def _adopt_session(self, session: dict):
        self.session_id = str(session["id"])
        self.status = ChatStatus(session["status"])
        self.is_closed = self.status == ChatStatus.CLOSED

    # ───────────────────────── Завантаження ─────────────────────────
    async def load(self):
        try:
            if self.is_admin:
                session = await self.backend.get_session(self.session_id)
            else:
                session = await self.backend.get_latest_session(self.user_id)

            if session is None:
                self.messages.clear()
                self._changed()
                return

            self._adopt_session(session)
            self.messages.replace_all(await self.backend.get_messages(self.session_id))

            if self.is_admin and self.status == ChatStatus.UNREAD:
                await self.backend.mark_read(self.session_id)
                self.status = ChatStatus.READ
        except Exception as e:
            logger.error(f"❌ Failed to load chat for {self.user_id}: {e}")
            self.messages.clear()
            self.notices.append(LOAD_FAILED_NOTICE)

        self._resubscribe()
        self._changed()

    async def mark_active(self) -> bool:
        if self.session_id is None:
            return False
        ok = await self.backend.mark_active(self.session_id)
        if ok:
            self.status = ChatStatus.ACTIVE
        return ok

    # ─────────────────────────── Надсилання ───────────────────────────
    async def send(self) -> Optional[LocalMessage]:
        content = self.input_text.strip()
        if not content or self.sending or self.is_closed:
            return None

        self.sending = True
        temp = self.messages.add_optimistic(content, self.user_id, self.session_id)
        self.input_text = ""
        self._changed()

        try:
            if self.session_id is None:
                session, rows = await self.backend.create_session(self.user_id, content)
                self._adopt_session(session)
                self._resubscribe()
                row = next(
                    (r for r in rows if r["sender_id"] == self.user_id and r["content"] == content),
                    None,
                )
                if row is None:
                    raise LookupError(f"Session {self.session_id} was created without the first message")
            else:
                row = await self.backend.send_message(
                    self.session_id,
                    content,
                    self.user_id,
                    is_admin=self.is_admin,
                )
            return self.messages.resolve(temp.id, row)

        except ChatSessionClosedError:
            self.messages.rollback(temp.id)
            self.input_text = content
            self.is_closed = True
            self.status = ChatStatus.CLOSED
            self.notices.append(SEND_FAILED_NOTICE)
            return None

        except Exception as e:
            logger.warning(f"❌ Message send failed for session {self.session_id}: {e}")
            self.messages.rollback(temp.id)
            self.input_text = content
            self.notices.append(SEND_FAILED_NOTICE)
            return None

        finally:
            self.sending = False
            self._changed()

    async def start_new_chat(self) -> bool:
        """Нова сесія без першого повідомлення; стара session_id відкидається."""
        self._unsubscribe()
        self.session_id = None
        self.status = None
        self.is_closed = False
        self.messages.clear()

        try:
            session, rows = await self.backend.create_session(self.user_id, "")
        except Exception as e:
            logger.error(f"❌ Failed to start a new chat for {self.user_id}: {e}")
            self.notices.append(NEW_CHAT_FAILED_NOTICE)
            self._changed()
            return False

        self._adopt_session(session)
        self.messages.replace_all(rows)
        self._resubscribe()
        self._changed()
        return True

    async def close(self) -> bool:
        if self.session_id is None:
            return False
        try:
            await self.backend.close(self.session_id)
        except Exception as e:
            logger.error(f"❌ Failed to close session {self.session_id}: {e}")
            self.notices.append("チャットセッションの終了に失敗しました")
            return False
        self.is_closed = True
        self.status = ChatStatus.CLOSED
        self._changed()
        return True

    # ──────────────────────────── Realtime ────────────────────────────
    def handle_change(self, event: Union[ChangeEvent, dict, str]):
        if not hasattr(event, "event_type"):
            event = parse_change_event(event)

        row = event.new
        if event.table == "messages":
            if self.session_id is None or str(row.get("session_id")) != self.session_id:
                return
            if event.event_type == "INSERT":
                changed = self.messages.apply_insert(row)
                if (
                    changed
                    and row.get("sender_id") == SYSTEM_SENDER_ID
                    and CLOSED_MARKER in row.get("content", "")
                ):
                    self.is_closed = True
            else:
                changed = self.messages.apply_update(row)
            if changed:
                self._changed()

        elif event.table == "chat_sessions":
            if str(row.get("id")) != self.session_id or event.event_type != "UPDATE":
                return
            self.status = ChatStatus(row["status"])
            if self.status == ChatStatus.CLOSED:
                self.is_closed = True
            self._changed()

    def attach(self, feed: ChangeFeed):
        self.feed = feed
        self._resubscribe()

    def detach(self):
        self._unsubscribe()
        self.feed = None

    def _unsubscribe(self):
        for channel in self._channels:
            try:
                channel.unsubscribe()
            except Exception as e:
                logger.error(f"❌ Unsubscribe error: {e}")
        self._channels = []

    def _resubscribe(self):
        self._unsubscribe()
        if self.feed is None or self.session_id is None:
            return

        prefix = "admin-session" if self.is_admin else "session"
        try:
            messages = self.feed.channel(f"realtime:messages:session_id=eq.{self.session_id}")
            messages.on(
                "messages",
                self.handle_change,
                events=("INSERT", "UPDATE"),
                filter=("session_id", self.session_id),
            )
            status = self.feed.channel(unique_channel_name(f"{prefix}:{self.session_id}"))
            status.on(
                "chat_sessions",
                self.handle_change,
                events=("UPDATE",),
                filter=("id", self.session_id),
            )
            self._channels = [messages, status]
        except Exception as e:
            # без live-оновлень; прямі відповіді все одно узгоджують стан
            logger.error(f"❌ Realtime subscription failed for {self.session_id}: {e}")
