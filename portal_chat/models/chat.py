import uuid
from enum import Enum as PyEnum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from portal_chat.dependencies.database import Base
from portal_chat.utils import utcnow

SYSTEM_SENDER_ID = "system"


class ChatStatus(str, PyEnum):
    UNREAD = "unread"
    READ = "read"
    ACTIVE = "active"
    CLOSED = "closed"


def _new_id() -> str:
    return str(uuid.uuid4())


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(
        String(64),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    status = Column(
        Enum(
            ChatStatus,
            native_enum=False,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=ChatStatus.UNREAD,
        nullable=False,
    )
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    user = relationship("Profile", foreign_keys=[user_id])
    messages = relationship(
        "ChatMessage",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ChatMessage.created_at",
    )


class ChatMessage(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    session_id = Column(
        String(36),
        ForeignKey("chat_sessions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    # user id або "system" - тому без FK на profiles
    sender_id = Column(String(64), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    session = relationship("ChatSession", back_populates="messages")
    sender = relationship(
        "Profile",
        primaryjoin="foreign(ChatMessage.sender_id) == Profile.id",
        viewonly=True,
    )
