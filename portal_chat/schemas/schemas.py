from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from portal_chat.models.chat import ChatStatus


class ProfileResponse(BaseModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


class ChatMessageResponse(BaseModel):
    id: str
    session_id: str
    sender_id: str
    content: str
    created_at: datetime
    sender: Optional[ProfileResponse] = None

    class Config:
        from_attributes = True


class ChatSessionResponse(BaseModel):
    id: str
    user_id: str
    status: ChatStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AdminChatSessionResponse(ChatSessionResponse):
    user: Optional[ProfileResponse] = None


class ChatStartRequest(BaseModel):
    message: str = ""


class ChatStartResponse(BaseModel):
    session: ChatSessionResponse
    messages: List[ChatMessageResponse] = []


class MessageCreate(BaseModel):
    content: str


class SessionStatusResponse(BaseModel):
    session_id: str
    status: ChatStatus


class UnreadCountResponse(BaseModel):
    count: int
