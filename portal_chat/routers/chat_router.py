import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal_chat.dependencies.chat import get_chat_service
from portal_chat.dependencies.database import get_db
from portal_chat.models.chat import ChatSession
from portal_chat.schemas.schemas import (
    ChatMessageResponse,
    ChatSessionResponse,
    ChatStartRequest,
    ChatStartResponse,
    MessageCreate,
    SessionStatusResponse,
)
from portal_chat.services.chat_service import ChatService
from portal_chat.services.exceptions import (
    ChatSessionClosedError,
    ChatSessionNotFound,
    EmptyMessageError,
)
from portal_chat.services.user_service import CurrentUser, get_current_user, get_ws_user
from portal_chat.websockets.chat_room_manager import chat_room_manager

router = APIRouter(prefix="/chat", tags=["Chat"])

logger = logging.getLogger(__name__)


async def get_accessible_session(
    service: ChatService,
    session_id: str,
    current_user: CurrentUser,
) -> ChatSession:
    try:
        session = await service.get_session(session_id)
    except ChatSessionNotFound:
        raise HTTPException(status_code=404, detail="Chat session not found")

    if session.user_id != current_user.id and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access to this chat session is denied",
        )
    return session


@router.get("/session/latest", response_model=Optional[ChatSessionResponse])
async def get_latest_session(
    service: ChatService = Depends(get_chat_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await service.get_latest_session(current_user.id)


@router.post(
    "/sessions",
    response_model=ChatStartResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_chat(
    payload: ChatStartRequest,
    service: ChatService = Depends(get_chat_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    session = await service.create_session(current_user.id, payload.message)
    messages = await service.get_messages(session.id)

    return ChatStartResponse(
        session=ChatSessionResponse.model_validate(session),
        messages=[ChatMessageResponse.model_validate(m) for m in messages],
    )


@router.get("/sessions/{session_id}", response_model=ChatSessionResponse)
async def get_session(
    session_id: str,
    service: ChatService = Depends(get_chat_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    return await get_accessible_session(service, session_id, current_user)


@router.get("/sessions/{session_id}/status", response_model=SessionStatusResponse)
async def get_session_status(
    session_id: str,
    service: ChatService = Depends(get_chat_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    session = await get_accessible_session(service, session_id, current_user)
    return SessionStatusResponse(session_id=session.id, status=session.status)


@router.get("/sessions/{session_id}/messages", response_model=List[ChatMessageResponse])
async def get_messages(
    session_id: str,
    service: ChatService = Depends(get_chat_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    await get_accessible_session(service, session_id, current_user)
    return await service.get_messages(session_id)


@router.post(
    "/sessions/{session_id}/messages",
    response_model=ChatMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    session_id: str,
    payload: MessageCreate,
    service: ChatService = Depends(get_chat_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    await get_accessible_session(service, session_id, current_user)

    try:
        return await service.send_message(
            session_id,
            payload.content,
            current_user.id,
            is_admin=current_user.is_admin,
        )
    except EmptyMessageError:
        raise HTTPException(status_code=400, detail="Message content is required")
    except ChatSessionClosedError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This chat session is closed. Start a new chat to continue.",
        )


@router.websocket("/ws/{session_id}")
async def chat_session_ws(
    websocket: WebSocket,
    session_id: str,
    db: AsyncSession = Depends(get_db),
):
    try:
        user = await get_ws_user(websocket, db)
        session = await db.get(ChatSession, session_id)
    except HTTPException as e:
        logger.warning(f"❌ WS auth error: {e.detail}")
        await websocket.close(code=1008)
        return

    if session is None:
        logger.warning(f"❌ Сесія {session_id} не знайдена!")
        await websocket.close(code=1008)
        return

    if session.user_id != user.id and not user.is_admin:
        logger.warning("🚫 Доступ до чату заборонено.")
        await websocket.close(code=1008)
        return

    await websocket.accept()
    await chat_room_manager.connect(session_id, websocket)
    try:
        while True:
            # клієнт нічого не надсилає, лише тримає з'єднання
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        chat_room_manager.disconnect(session_id, websocket)
