import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal_chat.dependencies.chat import get_chat_service
from portal_chat.dependencies.database import get_db
from portal_chat.schemas.schemas import (
    AdminChatSessionResponse,
    ChatSessionResponse,
    UnreadCountResponse,
)
from portal_chat.models.chat import ChatStatus
from portal_chat.services.chat_service import ChatService
from portal_chat.services.exceptions import ChatCloseError, ChatSessionClosedError, ChatSessionNotFound
from portal_chat.services.user_service import CurrentUser, admin_required, get_ws_user
from portal_chat.websockets.chat_queue_manager import chat_queue_manager

router = APIRouter(prefix="/admin/chats", tags=["Admin chat"])

CLOSED_SESSION_DETAIL = "This chat session is closed and cannot be reopened"

logger = logging.getLogger(__name__)


@router.get("", response_model=List[AdminChatSessionResponse])
async def list_chat_sessions(
    service: ChatService = Depends(get_chat_service),
    _: CurrentUser = Depends(admin_required),
):
    return await service.list_admin_sessions()


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    service: ChatService = Depends(get_chat_service),
    _: CurrentUser = Depends(admin_required),
):
    return UnreadCountResponse(count=await service.count_unread_sessions())


@router.post("/{session_id}/read", response_model=ChatSessionResponse)
async def mark_read(
    session_id: str,
    service: ChatService = Depends(get_chat_service),
    _: CurrentUser = Depends(admin_required),
):
    try:
        await service.mark_read(session_id)
    except ChatSessionNotFound:
        raise HTTPException(status_code=404, detail="Chat session not found")
    except ChatSessionClosedError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CLOSED_SESSION_DETAIL)
    return await service.get_session(session_id)


@router.post("/{session_id}/active", response_model=ChatSessionResponse)
async def mark_active(
    session_id: str,
    service: ChatService = Depends(get_chat_service),
    _: CurrentUser = Depends(admin_required),
):
    try:
        session = await service.get_session(session_id)
    except ChatSessionNotFound:
        raise HTTPException(status_code=404, detail="Chat session not found")

    if session.status == ChatStatus.CLOSED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=CLOSED_SESSION_DETAIL)

    if not await service.mark_active(session_id):
        raise HTTPException(status_code=500, detail="Failed to mark chat session active")
    return await service.get_session(session_id)


@router.post("/{session_id}/close", response_model=ChatSessionResponse)
async def close_chat(
    session_id: str,
    service: ChatService = Depends(get_chat_service),
    _: CurrentUser = Depends(admin_required),
):
    try:
        return await service.close(session_id)
    except ChatSessionNotFound:
        raise HTTPException(status_code=404, detail="Chat session not found")
    except ChatCloseError:
        raise HTTPException(status_code=500, detail="Failed to close chat session")


@router.websocket("/ws")
async def admin_sessions_ws(websocket: WebSocket, db: AsyncSession = Depends(get_db)):
    try:
        user = await get_ws_user(websocket, db)
    except HTTPException as e:
        logger.warning(f"❌ Auth WS queue error: {e.detail}")
        await websocket.close(code=1008)
        return

    if not user.is_admin:
        logger.warning("⛔ Not an admin!")
        await websocket.close(code=1008)
        return

    await websocket.accept()
    await chat_queue_manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        chat_queue_manager.disconnect(websocket)
