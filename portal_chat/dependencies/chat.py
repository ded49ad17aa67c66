from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal_chat.dependencies.database import get_db
from portal_chat.realtime.change_feed import ChangeFeed, change_feed
from portal_chat.services.chat_service import ChatService
from portal_chat.services.notification_service import NotificationDispatcher, create_dispatcher

notification_dispatcher = create_dispatcher()


def get_change_feed() -> ChangeFeed:
    return change_feed


def get_notifier() -> NotificationDispatcher:
    return notification_dispatcher


async def get_chat_service(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ChatService:
    return ChatService(db, feed, notifier)
