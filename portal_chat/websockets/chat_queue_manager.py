import logging
from typing import List, Optional

from fastapi import WebSocket

from portal_chat.realtime.change_feed import Channel, ChangeEvent, ChangeFeed, change_feed, unique_channel_name

logger = logging.getLogger(__name__)


class ChatQueueManager:
    """Адмінський inbox: усі зміни chat_sessions."""

    def __init__(self, feed: ChangeFeed):
        self.feed = feed
        self.active_connections: List[WebSocket] = []
        self.channel: Optional[Channel] = None

    async def connect(self, websocket: WebSocket):
        self.active_connections.append(websocket)
        if self.channel is None:
            self.channel = self.feed.channel(unique_channel_name("chat_updates"))
            self.channel.on("chat_sessions", self.broadcast, events=("INSERT", "UPDATE"))

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        if not self.active_connections and self.channel is not None:
            self.channel.unsubscribe()
            self.channel = None

    async def broadcast(self, event: ChangeEvent):
        payload = event.model_dump(mode="json")
        for connection in list(self.active_connections):
            try:
                await connection.send_json(payload)
            except Exception as e:
                logger.warning(f"❌ Не вдалося надіслати подію адміну: {e}")


chat_queue_manager = ChatQueueManager(change_feed)
