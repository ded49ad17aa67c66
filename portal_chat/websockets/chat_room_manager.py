import logging
from typing import Dict, List, Optional

from fastapi import WebSocket

from portal_chat.realtime.change_feed import Channel, ChangeEvent, ChangeFeed, change_feed, unique_channel_name

logger = logging.getLogger(__name__)


class ChatRoomManager:
    """Кімната = сесія чату; події change feed пересилаються всім її сокетам."""

    def __init__(self, feed: ChangeFeed):
        self.feed = feed
        self.rooms: Dict[str, List[WebSocket]] = {}
        self.channels: Dict[str, Channel] = {}

    async def connect(self, room_id: str, websocket: WebSocket):
        room_id = str(room_id)
        self.rooms.setdefault(room_id, []).append(websocket)

        if room_id not in self.channels:
            async def forward(event: ChangeEvent):
                await self.send_to_room(room_id, event.model_dump(mode="json"))

            channel = self.feed.channel(unique_channel_name(f"room:{room_id}"))
            channel.on("messages", forward, events=("INSERT", "UPDATE"), filter=("session_id", room_id))
            channel.on("chat_sessions", forward, events=("UPDATE",), filter=("id", room_id))
            self.channels[room_id] = channel

    def disconnect(self, room_id: str, websocket: WebSocket):
        room_id = str(room_id)
        if room_id in self.rooms and websocket in self.rooms[room_id]:
            self.rooms[room_id].remove(websocket)
            if not self.rooms[room_id]:
                del self.rooms[room_id]
                channel = self.channels.pop(room_id, None)
                if channel is not None:
                    channel.unsubscribe()

    async def send_to_room(self, room_id: str, message: dict, exclude: Optional[WebSocket] = None):
        room_id = str(room_id)
        for ws in list(self.rooms.get(room_id, [])):
            if ws != exclude:
                try:
                    await ws.send_json(message)
                except Exception as e:
                    logger.warning(f"❌ Не вдалося надіслати подію в кімнату {room_id}: {e}")


chat_room_manager = ChatRoomManager(change_feed)
