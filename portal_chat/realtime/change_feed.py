"""In-process change feed for ``messages`` and ``chat_sessions`` rows.

Writers publish an event after their transaction commits; subscribers get
every event whose table, event type and column filter match. When a Redis
client is attached, events travel through a Redis pub/sub channel so that
every worker process relays them to its own local subscribers.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Annotated, Any, Awaitable, Callable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, TypeAdapter

logger = logging.getLogger(__name__)

REDIS_CHANNEL = "portal_chat:changes"


class InsertEvent(BaseModel):
    event_type: Literal["INSERT"] = "INSERT"
    table: str
    new: Dict[str, Any]


class UpdateEvent(BaseModel):
    event_type: Literal["UPDATE"] = "UPDATE"
    table: str
    new: Dict[str, Any]
    old: Dict[str, Any] = Field(default_factory=dict)


ChangeEvent = Annotated[Union[InsertEvent, UpdateEvent], Field(discriminator="event_type")]

change_event_adapter = TypeAdapter(ChangeEvent)


def parse_change_event(payload: Union[str, bytes, dict]) -> ChangeEvent:
    if isinstance(payload, (str, bytes)):
        return change_event_adapter.validate_json(payload)
    return change_event_adapter.validate_python(payload)


Callback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


@dataclass
class Subscription:
    name: str
    table: str
    callback: Callback
    events: Tuple[str, ...] = ("INSERT", "UPDATE")
    filter: Optional[Tuple[str, str]] = None

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table or event.event_type not in self.events:
            return False
        if self.filter is None:
            return True
        column, value = self.filter
        return str(event.new.get(column)) == value


@dataclass
class Channel:
    """Група підписок з унікальним ім'ям (як realtime-канал клієнта)."""

    feed: "ChangeFeed"
    name: str
    subscriptions: List[Subscription] = field(default_factory=list)

    def on(
        self,
        table: str,
        callback: Callback,
        events: Tuple[str, ...] = ("INSERT", "UPDATE"),
        filter: Optional[Tuple[str, str]] = None,
    ) -> "Channel":
        sub = Subscription(
            name=self.name,
            table=table,
            callback=callback,
            events=tuple(events),
            filter=filter,
        )
        self.subscriptions.append(sub)
        self.feed._add(sub)
        return self

    def unsubscribe(self):
        for sub in self.subscriptions:
            self.feed._remove(sub)
        self.subscriptions.clear()
        self.feed.channels.pop(self.name, None)


def unique_channel_name(prefix: str) -> str:
    return f"{prefix}:{int(time.time() * 1000)}"


class ChangeFeed:
    def __init__(self, redis=None):
        self.redis = redis
        self.channels: Dict[str, Channel] = {}
        self._subscriptions: List[Subscription] = []
        self._listener: Optional[asyncio.Task] = None

    def channel(self, name: str) -> Channel:
        # однакові імена при швидкому повторному відкритті - додаємо суфікс
        while name in self.channels:
            name = f"{name}+"
        channel = Channel(feed=self, name=name)
        self.channels[name] = channel
        return channel

    def _add(self, sub: Subscription):
        self._subscriptions.append(sub)

    def _remove(self, sub: Subscription):
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: ChangeEvent):
        if self.redis is not None:
            try:
                await self.redis.publish(REDIS_CHANNEL, event.model_dump_json())
                return
            except Exception as e:
                logger.error(f"❌ Redis publish failed, dispatching locally: {e}")
        await self.dispatch(event)

    async def dispatch(self, event: ChangeEvent):
        for sub in list(self._subscriptions):
            if not sub.matches(event):
                continue
            try:
                result = sub.callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"❌ Subscriber {sub.name} failed on {event.event_type} {event.table}: {e}")

    async def start(self):
        """Запускає relay з Redis у локальних підписників."""
        if self.redis is None or self._listener is not None:
            return
        self._listener = asyncio.create_task(self._listen())

    async def stop(self):
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None

    async def _listen(self):
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(REDIS_CHANNEL)
        logger.info(f"✅ Change feed listening on {REDIS_CHANNEL}")
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    event = parse_change_event(message["data"])
                except ValueError as e:
                    logger.warning(f"⚠️ Skipping malformed change event: {e}")
                    continue
                await self.dispatch(event)
        finally:
            await pubsub.unsubscribe(REDIS_CHANNEL)
            await pubsub.close()


change_feed = ChangeFeed()
