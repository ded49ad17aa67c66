from portal_chat.services.notification_service import (
    InMemoryRateLimiter,
    NotificationDispatcher,
    RedisRateLimiter,
    build_chat_message_payload,
    truncate_message,
)

from .conftest import WEBHOOK_URL, FakeDelivery


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.calls = []

    async def set(self, key, value, nx=False, ex=None):
        self.calls.append((key, ex))
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True


def make_dispatcher(delivery, **kwargs):
    options = {
        "rate_limiter": InMemoryRateLimiter(3600, clock=FakeClock()),
        "deliver": delivery,
        "webhook_url": WEBHOOK_URL,
    }
    options.update(kwargs)
    return NotificationDispatcher(**options)


async def test_rate_limiter_allows_once_per_interval():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(3600, clock=clock)

    assert await limiter.allow("user-1") is True
    clock.now += 1800
    assert await limiter.allow("user-1") is False
    assert await limiter.allow("user-2") is True

    clock.now += 1801
    assert await limiter.allow("user-1") is True


async def test_rate_limiter_boundary_is_still_throttled():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(60, clock=clock)

    await limiter.allow("user-1")
    clock.now += 60

    assert await limiter.allow("user-1") is False


async def test_redis_rate_limiter_uses_expiring_key():
    redis = FakeRedis()
    limiter = RedisRateLimiter(redis, 3600)

    assert await limiter.allow("user-1") is True
    assert await limiter.allow("user-1") is False
    assert redis.calls[0] == ("chat_notify:user-1", 3600)


def test_long_messages_are_truncated():
    assert truncate_message("a" * 100) == "a" * 100
    assert truncate_message("a" * 101) == "a" * 97 + "..."


def test_payload_layout():
    payload = build_chat_message_payload(
        "s-1", "user-1", "Taro Yamada", "Hello", app_url="https://members.frog.test/", now=1700000000
    )

    attachment = payload["attachments"][0]
    assert attachment["color"] == "#36a64f"
    assert attachment["title"] == "💬 新着メッセージ"
    assert attachment["footer"] == "Frog Members Portal"
    assert attachment["ts"] == 1700000000
    assert [f["title"] for f in attachment["fields"]] == ["ユーザー", "ユーザーID", "メッセージ", "チャット"]
    assert attachment["fields"][3]["value"] == (
        "<https://members.frog.test/dashboard/chat/s-1|こちらから返信する>"
    )


def test_payload_without_app_url_has_no_link():
    payload = build_chat_message_payload("s-1", "user-1", "Taro", "Hello")

    assert len(payload["attachments"][0]["fields"]) == 3


async def test_second_message_within_interval_is_suppressed():
    delivery = FakeDelivery()
    dispatcher = make_dispatcher(delivery)

    assert await dispatcher.notify_new_message("s-1", "user-1", "Taro", "Hello") is True
    assert await dispatcher.notify_new_message("s-1", "user-1", "Taro", "Again") is False

    assert len(delivery.calls) == 1
    webhook_url, payload = delivery.calls[0]
    assert webhook_url == WEBHOOK_URL
    assert payload["attachments"][0]["fields"][2]["value"] == "Hello"


async def test_missing_webhook_url_skips_delivery():
    delivery = FakeDelivery()
    dispatcher = make_dispatcher(delivery, webhook_url=None)

    assert await dispatcher.notify_new_message("s-1", "user-1", "Taro", "Hello") is False
    assert delivery.calls == []


async def test_test_mode_builds_but_does_not_deliver():
    delivery = FakeDelivery()
    dispatcher = make_dispatcher(delivery, test_mode=True)

    assert await dispatcher.notify_new_message("s-1", "user-1", "Taro", "Hello") is True
    assert delivery.calls == []


async def test_delivery_errors_are_swallowed():
    dispatcher = make_dispatcher(FakeDelivery(fail=True))

    assert await dispatcher.notify_new_message("s-1", "user-1", "Taro", "Hello") is False


async def test_limiter_errors_are_swallowed():
    class BrokenLimiter:
        async def allow(self, key):
            raise ConnectionError("redis is down")

    delivery = FakeDelivery()
    dispatcher = make_dispatcher(delivery, rate_limiter=BrokenLimiter())

    assert await dispatcher.notify_new_message("s-1", "user-1", "Taro", "Hello") is False
    assert delivery.calls == []
