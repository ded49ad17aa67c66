"""Slack notifications about new end-user chat messages.

Notifications are throttled per sender through an injected rate limiter and
handed to a delivery callable (by default a Celery task). Nothing raised here
ever reaches the chat flow.
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from portal_chat.config import config

logger = logging.getLogger(__name__)

MESSAGE_PREVIEW_LIMIT = 100
FOOTER = "Frog Members Portal"


class InMemoryRateLimiter:
    """Остання відправка по ключу в пам'яті процесу (скидається при рестарті)."""

    def __init__(self, interval_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.interval = interval_seconds
        self.clock = clock
        self.last_sent: Dict[str, float] = {}

    async def allow(self, key: str) -> bool:
        now = self.clock()
        last = self.last_sent.get(key)
        if last is not None and now - last <= self.interval:
            return False
        self.last_sent[key] = now
        return True


class RedisRateLimiter:
    """Той самий ліміт, але спільний для всіх процесів (SET NX EX)."""

    def __init__(self, redis, interval_seconds: int, prefix: str = "chat_notify"):
        self.redis = redis
        self.interval = int(interval_seconds)
        self.prefix = prefix

    async def allow(self, key: str) -> bool:
        created = await self.redis.set(f"{self.prefix}:{key}", "1", nx=True, ex=self.interval)
        return bool(created)


def truncate_message(message: str, limit: int = MESSAGE_PREVIEW_LIMIT) -> str:
    if len(message) > limit:
        return message[: limit - 3] + "..."
    return message


def build_chat_message_payload(
    session_id: str,
    user_id: str,
    user_name: str,
    message: str,
    app_url: Optional[str] = None,
    now: Optional[float] = None,
) -> dict:
    fields: List[dict] = [
        {"title": "ユーザー", "value": user_name, "short": True},
        {"title": "ユーザーID", "value": user_id, "short": True},
        {"title": "メッセージ", "value": truncate_message(message), "short": False},
    ]
    if app_url:
        chat_link = f"{app_url.rstrip('/')}/dashboard/chat/{session_id}"
        fields.append({"title": "チャット", "value": f"<{chat_link}|こちらから返信する>", "short": False})

    return {
        "attachments": [
            {
                "color": "#36a64f",
                "title": "💬 新着メッセージ",
                "text": f"{user_name}さんから新着メッセージがあります。",
                "fields": fields,
                "footer": FOOTER,
                "ts": int(now if now is not None else time.time()),
            }
        ]
    }


def enqueue_slack_notification(webhook_url: str, payload: dict):
    from portal_chat.services.notification_tasks import send_slack_notification

    send_slack_notification.delay(webhook_url, payload)


class NotificationDispatcher:
    def __init__(
        self,
        rate_limiter,
        deliver: Callable[[str, dict], None] = enqueue_slack_notification,
        webhook_url: Optional[str] = None,
        app_url: Optional[str] = None,
        test_mode: bool = False,
    ):
        self.rate_limiter = rate_limiter
        self.deliver = deliver
        self.webhook_url = webhook_url
        self.app_url = app_url
        self.test_mode = test_mode

    async def notify_new_message(self, session_id: str, user_id: str, user_name: str, message: str) -> bool:
        """True, якщо сповіщення передано на доставку."""
        try:
            if not self.webhook_url:
                logger.warning("⚠️ Slack webhook URL is not configured, skipping chat notification")
                return False

            if not await self.rate_limiter.allow(user_id):
                logger.debug(f"Chat notification for {user_id} throttled")
                return False

            payload = build_chat_message_payload(session_id, user_id, user_name, message, self.app_url)
            if self.test_mode:
                logger.info(f"Slack test mode, payload for session {session_id} not sent")
                return True

            self.deliver(self.webhook_url, payload)
            return True
        except Exception as e:
            logger.error(f"❌ Chat notification for session {session_id} failed: {e}")
            return False


def create_dispatcher(redis=None) -> NotificationDispatcher:
    if redis is not None:
        limiter = RedisRateLimiter(redis, config.NOTIFICATION_INTERVAL_SECONDS)
    else:
        limiter = InMemoryRateLimiter(config.NOTIFICATION_INTERVAL_SECONDS)

    return NotificationDispatcher(
        rate_limiter=limiter,
        webhook_url=config.slack_webhook_url,
        app_url=config.APP_URL,
        test_mode=config.SLACK_TEST_MODE,
    )
