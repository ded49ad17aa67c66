import logging

import requests

from portal_chat.config import config
from portal_chat.services.celery_config import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def send_slack_notification(self, webhook_url: str, payload: dict):
    """POST у Slack incoming webhook."""
    try:
        response = requests.post(
            webhook_url,
            json=payload,
            timeout=config.SLACK_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        logger.info("Slack chat notification delivered")
    except requests.RequestException as e:
        logger.error(f"Error sending Slack notification: {e}")
        raise self.retry(exc=e, countdown=10)
