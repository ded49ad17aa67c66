from celery import Celery

from portal_chat.config import config

celery_app = Celery("portal_chat", include=["portal_chat.services.notification_tasks"])

celery_app.conf.update(
    broker_url=config.CELERY_BROKER_URL,
    result_backend=config.CELERY_RESULT_BACKEND,
    task_routes={"portal_chat.services.notification_tasks.*": {"queue": "notifications"}},
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_ignore_result=True,
    timezone="UTC",
    enable_utc=True,
)
