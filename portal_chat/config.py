from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Config(BaseSettings):
    """Налаштування сервісу чату (з оточення або .env)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # База даних
    DATABASE_URL: str = "sqlite+aiosqlite:///./portal_chat.db"
    DATABASE_SSL: bool = False
    DATABASE_ECHO: bool = False

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    USE_REDIS_FEED: bool = False

    # JWT від провайдера автентифікації порталу
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: Optional[str] = None

    # Slack
    SLACK_CHAT_WEBHOOK_URL: Optional[str] = None
    SLACK_ADMIN_WEBHOOK_URL: Optional[str] = None
    SLACK_TEST_MODE: bool = False
    SLACK_TIMEOUT_SECONDS: float = 10.0
    NOTIFICATION_INTERVAL_SECONDS: int = 60 * 60

    APP_URL: Optional[str] = None
    ADMIN_USER_ID: Optional[str] = None

    LOG_LEVEL: str = "INFO"

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def slack_webhook_url(self) -> Optional[str]:
        return self.SLACK_CHAT_WEBHOOK_URL or self.SLACK_ADMIN_WEBHOOK_URL

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}"


config = Config()


class LogConfig(BaseModel):
    """Конфігурація логування для dictConfig"""

    LOGGER_NAME: str = "portal_chat"
    LOG_FORMAT: str = "%(levelprefix)s | %(asctime)s | %(name)s | %(message)s"
    LOG_LEVEL: str = config.LOG_LEVEL

    version: int = 1
    disable_existing_loggers: bool = False
    formatters: dict = {
        "default": {
            "()": "uvicorn.logging.DefaultFormatter",
            "fmt": LOG_FORMAT,
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    }
    handlers: dict = {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
    }
    loggers: dict = {
        LOGGER_NAME: {"handlers": ["default"], "level": LOG_LEVEL},
    }
