import logging
from contextlib import asynccontextmanager
from logging.config import dictConfig

from fastapi import FastAPI

from portal_chat.config import LogConfig, config
from portal_chat.dependencies.cache import redis_client
from portal_chat.dependencies.chat import notification_dispatcher
from portal_chat.dependencies.database import SessionLocal, init_db
from portal_chat.middlewares.middlewares import setup_middlewares
from portal_chat.realtime.change_feed import change_feed
from portal_chat.roles import ensure_admin_role
from portal_chat.routers import admin_chat_router, chat_router
from portal_chat.services.notification_service import RedisRateLimiter

dictConfig(LogConfig().model_dump())
logger = logging.getLogger("portal_chat")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Ресурси на час життя API"""

    try:
        await init_db()

        async with SessionLocal() as db:
            await ensure_admin_role(db)

        if config.USE_REDIS_FEED:
            await redis_client.ping()
            change_feed.redis = redis_client
            await change_feed.start()
            notification_dispatcher.rate_limiter = RedisRateLimiter(
                redis_client,
                config.NOTIFICATION_INTERVAL_SECONDS,
            )
            logger.info("✅ Redis change feed підключено")
        else:
            logger.info("Change feed працює в межах процесу")

        yield

    except Exception as e:
        logger.error(f"❌ Помилка при запуску сервера: {e}")
        raise e

    finally:
        await change_feed.stop()
        if config.USE_REDIS_FEED:
            await redis_client.aclose()
            logger.info("🔴 Підключення до Redis закрито")


app = FastAPI(
    lifespan=lifespan,
    title="Portal Chat API",
    description="Чат підтримки порталу: сесії, повідомлення, realtime",
    version="1.0",
)

setup_middlewares(app)

app.include_router(chat_router.router, prefix="/api/v1")
app.include_router(admin_chat_router.router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok"}


logger.info("✅ Portal Chat API успішно запущено!")
