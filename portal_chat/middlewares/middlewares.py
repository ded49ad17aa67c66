import logging

from fastapi.middleware.cors import CORSMiddleware

from portal_chat.config import config

logger = logging.getLogger(__name__)

# API чату використовує лише GET/POST; токен - у заголовку або в куці
CHAT_METHODS = ["GET", "POST", "OPTIONS"]
CHAT_HEADERS = ["Authorization", "Content-Type"]


def setup_middlewares(app):
    allow_origins = config.allowed_origins
    if "*" in allow_origins:
        # з credentials браузер не приймає wildcard
        logger.warning("⚠️ ALLOWED_ORIGINS contains '*', cookies will not be sent cross-origin")
    logger.info(f"Allowed CORS origins for chat API: {allow_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=CHAT_METHODS,
        allow_headers=CHAT_HEADERS,
    )
