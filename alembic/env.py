import os
from logging.config import fileConfig

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url

from alembic import context
from portal_chat.config import config as app_config
from portal_chat.models import Base

load_dotenv()


def sync_database_url() -> str:
    """ALEMBIC_DATABASE_URL, або DATABASE_URL сервісу без async-драйвера."""
    explicit = os.getenv("ALEMBIC_DATABASE_URL")
    if explicit:
        return explicit

    url = make_url(app_config.DATABASE_URL)
    if url.drivername.endswith("+asyncpg"):
        url = url.set(drivername="postgresql")
    elif url.drivername.endswith("+aiosqlite"):
        url = url.set(drivername="sqlite")

    if url.get_backend_name() == "postgresql" and app_config.DATABASE_SSL and "sslmode" not in url.query:
        url = url.update_query_dict({"sslmode": "require"})
    return url.render_as_string(hide_password=False)


DATABASE_URL = sync_database_url()

config = context.config
config.set_main_option("sqlalchemy.url", DATABASE_URL.replace("%", "%%"))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """SQL-скрипт без підключення до БД."""
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=DATABASE_URL.startswith("sqlite"),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(DATABASE_URL, execution_options={"compiled_cache": None})

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
