from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from portal_chat.config import config

connect_args = {"ssl": True} if config.DATABASE_SSL else {}

engine = create_async_engine(
    config.DATABASE_URL,
    echo=config.DATABASE_ECHO,
    future=True,
    connect_args=connect_args,
    execution_options={"compiled_cache": None},
)

SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db():
    async with SessionLocal() as session:
        yield session


async def init_db():
    """Створення таблиць під час старту (міграції - через alembic)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
