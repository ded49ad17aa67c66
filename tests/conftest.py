import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import httpx
import pytest
import pytest_asyncio
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from portal_chat.config import config
from portal_chat.models import AdminRole, Base, Profile
from portal_chat.realtime.change_feed import ChangeFeed
from portal_chat.services.chat_service import ChatService
from portal_chat.services.notification_service import InMemoryRateLimiter, NotificationDispatcher

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
ADMIN_ID = "admin-1"
WEBHOOK_URL = "https://hooks.slack.test/services/T000/B000/XXX"


class FakeDelivery:
    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    def __call__(self, webhook_url: str, payload: dict):
        if self.fail:
            raise ConnectionError("broker is down")
        self.calls.append((webhook_url, payload))


def make_token(user_id: str) -> str:
    return jwt.encode(
        {"sub": user_id, "email": f"{user_id}@example.com"},
        config.JWT_SECRET,
        algorithm=config.JWT_ALGORITHM,
    )


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def seed_profiles(session_factory):
    async with session_factory() as session:
        session.add_all(
            [
                Profile(id=USER_ID, email="taro@example.com", first_name="Taro", last_name="Yamada"),
                Profile(id=OTHER_USER_ID, email="hanako@example.com"),
                Profile(id=ADMIN_ID, email="support@frogagent.com", first_name="Frog", last_name="Support"),
            ]
        )
        session.add(AdminRole(user_id=ADMIN_ID))
        await session.commit()


@pytest_asyncio.fixture
async def profiles(session_factory):
    await seed_profiles(session_factory)



@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def delivery():
    return FakeDelivery()


@pytest.fixture
def notifier(delivery):
    return NotificationDispatcher(
        rate_limiter=InMemoryRateLimiter(3600),
        deliver=delivery,
        webhook_url=WEBHOOK_URL,
        app_url="https://members.frog.test",
    )


@pytest_asyncio.fixture
async def service(db, feed, notifier, profiles):
    return ChatService(db, feed, notifier)


@pytest.fixture
def recorded_events(feed):
    events = []
    feed.channel("recorder").on("messages", events.append).on("chat_sessions", events.append)
    return events


@pytest_asyncio.fixture
async def app(session_factory, feed, notifier, profiles):
    from portal_chat.dependencies.chat import get_change_feed, get_notifier
    from portal_chat.dependencies.database import get_db
    from portal_chat.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_change_feed] = lambda: feed
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def api(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}
