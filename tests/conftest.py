import os

# Must be set before showroom.core.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = ""
os.environ["SENTRY_DSN"] = ""
os.environ["EMAIL_FUNCTION_URL"] = ""
os.environ["STORAGE_UPLOAD_URL"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["SECRET_KEY"] = "test-secret"

import json
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from showroom.core.config import Settings
from showroom.core.database import Base
from showroom.models import audit, catalog, content, email_log, payment, user  # noqa: F401
from showroom.models.catalog import Vehicle
from showroom.models.user import User
from showroom.services.notification_service import NotificationService
from showroom.services.storage_service import StorageService

AGENT_EMAIL = "agent@wuxibyd.test"
MAIL_URL = "https://mail.test/send"
STORAGE_URL = "https://storage.test/upload"


@pytest_asyncio.fixture
async def session():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with SessionLocal() as s:
        yield s
    await engine.dispose()


class Mailbox:
    """Stands in for the hosted email function; records every POST it receives."""

    def __init__(self):
        self.sent = []
        self.headers = []
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.sent.append(json.loads(request.content))
        self.headers.append(dict(request.headers))
        if self.fail:
            return httpx.Response(500, json={"error": "mail backend down"})
        return httpx.Response(200, json={"ok": True})

    def templates(self):
        return [m["template_id"] for m in self.sent]

    def last(self, template_id: str) -> dict:
        return [m for m in self.sent if m["template_id"] == template_id][-1]


class Bucket:
    """Stands in for the object storage endpoint."""

    def __init__(self):
        self.files = []
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(503)
        self.files.append(request.content)
        return httpx.Response(200, json={"url": f"https://cdn.test/receipts/{len(self.files)}.png"})


@pytest.fixture
def mailbox():
    return Mailbox()


@pytest.fixture
def mail_settings():
    return Settings(EMAIL_FUNCTION_URL=MAIL_URL, EMAIL_FUNCTION_KEY="test-key", AGENT_EMAIL=AGENT_EMAIL)


@pytest_asyncio.fixture
async def notifier(session, mailbox, mail_settings):
    async with httpx.AsyncClient(transport=httpx.MockTransport(mailbox.handler)) as client:
        yield NotificationService(session, client=client, settings=mail_settings)


@pytest.fixture
def bucket():
    return Bucket()


@pytest_asyncio.fixture
async def storage(bucket):
    async with httpx.AsyncClient(transport=httpx.MockTransport(bucket.handler)) as client:
        yield StorageService(client=client, settings=Settings(STORAGE_UPLOAD_URL=STORAGE_URL))


@pytest.fixture
def make_user(session):
    async def factory(name="Li Wei", email=None, balance=0, is_admin=False) -> User:
        user = User(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.com",
            balance=Decimal(str(balance)),
            is_admin=is_admin,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user
    return factory


@pytest.fixture
def make_vehicle(session):
    async def factory(name="BYD Seal", price=212800, type="Sedan") -> Vehicle:
        vehicle = Vehicle(name=name, type=type, price=Decimal(str(price)), description="", specs=[])
        session.add(vehicle)
        await session.commit()
        await session.refresh(vehicle)
        return vehicle
    return factory
