"""Shared fixtures for the ContentDesk API test suite."""

import os
import uuid
from datetime import date, datetime, timedelta, timezone

# Settings are read at import time, so the environment must be ready first.
os.environ.update({
    "ENVIRONMENT": "test",
    "DATABASE_URL": "sqlite+aiosqlite://",
    "SUPABASE_JWT_SECRET": "test-jwt-secret",
    "LATE_API_KEY": "late-test-key",
    "BLOB_READ_WRITE_TOKEN": "blob-test-token",
    "STRIPE_SECRET_KEY": "sk_test_123",
    "STRIPE_WEBHOOK_SECRET": "whsec_test",
    "STRIPE_STARTER_PRICE_ID": "price_starter",
    "STRIPE_PROFESSIONAL_PRICE_ID": "price_professional",
    "STRIPE_AGENCY_PRICE_ID": "price_agency",
    "STRIPE_CREDITS_50_PRICE_ID": "price_credits_50",
    "CRON_SECRET": "cron-secret",
    "CORS_ORIGINS": "*",
})

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy import event, select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app.core import tiers  # noqa: E402
from app.core.rate_limit import limiter  # noqa: E402
from app.crud.subscription import apply_tier_limits  # noqa: E402
from app.db import models  # noqa: E402,F401
from app.db.base import Base  # noqa: E402
from app.db.models.approval import ApprovalSession  # noqa: E402
from app.db.models.billing import Subscription  # noqa: E402
from app.db.models.calendar import ScheduledPost, UnscheduledPost  # noqa: E402
from app.db.models.client import Client, Project  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.services import late as late_service  # noqa: E402
from main import app  # noqa: E402

JWT_SECRET = "test-jwt-secret"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database per test, with working SAVEPOINTs and foreign keys."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def client(session_factory):
    """HTTP client for the app with ``get_db`` bound to the test database."""

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    limiter.reset()
    yield
    limiter.reset()


# ---------------------------------------------------------------------------
# Late
# ---------------------------------------------------------------------------
class FakeLate:
    """Records calls instead of talking to Late."""

    def __init__(self, response=None):
        self.response = response if response is not None else {"post": {"_id": "late_abc"}}
        self.created = []
        self.deleted = []
        self.profiles = []
        self.connects = []
        self.profile_error = None

    async def list_accounts(self, profile_id):
        return [{"_id": "acc_1", "platform": "instagram", "profileId": profile_id}]

    async def create_post(self, payload):
        self.created.append(payload)
        return self.response

    async def delete_post(self, late_post_id):
        self.deleted.append(late_post_id)
        return {}

    async def create_profile(self, name, description, color="#4ade80"):
        if self.profile_error is not None:
            raise self.profile_error
        self.profiles.append({"name": name, "description": description, "color": color})
        return f"prof_{len(self.profiles)}"

    async def connect_url(self, platform, profile_id, redirect_url):
        self.connects.append((platform, profile_id, redirect_url))
        return f"https://late.example.com/oauth/{platform}?profileId={profile_id}"


@pytest.fixture(autouse=True)
def fake_late(monkeypatch):
    fake = FakeLate()
    monkeypatch.setattr(late_service, "get_late_client", lambda: fake)
    return fake


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
def make_token(user_id, email="owner@example.com", secret=JWT_SECRET, expires_in=3600):
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "email": email,
        "aud": "authenticated",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    return jwt.encode(claims, secret, algorithm="HS256")


def auth_headers(user_id):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def owner_id():
    return uuid.uuid4()


@pytest.fixture
def other_user_id():
    return uuid.uuid4()


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------
class Seeder:
    """Inserts rows in short-lived sessions so the API sees committed data."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def add(self, obj):
        async with self.session_factory() as session:
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
        return obj

    async def client(self, user_id, **fields):
        fields.setdefault("name", "Acme Coffee")
        return await self.add(Client(user_id=user_id, **fields))

    async def project(self, client, **fields):
        fields.setdefault("name", "Spring launch")
        return await self.add(Project(client_id=client.id, user_id=client.user_id, **fields))

    async def unscheduled_post(self, client, **fields):
        fields.setdefault("caption", "Draft caption")
        return await self.add(UnscheduledPost(client_id=client.id, **fields))

    async def scheduled_post(self, client, **fields):
        fields.setdefault("caption", "Scheduled caption")
        fields.setdefault("scheduled_date", date(2026, 11, 2))
        return await self.add(ScheduledPost(client_id=client.id, **fields))

    async def approval_session(self, client, project=None, expires_at=None):
        return await self.add(ApprovalSession(
            client_id=client.id,
            project_id=project.id if project else None,
            expires_at=expires_at or datetime.now(timezone.utc) + timedelta(days=7),
        ))

    async def subscription(self, user_id, tier=tiers.PROFESSIONAL, **fields):
        subscription = Subscription(
            user_id=user_id,
            subscription_status=fields.pop("subscription_status", "active"),
            clients_used=0,
            posts_used_this_month=0,
            ai_credits_used_this_month=0,
            ai_credits_purchased=0,
            usage_reset_date=datetime.now(timezone.utc),
            subscription_metadata={},
        )
        apply_tier_limits(subscription, tier)
        for key, value in fields.items():
            setattr(subscription, key, value)
        return await self.add(subscription)

    async def get(self, model, pk):
        async with self.session_factory() as session:
            return await session.get(model, pk)

    async def all(self, model, *criteria):
        async with self.session_factory() as session:
            result = await session.execute(select(model).where(*criteria))
            return list(result.scalars().all())


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)
