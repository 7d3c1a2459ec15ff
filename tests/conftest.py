import os

from cryptography.fernet import Fernet

# Settings are read at import time; pin the test environment first
os.environ.setdefault("CREDENTIALS_ENCRYPTION_KEY", Fernet.generate_key().decode("utf-8"))
os.environ.setdefault("TOKEN_PEPPER", "test-pepper")
os.environ.setdefault("INTERNAL_ADMIN_KEY", "test-internal")
os.environ["TELEMETRY_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
import httpx

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

# Import Base + all models so metadata is complete
from onboarding.models.base import Base
from onboarding.models.pending_lead import PendingLead  # noqa: F401
from onboarding.models.vendor import Vendor  # noqa: F401
from onboarding.models.gig import Gig  # noqa: F401
from onboarding.models.audit_log import AuditLog  # noqa: F401

from onboarding.main import app
from onboarding.core.db import get_db
from onboarding.services.audit import ActivityLog, get_activity_log
from onboarding.services.notifier import Notification, get_notifier

from fixtures_seed import seed_draft_gig, seed_expired_lead, seed_lead  # noqa: F401


def _test_db_url(tmp_path) -> str:
    # Postgres when provided, otherwise a throwaway SQLite file per test.
    # A file (not :memory:) so concurrent sessions really are separate connections.
    return os.getenv("DATABASE_URL_TEST") or f"sqlite+aiosqlite:///{tmp_path / 'onboarding.db'}"


@pytest.fixture
async def async_engine(tmp_path):
    url = _test_db_url(tmp_path)
    connect_args = {"timeout": 30} if url.startswith("sqlite") else {}
    engine = create_async_engine(url, future=True, connect_args=connect_args)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(bind=async_engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def activity(session_factory) -> ActivityLog:
    return ActivityLog(session_factory)


class RecordingNotifier:
    def __init__(self):
        self.sent: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.sent.append(notification)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def client(session_factory, activity, notifier):
    """
    HTTP client bound to the test database; every request gets its own session,
    like production. Notifications are recorded instead of enqueued.
    """
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_activity_log] = lambda: activity
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    return {
        "X-Internal-Admin-Key": os.getenv("INTERNAL_ADMIN_KEY", "test-internal"),
        "X-Admin-Id": "adm_test",
    }
