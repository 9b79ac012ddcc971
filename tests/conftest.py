"""
Bonafide Portal — Test configuration and fixtures
"""
import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

TEST_DATABASE_URL = "sqlite+aiosqlite:///./test_portal.db"

# Set testing environment before the app reads its settings
os.environ["IDENTITY_DB_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-testing"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["OTP_DEV_MODE"] = "true"
os.environ["METRICS_ENABLED"] = "false"
os.environ["RATE_LIMIT_MAX_ATTEMPTS"] = "5"
os.environ["LOCK_MAX_RETRIES"] = "3"
os.environ["LOCK_BASE_DELAY_MS"] = "1"
os.environ["LOCK_MAX_DELAY_MS"] = "5"
os.environ["LOCK_JITTER_MS"] = "1"

from bonafide_portal.api.deps import get_sms_channel  # noqa: E402
from bonafide_portal.core import redis_client  # noqa: E402
from bonafide_portal.db.database import Base, get_db  # noqa: E402
from bonafide_portal.main import app  # noqa: E402
from bonafide_portal.services.identity import IdentityProvider  # noqa: E402
from bonafide_portal.services.kv_store import KVStore  # noqa: E402
from bonafide_portal.services.otp import OtpVerifier  # noqa: E402
from bonafide_portal.services.registrar import AccountRegistrar  # noqa: E402
from bonafide_portal.services.workflow import CertificateRequestWorkflow  # noqa: E402

from fakes import FIXED_NOW, FakeRedis, RecordingChannel  # noqa: E402

test_engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def fake_redis(monkeypatch) -> FakeRedis:
    fake = FakeRedis()
    monkeypatch.setattr(redis_client, "_redis_client", fake)
    return fake


@pytest.fixture
def kv(fake_redis: FakeRedis) -> KVStore:
    return KVStore(fake_redis)


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest_asyncio.fixture
async def db_session():
    """Fresh identity tables for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def identity(db_session) -> IdentityProvider:
    return IdentityProvider(db_session)


@pytest.fixture
def otp(kv, channel) -> OtpVerifier:
    return OtpVerifier(kv, channel, dev_mode=True)


@pytest.fixture
def registrar(kv, identity, otp) -> AccountRegistrar:
    return AccountRegistrar(kv, identity, otp)


@pytest.fixture
def workflow(kv) -> CertificateRequestWorkflow:
    return CertificateRequestWorkflow(kv, clock=lambda: FIXED_NOW)


@pytest_asyncio.fixture
async def client(fake_redis, db_session, channel):
    """HTTP client against the app with test DB, fake Redis and recording SMS channel."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sms_channel] = lambda: channel

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

