"""Shared pytest fixtures: in-memory database, Redis double, API client."""

import time
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.database import Base, get_db
from app.domain.booking.store import BookingSessionStore
from app.domain.referrals.repository import ReferralRepository


class FakePipeline:
    """Queues commands and runs them against FakeRedis on execute()."""

    def __init__(self, redis):
        self.redis = redis
        self.commands = []

    def incr(self, key):
        self.commands.append(("incr", key))
        return self

    def expire(self, key, seconds, nx=False):
        self.commands.append(("expire", key, seconds, nx))
        return self

    def ttl(self, key):
        self.commands.append(("ttl", key))
        return self

    def execute(self):
        results = [getattr(self.redis, name)(*args) for name, *args in self.commands]
        self.commands = []
        return results


class FakeRedis:
    """Dict-backed stand-in for the subset of redis.Redis the app uses."""

    def __init__(self):
        self.data = {}
        self.expiry = {}

    def _purge(self, key):
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.time():
            self.data.pop(key, None)
            self.expiry.pop(key, None)

    def ping(self):
        return True

    def get(self, key):
        self._purge(key)
        return self.data.get(key)

    def setex(self, key, seconds, value):
        self.data[key] = value
        self.expiry[key] = time.time() + seconds
        return True

    def delete(self, key):
        self.expiry.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0

    def incr(self, key):
        self._purge(key)
        self.data[key] = int(self.data.get(key, 0)) + 1
        return self.data[key]

    def expire(self, key, seconds, nx=False):
        if key not in self.data:
            return False
        if nx and key in self.expiry:
            return False
        self.expiry[key] = time.time() + seconds
        return True

    def ttl(self, key):
        if key not in self.data:
            return -2
        if key not in self.expiry:
            return -1
        return max(0, int(self.expiry[key] - time.time()))

    def pipeline(self, transaction=True):
        return FakePipeline(self)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def session_store(fake_redis):
    return BookingSessionStore(client_factory=lambda: fake_redis, key_prefix="test-booking", ttl=60)


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def make_code(db_session):
    """Factory for referral codes stored in the test database."""

    def _make(code="HNCKMDOUG", issuer_type="partner_staff", percent="10.00", is_active=True, **extra):
        return ReferralRepository.create_code(
            db_session,
            code=code,
            issuer_type=issuer_type,
            discount_percent=Decimal(percent),
            is_active=is_active,
            **extra,
        )

    return _make


@pytest.fixture
def client(db_session, session_store):
    from app.domain.booking.router import get_session_store
    from app.domain.referrals.router import validate_rate_limit
    from app.main import app

    def override_get_db():
        yield db_session

    async def no_rate_limit():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[validate_rate_limit] = no_rate_limit

    yield TestClient(app)

    app.dependency_overrides.clear()
