"""
Centralized Test Configuration.
"""

import copy

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.pool import Pool, StaticPool

from shiptrack.app.core.config import settings

# Keep bcrypt cheap under test
settings.bcrypt_rounds = 4

from shiptrack.app.main import app
from shiptrack.app.db.session import get_db, Base, build_engine, build_session_factory
from shiptrack.app.core.redis_client import get_redis
from shiptrack.app.core.security import get_password_hash
from shiptrack.app.models.enums import UserRole
from shiptrack.app.models.user import User
from shiptrack.app.services.identity import issue_token
import shiptrack.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DEFAULT_PASSWORD = "Secret123"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)).lower():
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        if ex:
            self.ttls[key] = ex
        return True

    async def setex(self, key, seconds, value):
        return await self.set(key, value, ex=seconds)

    async def delete(self, key):
        if self._closed:
            return 0
        self.ttls.pop(key, None)
        return 1 if self.store.pop(key, None) is not None else 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}
            self.ttls = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
def mock_redis(monkeypatch):
    """Replace the module-level Redis client for one test."""
    fake = MockRedis()
    monkeypatch.setattr(redis_client_module, "redis_client", fake)
    return fake


@pytest.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine = build_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield build_session_factory(engine)

    await engine.dispose()


@pytest.fixture(autouse=True)
def apply_overrides(session_factory, mock_redis):
    """Point the app's database and Redis dependencies at the test doubles."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield
    app.dependency_overrides = {}


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db_session):
    """Factory inserting an account directly (roles the API cannot register)."""
    counter = {"n": 0}

    async def _make_user(role=UserRole.USER, email=None, password=DEFAULT_PASSWORD, **fields):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            full_name=fields.pop("full_name", f"{role.value.title()} {n}"),
            email=email or f"{role.value}{n}@shipmail.com",
            phone=fields.pop("phone", f"98765{n:05d}"),
            hashed_password=get_password_hash(password),
            role=role,
            is_active=fields.pop("is_active", True),
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
async def customer(make_user):
    return await make_user(UserRole.USER, email="asha@shipmail.com", full_name="Asha Rao")


@pytest.fixture
async def agent(make_user):
    return await make_user(UserRole.AGENT, email="ravi.agent@shipmail.com", full_name="Ravi Kumar")


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN, email="ops.admin@shipmail.com", full_name="Ops Admin")


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture
def auth_headers():
    """Build an Authorization header for an account."""
    return bearer


SHIPMENT_PAYLOAD = {
    "sender": {
        "name": "Asha Rao",
        "email": "asha@shipmail.com",
        "phone": "9876500001",
        "address": {
            "street": "12 MG Road",
            "city": "Bengaluru",
            "state": "Karnataka",
            "pincode": "560001",
        },
    },
    "recipient": {
        "name": "Vikram Shah",
        "email": "vikram@shipmail.com",
        "phone": "9876500002",
        "address": {
            "street": "44 Marine Drive",
            "city": "Mumbai",
            "state": "Maharashtra",
            "pincode": "400002",
        },
    },
    "package": {
        "description": "Hardcover books",
        "weight": 2.5,
        "dimensions": {"length": 30, "width": 20, "height": 10},
        "value": 1500,
        "category": "Documents",
    },
    "service": {"type": "next-day", "priority": "normal", "cost": 120},
    "payment_method": "online",
}


@pytest.fixture
def shipment_payload():
    """Factory for a booking request body with optional overrides."""
    def _payload(**overrides):
        body = copy.deepcopy(SHIPMENT_PAYLOAD)
        body.update(overrides)
        return body
    return _payload
