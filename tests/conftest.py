"""Pytest configuration and shared fixtures."""

import os
import tempfile
from pathlib import Path
from typing import Generator

# Environment must be in place before tenantdesk builds its config and engine
_TEMP_DB = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_TEMP_DB.close()
os.environ["TENANTDESK_DATABASE_URL"] = f"sqlite:///{_TEMP_DB.name}"
os.environ["TENANTDESK_JWT_SECRET_KEY"] = "tenantdesk-test-secret-4f8a2c9e7b1d6035ae"
os.environ["TENANTDESK_PASSWORD_HASH_ITERATIONS"] = "1000"
os.environ["TENANTDESK_LOG_TO_FILE"] = "0"
os.environ["TENANTDESK_LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient

from tenantdesk.auth.rate_limiter import get_login_rate_limiter
from tenantdesk.db import models  # noqa: F401
from tenantdesk.db.database import Base, SessionLocal, engine, get_db
from tests.helpers.seeding import Actor, Seeder, Tenant


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without the HTTP stack")
    config.addinivalue_line("markers", "integration: tests that go through the app")


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    for suffix in ("", "-wal", "-shm"):
        Path(_TEMP_DB.name + suffix).unlink(missing_ok=True)


@pytest.fixture
def test_db():
    """Fresh schema per test; yields the session factory."""
    Base.metadata.create_all(bind=engine)
    yield SessionLocal
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(test_db):
    session = test_db()
    yield session
    session.close()


@pytest.fixture
def client(test_db) -> Generator[TestClient, None, None]:
    """Create a test client with database dependency override."""
    from tenantdesk.main import app

    def override_get_db():
        # Use a fresh session per request in tests
        db = test_db()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    get_login_rate_limiter().reset()

    with TestClient(app) as test_client:
        yield test_client

    # Clear overrides to avoid affecting other tests
    app.dependency_overrides.clear()
    get_login_rate_limiter().reset()


@pytest.fixture
def seed(test_db) -> Seeder:
    return Seeder(test_db)


@pytest.fixture
def tenant(seed) -> Tenant:
    """Root account ``Acme`` with an admin member."""
    account_id = seed.account("Acme", slug="acme")
    return Tenant(account_id=account_id, admin=seed.actor(account_id, "admin", full_name="Ada Admin"))


@pytest.fixture
def staff(seed) -> Actor:
    """A system admin without any membership."""
    return seed.actor(None, role=None, system_role="system_admin", full_name="Sam Staff")
