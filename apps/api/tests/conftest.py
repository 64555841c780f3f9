"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

# Inject sys.path for reliable pytest imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # => .../apps/api

import base64
import os

# Must be in place before credman_api.main builds the module-level app
TEST_ENCRYPTION_KEY = bytes(range(32))
os.environ.setdefault("CREDMAN_ENCRYPTION_KEY_V1", base64.b64encode(TEST_ENCRYPTION_KEY).decode())
os.environ.setdefault("CREDMAN_SESSION_BACKEND", "memory")
os.environ.setdefault("CREDMAN_JSON_LOGS", "false")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
import redis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from credman_api.db.models import Base, Organization
from credman_api.db.session import get_db
from credman_api.main import app
from credman_api.security.secret_codec import SecretCodec
from credman_api.sessions.store import InMemorySessionStore

TEST_DATABASE_URL = "sqlite://"

# Redis test settings
REDIS_TEST_HOST = os.getenv("REDIS_TEST_HOST", "localhost")
REDIS_TEST_PORT = int(os.getenv("REDIS_TEST_PORT", "6379"))
REDIS_TEST_DB = 15  # Use separate DB for tests

@pytest.fixture(scope="function")
def db_session() -> Session:
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()

    try:
        yield session
        session.rollback()
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore(idle_timeout_seconds=1800)


@pytest.fixture
def codec() -> SecretCodec:
    return SecretCodec(keys={1: TEST_ENCRYPTION_KEY}, active_version=1)


@pytest.fixture
def organizations(db_session: Session) -> dict[str, Organization]:
    """Three pre-provisioned organizations: A, B, C."""
    orgs = {
        "A": Organization(id="org-a", name="Acme GmbH", vat_number="DE111111111"),
        "B": Organization(id="org-b", name="Beta AG", vat_number="DE222222222"),
        "C": Organization(id="org-c", name="Gamma KG", sap_id="SAP-3"),
    }
    db_session.add_all(orgs.values())
    db_session.commit()
    return orgs


@pytest.fixture
def app_state(db_session: Session, session_store: InMemorySessionStore, codec: SecretCodec):
    """Wire test components into the app; undone after the test."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close - db_session fixture handles it

    app.dependency_overrides[get_db] = override_get_db
    app.state.session_store = session_store
    app.state.secret_codec = codec
    yield app
    app.dependency_overrides.clear()
    del app.state.session_store
    del app.state.secret_codec


@pytest.fixture
def client(app_state) -> TestClient:
    """TestClient with its own cookie jar (one browser)."""
    return TestClient(app_state)


@pytest.fixture
def make_client(app_state):
    """Factory for additional, independent clients (other users / browsers)."""

    def _make() -> TestClient:
        return TestClient(app_state)

    return _make



@pytest.fixture(scope="function")
def redis_client() -> redis.Redis:
    """Real Redis on DB 15, flushed around each test; skips when unreachable."""
    client = redis.Redis(
        host=REDIS_TEST_HOST,
        port=REDIS_TEST_PORT,
        db=REDIS_TEST_DB,
        decode_responses=True,
        socket_connect_timeout=1,
    )
    try:
        client.ping()
    except redis.exceptions.ConnectionError:
        pytest.skip("Redis not available")

    client.flushdb()
    try:
        yield client
    finally:
        client.flushdb()
        client.close()
