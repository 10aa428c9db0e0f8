"""Pytest fixtures — a fresh file-backed SQLite database per test."""
import os

import pytest
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from groupvault.crypto import KeyEnvelope
from groupvault.database import Base, create_db_engine, get_db
from groupvault.deps import get_envelope
from groupvault.main import app

# Import all models so they register with Base.metadata
import groupvault.models  # noqa: F401


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """File-backed so that concurrent sessions see one database."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def master_key():
    return os.urandom(32)


@pytest.fixture(scope="function")
def envelope(master_key):
    return KeyEnvelope(master_key)


@pytest.fixture(scope="function")
def client(session_factory, envelope):
    """FastAPI TestClient with the database and key envelope overridden."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_envelope] = lambda: envelope
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def auth(user_id: int) -> dict:
    """Headers carrying the caller id asserted by the AuthProvider."""
    return {"X-User-Id": str(user_id)}


def create_test_group(
    client: TestClient,
    owner_id: int,
    name: str = "Test Group",
    kind: str = "open",
    max_members: int | None = None,
) -> dict:
    """Helper — POST /api/groups and return response JSON."""
    body = {"name": name, "kind": kind}
    if max_members is not None:
        body["max_members"] = max_members
    resp = client.post("/api/groups/", json=body, headers=auth(owner_id))
    assert resp.status_code == 201, resp.text
    return resp.json()
