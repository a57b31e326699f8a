"""Shared fixtures: an isolated in-memory database per test and a client bound to it."""

import os

# Must be set before posts_api.db builds its module-level engine.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from posts_api.api.main import app
from posts_api.db import Base, get_db


def _memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def _override_db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _get_test_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    return _get_test_db


@pytest.fixture
def engine():
    """Fresh schema in a private in-memory SQLite database."""
    engine = _memory_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    db = sessionmaker(bind=engine)()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_db] = _override_db(engine)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def broken_client():
    """Client whose database has no tables, so every posts query fails."""
    engine = _memory_engine()
    app.dependency_overrides[get_db] = _override_db(engine)
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


@pytest.fixture
def make_post(client):
    """Create a post through the API and return its JSON."""

    def _make(title="Hello", body="World"):
        resp = client.post("/posts", json={"title": title, "body": body})
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make
