"""
Shared fixtures for the workout session runtime tests.

Every test gets a fresh in-memory SQLite database. The FastAPI app is wired to
it through dependency overrides, and authentication is replaced by a mutable
"current user" so tests can act as different users.
"""

from types import SimpleNamespace
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.deps import get_current_user
from app.db.base import Base
from app.db.session import get_db
from app.main import app

from factories import make_routine, make_user


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_id(db) -> str:
    return make_user(db, "athlete@example.com")


@pytest.fixture
def other_user_id(db) -> str:
    return make_user(db, "someone-else@example.com")


@pytest.fixture
def routine(db, user_id) -> Dict[str, Any]:
    return make_routine(db, user_id)


# =============================================================================
# API client
# =============================================================================


@pytest.fixture
def auth():
    """Mutable stand-in for the authenticated caller."""
    return SimpleNamespace(user_id=None)


@pytest.fixture
def api_app(session_factory, auth, user_id):
    auth.user_id = user_id

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    async def override_current_user():
        return SimpleNamespace(id=auth.user_id)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_current_user
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(api_app) -> TestClient:
    return TestClient(api_app)
