"""Pytest configuration and shared fixtures for HabitFlow tests.

Every test gets its own in-memory SQLite database; the API's ``get_db``
dependency is pointed at it so route tests never touch a real database file.
"""

import os

# Must be set before habitflow.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["DEMO_USER_ENABLED"] = "false"
os.environ["EXPOSE_RESET_TOKEN"] = "true"
os.environ["ENVIRONMENT"] = "development"
os.environ["OPENAI_API_KEY"] = ""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import habitflow.models  # noqa: F401
from habitflow.database import Base, get_db, get_session_factory
from habitflow.main import app
from habitflow.services.entry_ledger import EntryLedger
from habitflow.services.habit_service import HabitService
from habitflow.services.notification_service import notification_queue
from habitflow.services.user_service import UserService
from habitflow.timeutils import today_utc

TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture
def password():
    return TEST_PASSWORD


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def clear_notifications():
    notification_queue.clear()
    yield
    notification_queue.clear()


# =============================================================================
# API client
# =============================================================================


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


def register(client, username="alice", email=None, password=TEST_PASSWORD):
    return client.post("/api/auth/register", json={
        "username": username,
        "email": email or f"{username}@example.com",
        "password": password,
        "confirm_password": password,
    })


@pytest.fixture
def auth_client(client):
    """A client holding the session cookie of a freshly registered user."""
    resp = register(client)
    assert resp.status_code == 201, resp.text
    client.user = resp.json()["data"]["user"]
    return client


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def user_factory(db):
    def _create(username="tester", email=None, password=TEST_PASSWORD):
        user = UserService.create(db, username, email or f"{username}@example.com", password)
        assert user is not None
        return user

    return _create


@pytest.fixture
def user(user_factory):
    return user_factory()


@pytest.fixture
def habit_factory(db, user):
    def _create(name="Exercise", category="fitness", owner=None, **extra):
        owner_id = (owner or user).id
        return HabitService.create(db, owner_id, {"name": name, "category": category, **extra})

    return _create


@pytest.fixture
def complete_days(db):
    """Mark a habit completed on each of the given day offsets back from today."""

    def _complete(habit, offsets, completed=True, today: date | None = None):
        today = today or today_utc()
        for offset in offsets:
            EntryLedger.upsert(db, habit.id, habit.user_id, today - timedelta(days=offset), completed)

    return _complete
