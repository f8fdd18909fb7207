"""Pytest fixtures — file-backed SQLite database, fresh for every test."""
from datetime import datetime, timezone, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from eventhub.database import Base, configure_sqlite_engine, get_db
from eventhub.main import app

# Import all models so they register with Base.metadata
from eventhub.models.user import User                # noqa: F401
from eventhub.models.event import Event              # noqa: F401
from eventhub.models.attendee import EventAttendee   # noqa: F401

SQLITE_URL = "sqlite:///./test.db"


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test.

    A file (not :memory:) so that threads in the concurrency tests get their
    own connections to the same database.
    """
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False, "timeout": 15})
    configure_sqlite_engine(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: create rows via the API, return the response JSON dict
# ---------------------------------------------------------------------------
def create_test_user(client: TestClient, name: str = "Test User", email: str = None) -> dict:
    """Helper — POST /api/users and return response JSON."""
    resp = client.post("/api/users/", json={
        "name": name,
        "email": email or f"{name.lower().replace(' ', '.')}@example.com",
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_event(client: TestClient, creator_id: str, title: str = "Meetup",
                      capacity: int = 10, start_offset_hours: int = 24,
                      category: str = "Technology", description: str = "A test event") -> dict:
    """Helper — POST /api/events and return response JSON."""
    date = datetime.now(timezone.utc) + timedelta(hours=start_offset_hours)
    resp = client.post("/api/events/", json={
        "title": title,
        "description": description,
        "date": date.isoformat(),
        "location": "Main Hall",
        "category": category,
        "capacity": capacity,
        "creator_id": creator_id,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Helpers: direct ORM setup for service-level tests
# ---------------------------------------------------------------------------
def add_user(session, name: str) -> str:
    user = User(name=name, email=f"{name.lower()}@example.com")
    session.add(user)
    session.flush()
    user_id = user.user_id
    session.commit()
    return user_id


def add_event(session, creator_id: str, capacity: int = 3, start_offset_hours: int = 24) -> str:
    event = Event(
        title="Launch Party",
        description="Seats are limited",
        date=datetime.now(timezone.utc) + timedelta(hours=start_offset_hours),
        location="Rooftop",
        capacity=capacity,
        creator_id=creator_id,
    )
    session.add(event)
    session.flush()
    event_id = event.event_id
    session.commit()
    return event_id
