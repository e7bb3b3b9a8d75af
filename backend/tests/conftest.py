import os
from datetime import datetime

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["FUNCTIONS_BASE_URL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import config
import database
import models
from auth import create_access_token
from database import get_db
from main import app

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db(monkeypatch):
    models.Base.metadata.create_all(bind=engine)
    monkeypatch.setattr(database, "SessionLocal", TestingSessionLocal)
    monkeypatch.setattr(config, "FUNCTIONS_BASE_URL", "")
    yield
    models.Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_profile(db, first_name, last_name, email=None):
    profile = models.Profile(first_name=first_name, last_name=last_name, email=email)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def auth_headers(profile):
    token = create_access_token({"sub": profile.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def organizer(db):
    return make_profile(db, "Jane", "Doe", "jane@example.com")


@pytest.fixture
def attendee(db):
    return make_profile(db, "Sam", "Lee", "sam@example.com")


@pytest.fixture
def outsider(db):
    return make_profile(db, "Eve", "Mallory", "eve@example.com")


@pytest.fixture
def event(db, organizer):
    event = models.Event(
        title="PyCon Local",
        description="Talks about packaging, typing and asyncio patterns",
        date=datetime(2026, 5, 1, 9, 0),
        end_date=datetime(2026, 5, 3, 18, 0),
        location="Hall A",
        organizer="Jane Doe",
        price="50",
        category="Technology",
        tags=["python", "community"],
        attendees=0,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


@pytest.fixture
def ticket(db, event, attendee):
    ticket = models.Ticket(event_id=event.id, user_id=attendee.id, ticket_code="ABCD2345", quantity=1)
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    return ticket
