"""
Test configuration and fixtures for the Reading Stats API tests.
"""
import os
from datetime import datetime, timedelta
from typing import Generator

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from models import CatalogItem, User
from services.session_service import SessionService
from utils.dependencies import get_request_time
from utils.security import create_access_token

# Use in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,
)


# pysqlite needs explicit BEGIN for SAVEPOINTs to behave
@event.listens_for(engine, "connect")
def disable_pysqlite_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def emit_begin(connection):
    connection.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Monday
BASE_TIME = datetime(2024, 3, 4, 9, 0, 0)


class Clock:
    """Controllable request time."""

    def __init__(self, now: datetime):
        self.now = now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> Clock:
    return Clock(BASE_TIME)


@pytest.fixture(scope="function")
def client(db_session, clock) -> Generator[TestClient, None, None]:
    """Create a test client with database session and clock overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_request_time] = lambda: clock.now

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    """Factory for users."""
    def _make_user(username: str, **profile) -> User:
        user = User(username=username, email=f"{username}@example.com", **profile)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def test_user(make_user) -> User:
    return make_user("reader")


@pytest.fixture
def make_book(db_session):
    """Factory for catalog items."""
    def _make_book(title: str, item_type: str = "ebook", category: str = "fiction") -> CatalogItem:
        book = CatalogItem(title=title, item_type=item_type, category=category)
        db_session.add(book)
        db_session.commit()
        db_session.refresh(book)
        return book

    return _make_book


@pytest.fixture
def test_book(make_book) -> CatalogItem:
    return make_book("The Left Hand of Darkness")


@pytest.fixture
def read(db_session):
    """Run a complete session of ``seconds`` starting at ``start``."""
    def _read(user: User, book: CatalogItem, start: datetime, seconds: int, finished: bool = False):
        session = SessionService.start(db_session, user.id, book.id, book.item_type, now=start)
        return SessionService.end(
            db_session,
            session.id,
            user.id,
            finished=finished,
            now=start + timedelta(seconds=seconds),
        )

    return _read


@pytest.fixture
def auth_headers(test_user) -> dict:
    token = create_access_token(test_user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    """Factory for bearer headers of any user."""
    def _headers_for(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers_for
