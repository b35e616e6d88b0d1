"""Shared test fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.event_bus import EventBus
from src.db.database import get_db
from src.db.models import Base
from src.main import app
from src.services.game_locks import GameLockRegistry

# TestClient는 별도 스레드에서 요청을 처리하므로 연결 하나를 공유한다
TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSession = sessionmaker(bind=TEST_ENGINE, autocommit=False, autoflush=False)


def _override_get_db():
    db = TestSession()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = _override_get_db


@pytest.fixture()
def bus() -> EventBus:
    """앱이 공유하는 EventBus (lifespan 없이 직접 주입)"""
    event_bus = EventBus()
    app.state.event_bus = event_bus
    app.state.evolution_locks = GameLockRegistry()
    return event_bus


@pytest.fixture()
def client(bus: EventBus) -> TestClient:
    """FastAPI TestClient wired to an in-memory SQLite database."""
    Base.metadata.create_all(TEST_ENGINE)
    yield TestClient(app)
    Base.metadata.drop_all(TEST_ENGINE)


@pytest.fixture()
def db_session(client: TestClient) -> Session:
    """Raw database session for direct DB assertions."""
    session = TestSession()
    try:
        yield session
    finally:
        session.close()
