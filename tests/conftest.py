import os

# point settings at sqlite and keep redis quiet before the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tracer.db import get_db
from tracer.main import create_app
from tracer.models import User
from tracer.models.base import Base
from tracer.models.enums import GlobalRole
from tracer.notifications import get_notifier

class RecordingNotifier:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def notify(self, event: str, **payload) -> None:
        self.events.append((event, payload))

    def of(self, event: str) -> list[dict]:
        return [p for e, p in self.events if e == event]

@pytest.fixture()
def db_session() -> Session:
    # fresh in-memory database per test; StaticPool shares the one connection across threads
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session: Session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()

@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()

@pytest.fixture()
def client(db_session: Session, notifier: RecordingNotifier) -> TestClient:
    app = create_app()

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    return TestClient(app)

@pytest.fixture()
def make_user(db_session: Session):
    def _make(role: GlobalRole = GlobalRole.user, name: str | None = None, is_active: bool = True) -> User:
        # unique per call to avoid collisions
        email = f"{name or 'user'}+{uuid.uuid4().hex[:8]}@example.com"
        u = User(email=email, name=name, role=role, is_active=is_active)
        db_session.add(u)
        db_session.commit()
        db_session.refresh(u)
        return u

    return _make
