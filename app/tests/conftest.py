import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, StaticPool, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from app.database.db import Base, get_db, make_engine
from app.main import app
from app.models.users import User
from app.tests.factories import add_event_with_ticket, add_user

# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine: Engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_database():
    """Give every test a fresh schema."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


# Override the database dependency
def override_get_db():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def db_session():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def redis_client(monkeypatch: pytest.MonkeyPatch, fake_redis):
    """Point the sweep task's lock at an in-process Redis."""
    monkeypatch.setattr("app.tasks.get_redis_client", lambda: fake_redis)
    return fake_redis


@pytest.fixture
def file_session_factory(tmp_path):
    """
    Sessions on a file-backed SQLite database. Each session gets its own
    connection, so threads really contend for the database write lock.
    """
    file_engine = make_engine(f"sqlite:///{tmp_path / 'race.db'}")
    Base.metadata.create_all(bind=file_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    file_engine.dispose()


@pytest.fixture
def event_with_ticket(db_session: Session):
    """Active event with one ticket type: 10 units at 100.00 KSH, none sold."""
    return add_event_with_ticket(db_session)


@pytest.fixture
def buyer(db_session: Session) -> User:
    return add_user(db_session, "buyer@example.com")


@pytest.fixture
def other_buyer(db_session: Session) -> User:
    return add_user(db_session, "other@example.com")


@pytest.fixture
def admin_user(db_session: Session) -> User:
    return add_user(db_session, "admin@example.com", is_admin=True)
