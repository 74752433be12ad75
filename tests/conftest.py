"""Shared fixtures: an in-memory database, a controllable clock and an API client."""

import os
from datetime import datetime, timedelta

# Keep the app's module-level engine off the filesystem and mail off the network
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("MAIL_ENABLED", "false")

import pytest
import pytz
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from api.routes.auth import create_access_token
from app import app
from core.database import enable_sqlite_foreign_keys, get_db
from models.base import Base
from utils import user_manager as user_manager_module
from utils.class_manager import ClassManager
from utils.enrollment_manager import EnrollmentManager
from utils.quiz_manager import QuizManager
from utils.user_manager import STUDENT, TEACHER, UserManager

PASSWORD = "secret123"


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Hashing with production rounds makes every test crawl."""
    monkeypatch.setattr(user_manager_module, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", enable_sqlite_foreign_keys)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 9, 0, tzinfo=pytz.utc))


@pytest.fixture
def users(db_session, clock):
    return UserManager(db_session, clock=clock)


@pytest.fixture
def classes(db_session, clock):
    return ClassManager(db_session, clock=clock)


@pytest.fixture
def enrollments(db_session, clock):
    return EnrollmentManager(db_session, clock=clock)


@pytest.fixture
def quizzes(db_session, clock):
    return QuizManager(db_session, clock=clock)


@pytest.fixture
def teacher(users):
    return users.create_user(TEACHER, "Ada Lovelace", PASSWORD, email="ada@example.com")


@pytest.fixture
def other_teacher(users):
    return users.create_user(TEACHER, "Alan Turing", PASSWORD, email="alan@example.com")


@pytest.fixture
def make_student(users):
    def _make(name: str, enrollment: str):
        return users.create_user(STUDENT, name, PASSWORD, enrollment=enrollment)

    return _make


@pytest.fixture
def student(make_student):
    return make_student("Grace Hopper", "ENR001")


@pytest.fixture
def algebra(classes, teacher):
    return classes.create_class(teacher.user_id, "Algebra I", "Mathematics", "Linear equations")


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(user) -> dict:
    token = create_access_token({"sub": user.user_id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}
