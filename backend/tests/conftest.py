import sys
import time
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from jose import jwt

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.db.base import Base
from app.db import session as session_module
from app.main import create_app

# Import models so that they are registered in Base.metadata before create_all.
import app.models  # noqa: F401

from scripts.seed_catalog import seed_catalog


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str, ex: int | None = None):
        exp = (self._now() + int(ex)) if ex else None
        self._data[key] = (value, exp)
        return True

    def delete(self, key: str):
        self._data.pop(key, None)
        return 1

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))


# Configure test DB (SQLite in-memory) at import time so all tests importing
# app.db.session.SessionLocal will get the patched version.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(_engine, "connect")
def _enable_sqlite_fks(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)


# Stub Redis at import time (cache, quiz state, rate limiting).
_mem_redis = _MemoryRedis()
import app.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis

import app.core.rate_limit as rate_limit_module
rate_limit_module.get_redis = lambda: _mem_redis


@pytest.fixture(autouse=True)
def memory_redis():
    # cache entries, quiz state and rate-limit counters never leak between tests
    _mem_redis._data.clear()
    return _mem_redis


@pytest.fixture(scope="session")
def client():
    app = create_app()

    # Ensure app dependencies use our session factory.
    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    return TestClient(app)


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


def make_token(user_id: uuid.UUID, *, minutes: int = 60, email: str | None = "learner@example.com") -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture()
def user_id():
    return uuid.uuid4()


@pytest.fixture()
def auth_headers(user_id):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def catalog_payload(tag: str, *, n_questions: int = 4) -> dict:
    return {
        "subjects": [
            {
                "name": f"Mathematics {tag}",
                "categories": [
                    {
                        "name": f"Algebra {tag}",
                        "quizzes": [
                            {
                                "title": "Linear equations",
                                "questions": [
                                    {
                                        "content": f"Question {i + 1}",
                                        "explanation": "Isolate x.",
                                        "choices": [
                                            {"content": "right", "is_correct": True},
                                            {"content": "wrong", "is_correct": False},
                                        ],
                                    }
                                    for i in range(n_questions)
                                ],
                            },
                            {"title": "Empty quiz", "questions": []},
                            {"title": "Retired quiz", "is_active": False, "questions": []},
                        ],
                    },
                    {"name": f"Geometry {tag}", "quizzes": []},
                ],
            }
        ]
    }


@pytest.fixture()
def seeded(db):
    """A fresh subject with two categories; returns the ids tests need."""
    from sqlalchemy import select

    from app.models.quiz import Quiz, QuizQuestion
    from app.models.subject import Category, Subject

    tag = uuid.uuid4().hex[:8]
    seed_catalog(db, catalog_payload(tag))

    subject = db.scalar(select(Subject).where(Subject.name == f"Mathematics {tag}"))
    algebra = db.scalar(select(Category).where(Category.name == f"Algebra {tag}"))
    quiz = db.scalar(select(Quiz).where(Quiz.category_id == algebra.id, Quiz.title == "Linear equations"))
    empty = db.scalar(select(Quiz).where(Quiz.category_id == algebra.id, Quiz.title == "Empty quiz"))
    retired = db.scalar(select(Quiz).where(Quiz.category_id == algebra.id, Quiz.title == "Retired quiz"))
    question_ids = list(
        db.scalars(
            select(QuizQuestion.question_id).where(QuizQuestion.quiz_id == quiz.id).order_by(QuizQuestion.position)
        )
    )
    return {
        "subject_id": subject.id,
        "category_id": algebra.id,
        "quiz_id": quiz.id,
        "empty_quiz_id": empty.id,
        "retired_quiz_id": retired.id,
        "question_ids": question_ids,
    }
