import os
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "0")
os.environ.setdefault("APP_SECRET", "test-secret")

from datetime import datetime
from types import SimpleNamespace
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from exambank.core.auth import create_token, hash_password
from exambank.core.database import get_db, make_engine
from exambank.main import app
from exambank.models.orm import Base, Question, QuestionType, User, UserRole
from exambank.services.exam_repository import ExamRepository
from exambank.services.exam_service import ExamService
from exambank.services.statistics import StatisticsAggregator
from exambank.services.stores import SqlQuestionStore, SqlUserStore

NOW = datetime(2024, 5, 1, 9, 0, 0)


@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def bank(db):
    """A handful of questions of every type plus one admin and three students."""
    def q(type_, content, answers=None, options=None, category="general"):
        row = Question(type=int(type_), content=content, answers=answers, options=options, category=category, tags=[])
        db.add(row)
        return row

    questions = SimpleNamespace(
        single=q(QuestionType.SINGLE_CHOICE, "Which planet is red?", ["B"], ["Venus", "Mars", "Earth", "Jupiter"], "science"),
        tf=q(QuestionType.TRUE_FALSE, "Water boils at 100C at sea level.", ["true"], ["true", "false"], "science"),
        blank=q(QuestionType.FILL_IN_BLANK, "The capital of France is ___.", ["Paris"], category="geography"),
        short=q(QuestionType.SHORT_ANSWER, "Process plants use to make food?", ["photosynthesis"], category="science"),
        program=q(QuestionType.PROGRAM, "Write a function that reverses a string."),
        multi=q(QuestionType.MULTIPLE_CHOICE, "Pick the primes.", ["A,C"], ["2", "4", "5", "6"]),
    )
    pw = hash_password("secret")
    users = SimpleNamespace(
        admin=User(username="admin", password_hash=pw, role=UserRole.ADMIN.value),
        alice=User(username="alice", password_hash=pw, role=UserRole.STUDENT.value),
        bob=User(username="bob", password_hash=pw, role=UserRole.STUDENT.value),
        carol=User(username="carol", password_hash=pw, role=UserRole.STUDENT.value),
    )
    db.add_all(vars(users).values())
    db.commit()
    return SimpleNamespace(
        q=SimpleNamespace(**{k: v.id for k, v in vars(questions).items()}),
        u=SimpleNamespace(**{k: v.id for k, v in vars(users).items()}),
    )


class Clock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def repo(db):
    return ExamRepository(db)


@pytest.fixture
def service(db, repo, clock):
    return ExamService(repo, SqlQuestionStore(db), SqlUserStore(db), clock=clock)


@pytest.fixture
def stats(db, repo):
    return StatisticsAggregator(repo, SqlQuestionStore(db), SqlUserStore(db))


@pytest.fixture
def client(session_factory):
    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_header(user_id: int, role: str) -> dict:
    return {"Authorization": f"Bearer {create_token(user_id, [role])}"}


@pytest.fixture
def admin_hdr(bank):
    return auth_header(bank.u.admin, "admin")


@pytest.fixture
def student_hdr(bank):
    return lambda user_id: auth_header(user_id, "student")
