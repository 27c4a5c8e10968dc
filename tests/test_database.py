import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from exambank.core.database import make_engine
from exambank.models.orm import Base, ExamQuestion, User


@pytest.fixture
def file_engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'exambank.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


def usernames(session):
    return list(session.scalars(select(User.username).order_by(User.username)))


def test_only_in_memory_sqlite_shares_a_connection(file_engine):
    assert isinstance(make_engine("sqlite://").pool, StaticPool)
    assert isinstance(make_engine("sqlite:///:memory:").pool, StaticPool)
    assert not isinstance(file_engine.pool, StaticPool)


def test_file_sessions_do_not_share_uncommitted_rows(file_engine):
    Session = sessionmaker(bind=file_engine, autoflush=False, future=True)
    a, b = Session(), Session()
    try:
        a.add(User(username="ghost", password_hash="x", role="student"))
        a.flush()
        assert usernames(b) == []
        b.rollback()

        a.rollback()
        b.add(User(username="other", password_hash="x", role="student"))
        b.commit()
    finally:
        a.close(); b.close()

    with Session() as fresh:
        assert usernames(fresh) == ["other"]


def test_file_engine_enforces_foreign_keys(file_engine):
    Session = sessionmaker(bind=file_engine, future=True)
    with Session() as s:
        s.add(ExamQuestion(exam_id=404, question_id=404, order=1, score=1))
        with pytest.raises(IntegrityError):
            s.flush()
        s.rollback()
