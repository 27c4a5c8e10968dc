"""
Question and identity stores used by the exam services.

Both are small read/write facades over a SQLAlchemy session and are passed to
the services explicitly, so tests can substitute their own implementations.
"""
from typing import Dict, Iterable, List, Optional, Protocol
from sqlalchemy.orm import Session
from sqlalchemy import select, or_
from exambank.models.orm import Question, User, UserRole


class QuestionStore(Protocol):
    def get_question_by_id(self, question_id: int) -> Optional[Question]: ...
    def get_questions_by_ids(self, question_ids: Iterable[int]) -> Dict[int, Question]: ...


class UserStore(Protocol):
    def list_student_ids(self, candidate_ids: Iterable[int]) -> List[int]: ...
    def get_username(self, user_id: int) -> Optional[str]: ...
    def get_usernames(self, user_ids: Iterable[int]) -> Dict[int, str]: ...


class SqlQuestionStore:
    def __init__(self, db: Session):
        self.db = db

    def get_question_by_id(self, question_id: int) -> Optional[Question]:
        return self.db.get(Question, question_id)

    def get_questions_by_ids(self, question_ids: Iterable[int]) -> Dict[int, Question]:
        ids = set(question_ids)
        if not ids: return {}
        rows = self.db.scalars(select(Question).where(Question.id.in_(ids))).all()
        return {q.id: q for q in rows}

    def list_questions(self, type: Optional[int] = None, category: Optional[str] = None,
                       keyword: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[Question]:
        stmt = select(Question)
        if type is not None: stmt = stmt.where(Question.type == type)
        if category: stmt = stmt.where(Question.category == category)
        if keyword:
            like = f"%{keyword}%"
            stmt = stmt.where(or_(Question.content.ilike(like), Question.analysis.ilike(like)))
        stmt = stmt.order_by(Question.id.desc()).limit(limit).offset(offset)
        return list(self.db.scalars(stmt).all())

    def add(self, **fields) -> Question:
        q = Question(**fields)
        self.db.add(q); self.db.flush()
        return q

    def update(self, question: Question, **fields) -> Question:
        for key, value in fields.items():
            setattr(question, key, value)
        self.db.flush()
        return question

    def delete(self, question: Question) -> None:
        self.db.delete(question); self.db.flush()


class SqlUserStore:
    def __init__(self, db: Session):
        self.db = db

    def list_student_ids(self, candidate_ids: Iterable[int]) -> List[int]:
        ids = set(candidate_ids)
        if not ids: return []
        stmt = select(User.id).where(User.id.in_(ids), User.role == UserRole.STUDENT.value)
        return list(self.db.scalars(stmt).all())

    def get_username(self, user_id: int) -> Optional[str]:
        return self.db.scalar(select(User.username).where(User.id == user_id))

    def get_usernames(self, user_ids: Iterable[int]) -> Dict[int, str]:
        ids = set(user_ids)
        if not ids: return {}
        rows = self.db.execute(select(User.id, User.username).where(User.id.in_(ids))).all()
        return {r[0]: r[1] for r in rows}

    def get_by_username(self, username: str) -> Optional[User]:
        return self.db.scalar(select(User).where(User.username == username))

    def list_students(self) -> List[User]:
        stmt = select(User).where(User.role == UserRole.STUDENT.value).order_by(User.id)
        return list(self.db.scalars(stmt).all())

    def has_students(self) -> bool:
        return self.db.scalar(select(User.id).where(User.role == UserRole.STUDENT.value).limit(1)) is not None

    def add(self, username: str, password_hash: str, role: UserRole = UserRole.STUDENT) -> User:
        u = User(username=username, password_hash=password_hash, role=role.value)
        self.db.add(u); self.db.flush()
        return u
