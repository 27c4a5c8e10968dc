from fastapi import APIRouter, Depends, Query, Response
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from exambank.core.database import get_db
from exambank.core.auth import require_roles
from exambank.core.errors import ConflictError, NotFoundError
from exambank.models.orm import Question
from exambank.models.schemas import QuestionIn, QuestionOut
from exambank.services.stores import SqlQuestionStore

router = APIRouter(dependencies=[Depends(require_roles("admin"))])


def _fields(payload: QuestionIn) -> dict:
    data = payload.model_dump()
    data["type"] = int(payload.type)
    return data


def _require(store: SqlQuestionStore, question_id: int) -> Question:
    q = store.get_question_by_id(question_id)
    if q is None:
        raise NotFoundError(f"Question {question_id} not found", {"question_id": question_id})
    return q


@router.get("", response_model=List[QuestionOut])
def list_questions(type: Optional[int] = None, category: Optional[str] = None, keyword: Optional[str] = None,
                   limit: int = Query(100, ge=1, le=500), offset: int = Query(0, ge=0), db: Session = Depends(get_db)):
    store = SqlQuestionStore(db)
    return store.list_questions(type, category, keyword, limit, offset)


@router.get("/{question_id}", response_model=QuestionOut)
def get_question(question_id: int, db: Session = Depends(get_db)):
    return _require(SqlQuestionStore(db), question_id)


@router.post("", response_model=QuestionOut, status_code=201)
def create_question(payload: QuestionIn, db: Session = Depends(get_db)):
    q = SqlQuestionStore(db).add(**_fields(payload))
    db.commit(); db.refresh(q)
    return q


@router.put("/{question_id}", response_model=QuestionOut)
def update_question(question_id: int, payload: QuestionIn, db: Session = Depends(get_db)):
    store = SqlQuestionStore(db)
    q = store.update(_require(store, question_id), **_fields(payload))
    db.commit(); db.refresh(q)
    return q


@router.delete("/{question_id}", status_code=204)
def delete_question(question_id: int, db: Session = Depends(get_db)):
    store = SqlQuestionStore(db)
    q = _require(store, question_id)
    try:
        store.delete(q)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Question is used by an exam or a submitted answer", {"question_id": question_id})
    return Response(status_code=204)
