from fastapi import APIRouter, Depends, Response
from typing import List, Optional
from sqlalchemy.orm import Session
from exambank.core.database import get_db
from exambank.core.auth import require_roles, TokenData
from exambank.core.errors import ForbiddenError
from exambank.models.schemas import (
    AssignRequest, AssignmentResult, ExamCreate, ExamOut, ExamResult, ExamStatistics, SubmissionIn,
)
from exambank.services.exam_repository import ExamRepository
from exambank.services.exam_service import ExamService
from exambank.services.statistics import StatisticsAggregator
from exambank.services.stores import SqlQuestionStore, SqlUserStore

router = APIRouter()

ANY_USER = require_roles("admin", "student")


def get_exam_service(db: Session = Depends(get_db)) -> ExamService:
    return ExamService(ExamRepository(db), SqlQuestionStore(db), SqlUserStore(db))


def get_statistics(db: Session = Depends(get_db)) -> StatisticsAggregator:
    return StatisticsAggregator(ExamRepository(db), SqlQuestionStore(db), SqlUserStore(db))


def _ensure_can_view(svc: ExamService, exam_id: int, user: TokenData) -> None:
    if not user.is_admin and not svc.is_assigned(exam_id, user.user_id):
        raise ForbiddenError("Exam is not assigned to this student", {"exam_id": exam_id})


@router.post("", response_model=ExamOut, status_code=201)
def create_exam(payload: ExamCreate, user: TokenData = Depends(require_roles("admin")), svc: ExamService = Depends(get_exam_service)):
    return svc.create_exam(payload)


@router.get("", response_model=List[ExamOut])
def list_exams(user: TokenData = Depends(ANY_USER), svc: ExamService = Depends(get_exam_service)):
    if user.is_admin:
        return svc.list_exams()
    return svc.list_exams_for_student(user.user_id)


@router.get("/{exam_id}", response_model=ExamOut)
def get_exam(exam_id: int, user: TokenData = Depends(ANY_USER), svc: ExamService = Depends(get_exam_service)):
    exam = svc.get_exam(exam_id)
    _ensure_can_view(svc, exam_id, user)
    return exam


@router.delete("/{exam_id}", status_code=204, dependencies=[Depends(require_roles("admin"))])
def delete_exam(exam_id: int, svc: ExamService = Depends(get_exam_service)):
    svc.delete_exam(exam_id)
    return Response(status_code=204)


@router.post("/{exam_id}/assign", response_model=AssignmentResult, dependencies=[Depends(require_roles("admin"))])
def assign_exam(exam_id: int, payload: AssignRequest, svc: ExamService = Depends(get_exam_service)):
    return svc.assign_exam(exam_id, payload.student_ids)


@router.post("/{exam_id}/submit", response_model=ExamResult)
def submit_exam(exam_id: int, payload: SubmissionIn, user: TokenData = Depends(require_roles("student")), svc: ExamService = Depends(get_exam_service)):
    return svc.submit_exam(exam_id, user.user_id, payload)


@router.get("/{exam_id}/results", response_model=List[ExamResult])
def exam_results(exam_id: int, student_id: Optional[int] = None, user: TokenData = Depends(ANY_USER), svc: ExamService = Depends(get_exam_service)):
    # students only ever see their own submission
    if not user.is_admin:
        student_id = user.user_id
    return svc.get_exam_results(exam_id, student_id)


@router.get("/{exam_id}/statistics", response_model=ExamStatistics, dependencies=[Depends(require_roles("admin"))])
def exam_statistics(exam_id: int, student_id: Optional[int] = None, stats: StatisticsAggregator = Depends(get_statistics)):
    return stats.compute_statistics(exam_id, student_id)
