"""
Persistence for exams, assignments, submissions and answers.

The repository flushes but never commits; the caller owns the transaction and
calls ``commit``/``rollback`` once per unit of work.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Set
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select, update
from exambank.models.orm import Exam, ExamQuestion, ExamAssignment, ExamSubmission, QuestionAnswer, ExamStatus
from exambank.models.schemas import ExamQuestionIn


@dataclass
class StatisticsInputs:
    exam: Exam
    assignments: List[ExamAssignment] = field(default_factory=list)
    submissions: List[ExamSubmission] = field(default_factory=list)


class ExamRepository:
    def __init__(self, db: Session):
        self.db = db

    # ---- exams ----

    def create_exam(self, title: str, description: Optional[str], deadline: Optional[datetime],
                    questions: Sequence[ExamQuestionIn], created_at: datetime) -> Exam:
        exam = Exam(
            title=title, description=description, deadline=deadline, created_at=created_at,
            total_score=sum(q.score for q in questions), status=ExamStatus.DRAFT.value,
        )
        self.db.add(exam); self.db.flush()
        for q in questions:
            self.db.add(ExamQuestion(exam_id=exam.id, question_id=q.question_id, order=q.order, score=q.score))
        self.db.flush()
        self.db.refresh(exam)
        return exam

    def get_exam(self, exam_id: int) -> Optional[Exam]:
        stmt = select(Exam).options(selectinload(Exam.questions)).where(Exam.id == exam_id)
        return self.db.scalar(stmt)

    def list_exams(self) -> List[Exam]:
        stmt = select(Exam).options(selectinload(Exam.questions)).order_by(Exam.created_at.desc(), Exam.id.desc())
        return list(self.db.scalars(stmt).all())

    def list_exams_for_student(self, student_id: int) -> List[Exam]:
        # inner join drops assignments whose exam row is gone
        stmt = (
            select(Exam)
            .join(ExamAssignment, ExamAssignment.exam_id == Exam.id)
            .options(selectinload(Exam.questions))
            .where(ExamAssignment.student_id == student_id)
            .order_by(ExamAssignment.assigned_at.desc(), Exam.id.desc())
        )
        return list(self.db.scalars(stmt).unique().all())

    def delete_exam(self, exam: Exam) -> None:
        self.db.delete(exam); self.db.flush()

    # ---- assignments ----

    def is_assigned(self, exam_id: int, student_id: int) -> bool:
        return self.get_assignment(exam_id, student_id) is not None

    def get_assignment(self, exam_id: int, student_id: int) -> Optional[ExamAssignment]:
        stmt = select(ExamAssignment).where(ExamAssignment.exam_id == exam_id, ExamAssignment.student_id == student_id)
        return self.db.scalar(stmt)

    def assigned_student_ids(self, exam_id: int, student_ids: Iterable[int]) -> Set[int]:
        ids = set(student_ids)
        if not ids: return set()
        stmt = select(ExamAssignment.student_id).where(ExamAssignment.exam_id == exam_id, ExamAssignment.student_id.in_(ids))
        return set(self.db.scalars(stmt).all())

    def assign(self, exam: Exam, student_ids: Sequence[int], assigned_at: datetime) -> List[int]:
        """Create missing assignments and publish a draft exam. Returns the newly assigned ids."""
        existing = self.assigned_student_ids(exam.id, student_ids)
        created: List[int] = []
        for sid in dict.fromkeys(student_ids):
            if sid in existing: continue
            self.db.add(ExamAssignment(exam_id=exam.id, student_id=sid, assigned_at=assigned_at, is_submitted=False))
            created.append(sid)
        # Draft -> Published happens on assignment and only here
        if exam.status == ExamStatus.DRAFT.value:
            exam.status = ExamStatus.PUBLISHED.value
        self.db.flush()
        return created

    def claim_assignment(self, assignment: ExamAssignment) -> bool:
        """Compare-and-swap is_submitted false -> true; False if someone else got there first."""
        stmt = (
            update(ExamAssignment)
            .where(ExamAssignment.id == assignment.id, ExamAssignment.is_submitted.is_(False))
            .values(is_submitted=True)
            .execution_options(synchronize_session=False)
        )
        claimed = self.db.execute(stmt).rowcount == 1
        if claimed:
            self.db.refresh(assignment)
        return claimed

    # ---- submissions ----

    def add_submission(self, exam_id: int, student_id: int, submitted_at: datetime, completion_time: int) -> ExamSubmission:
        sub = ExamSubmission(exam_id=exam_id, student_id=student_id, submitted_at=submitted_at,
                             completion_time=completion_time, score=0, skipped_count=0)
        self.db.add(sub); self.db.flush()
        return sub

    def add_answer(self, submission: ExamSubmission, question_id: int, answer: str, is_correct: bool, score: int) -> QuestionAnswer:
        qa = QuestionAnswer(submission_id=submission.id, question_id=question_id, answer=answer, is_correct=is_correct, score=score)
        self.db.add(qa)
        return qa

    def finalize_submission(self, submission: ExamSubmission, score: int, skipped_count: int) -> None:
        submission.score = score
        submission.skipped_count = skipped_count
        self.db.flush()

    def list_submissions(self, exam_id: int, student_id: Optional[int] = None) -> List[ExamSubmission]:
        stmt = select(ExamSubmission).options(selectinload(ExamSubmission.answers)).where(ExamSubmission.exam_id == exam_id)
        if student_id is not None:
            stmt = stmt.where(ExamSubmission.student_id == student_id)
        return list(self.db.scalars(stmt.order_by(ExamSubmission.id)).all())

    def get_statistics_inputs(self, exam_id: int) -> Optional[StatisticsInputs]:
        exam = self.get_exam(exam_id)
        if exam is None: return None
        assignments = self.db.scalars(select(ExamAssignment).where(ExamAssignment.exam_id == exam_id)).all()
        return StatisticsInputs(exam=exam, assignments=list(assignments), submissions=self.list_submissions(exam_id))

    # ---- transaction ----

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
