"""
Exam lifecycle: creation, assignment, submission and results.

State handled here:

* ``Exam.status`` moves DRAFT -> PUBLISHED the first time the exam is
  assigned. Nothing in this service moves an exam to CLOSED.
* ``ExamAssignment.is_submitted`` moves false -> true exactly once, when a
  submission is accepted. The flip is a compare-and-swap executed in the same
  transaction as the submission and answer rows, and
  ``exam_submissions(exam_id, student_id)`` is unique, so two racing
  submissions cannot both succeed.

Answers that reference a missing question, a question outside the exam, or a
question already answered earlier in the same payload are skipped rather than
rejected. The number skipped is stored on the submission and reported back.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from exambank.core.errors import ConflictError, DeadlineExceededError, ForbiddenError, NotFoundError, ValidationError
from exambank.models.orm import Exam, ExamStatus, utcnow
from exambank.models.schemas import (
    AssignmentResult, ExamCreate, ExamOut, ExamQuestionOut, ExamResult, QuestionOut, SubmissionIn,
)
from exambank.services.exam_repository import ExamRepository
from exambank.services.grader import grade
from exambank.services.results import build_result, build_results
from exambank.services.stores import QuestionStore, UserStore

logger = logging.getLogger(__name__)


def _violates(exc: IntegrityError, constraint: str, table: str) -> bool:
    """True when exc is the unique violation named constraint (PostgreSQL) or on table (SQLite)."""
    msg = str(exc.orig)
    return constraint in msg or f"UNIQUE constraint failed: {table}." in msg


class ExamService:
    def __init__(self, repository: ExamRepository, questions: QuestionStore, users: UserStore,
                 clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.questions = questions
        self.users = users
        self.clock = clock

    # ---- composition ----

    def _to_out(self, exam: Exam, include_questions: bool = True) -> ExamOut:
        bank = self.questions.get_questions_by_ids(eq.question_id for eq in exam.questions) if include_questions else {}
        entries = []
        for eq in exam.questions:
            q = bank.get(eq.question_id)
            entries.append(ExamQuestionOut(
                question_id=eq.question_id, order=eq.order, score=eq.score,
                question=QuestionOut.model_validate(q) if q is not None else None,
            ))
        return ExamOut(
            id=exam.id, title=exam.title, description=exam.description, created_at=exam.created_at,
            deadline=exam.deadline, total_score=exam.total_score, status=exam.status, questions=entries,
        )

    def _require_exam(self, exam_id: int) -> Exam:
        exam = self.repository.get_exam(exam_id)
        if exam is None:
            raise NotFoundError(f"Exam {exam_id} not found", {"exam_id": exam_id})
        return exam

    # ---- creation & reads ----

    def create_exam(self, payload: ExamCreate) -> ExamOut:
        title = (payload.title or "").strip()
        if not title:
            raise ValidationError("Exam title is required")
        orders = [q.order for q in payload.questions]
        if len(set(orders)) != len(orders):
            raise ValidationError("Question order must be unique within an exam", {"orders": orders})
        qids = [q.question_id for q in payload.questions]
        if len(set(qids)) != len(qids):
            raise ValidationError("A question may appear only once in an exam", {"question_ids": qids})
        known = self.questions.get_questions_by_ids(qids)
        missing = [qid for qid in qids if qid not in known]
        if missing:
            raise ValidationError(f"Unknown question ids: {missing}", {"missing_ids": missing})

        try:
            exam = self.repository.create_exam(
                title=title, description=payload.description, deadline=payload.deadline,
                questions=payload.questions, created_at=self.clock(),
            )
            self.repository.commit()
        except Exception:
            self.repository.rollback()
            raise
        logger.info("Created exam %s (%d questions, total score %d)", exam.id, len(qids), exam.total_score)
        return self.get_exam(exam.id)

    def get_exam(self, exam_id: int, include_questions: bool = True) -> ExamOut:
        return self._to_out(self._require_exam(exam_id), include_questions)

    def list_exams(self) -> List[ExamOut]:
        return [self._to_out(e, include_questions=False) for e in self.repository.list_exams()]

    def list_exams_for_student(self, student_id: int) -> List[ExamOut]:
        return [self._to_out(e, include_questions=False) for e in self.repository.list_exams_for_student(student_id)]

    def is_assigned(self, exam_id: int, student_id: int) -> bool:
        return self.repository.is_assigned(exam_id, student_id)

    def delete_exam(self, exam_id: int) -> None:
        exam = self._require_exam(exam_id)
        try:
            self.repository.delete_exam(exam)
            self.repository.commit()
        except Exception:
            self.repository.rollback()
            raise
        logger.info("Deleted exam %s", exam_id)

    # ---- assignment ----

    def assign_exam(self, exam_id: int, student_ids: List[int]) -> AssignmentResult:
        exam = self._require_exam(exam_id)
        requested = list(dict.fromkeys(student_ids))
        valid = set(self.users.list_student_ids(requested))
        rejected = [sid for sid in requested if sid not in valid]
        if rejected:
            # all-or-nothing: nothing has been written yet
            raise ValidationError(f"Not registered students: {rejected}", {"rejected_ids": rejected})
        created: List[int] = []
        for attempt in (1, 2):
            try:
                created = self.repository.assign(exam, requested, self.clock())
                self.repository.commit()
                break
            except IntegrityError as e:
                self.repository.rollback()
                if not _violates(e, "uq_exam_assignment", "exam_assignments"):
                    raise
                if attempt == 2:
                    raise ConflictError("Assignments changed concurrently, retry the request", {"exam_id": exam_id})
                # lost to a concurrent assignment; the retry sees its rows as already assigned
                logger.info("Concurrent assignment on exam %s, retrying", exam_id)
            except Exception:
                self.repository.rollback()
                raise
        logger.info("Assigned exam %s to %d new students (status=%s)", exam_id, len(created), ExamStatus(exam.status).name)
        return AssignmentResult(
            exam_id=exam_id, status=exam.status, assigned=created,
            already_assigned=[sid for sid in requested if sid not in set(created)],
        )

    # ---- submission ----

    def submit_exam(self, exam_id: int, student_id: int, submission: SubmissionIn) -> ExamResult:
        exam = self._require_exam(exam_id)
        assignment = self.repository.get_assignment(exam_id, student_id)
        if assignment is None:
            raise ForbiddenError("Exam is not assigned to this student", {"exam_id": exam_id, "student_id": student_id})
        if assignment.is_submitted:
            raise ConflictError("Exam already submitted", {"exam_id": exam_id, "student_id": student_id})
        now = self.clock()
        if exam.deadline is not None and now > exam.deadline:
            raise DeadlineExceededError("Submission deadline has passed", {"deadline": exam.deadline.isoformat()})

        weights: Dict[int, int] = {eq.question_id: eq.score for eq in exam.questions}
        try:
            if not self.repository.claim_assignment(assignment):
                raise ConflictError("Exam already submitted", {"exam_id": exam_id, "student_id": student_id})
            record = self.repository.add_submission(exam_id, student_id, now, submission.completion_time)
            total = skipped = 0
            seen = set()
            for ans in submission.answers:
                question = self.questions.get_question_by_id(ans.question_id)
                weight = weights.get(ans.question_id)
                if question is None or weight is None or ans.question_id in seen:
                    skipped += 1
                    logger.warning("Skipping answer for question %s on exam %s (student %s)", ans.question_id, exam_id, student_id)
                    continue
                seen.add(ans.question_id)
                outcome = grade(question.type, question.answers, ans.answer, weight)
                self.repository.add_answer(record, ans.question_id, ans.answer, outcome.is_correct, outcome.awarded_score)
                total += outcome.awarded_score
            self.repository.finalize_submission(record, total, skipped)
            self.repository.commit()
        except IntegrityError as e:
            self.repository.rollback()
            if _violates(e, "uq_exam_submission", "exam_submissions"):
                raise ConflictError("Exam already submitted", {"exam_id": exam_id, "student_id": student_id})
            raise
        except Exception:
            self.repository.rollback()
            raise

        logger.info("Exam %s submitted by student %s: score %d/%d, %d skipped", exam_id, student_id, total, exam.total_score, skipped)
        stored = self.repository.list_submissions(exam_id, student_id)
        return build_result(exam, stored[0], self.users.get_username(student_id))

    # ---- results ----

    def get_exam_results(self, exam_id: int, student_id: Optional[int] = None) -> List[ExamResult]:
        exam = self._require_exam(exam_id)
        submissions = self.repository.list_submissions(exam_id, student_id)
        usernames = self.users.get_usernames(s.student_id for s in submissions)
        return build_results(exam, submissions, usernames)
