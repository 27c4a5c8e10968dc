from typing import Dict, List, Optional
from exambank.models.orm import Exam, ExamSubmission
from exambank.models.schemas import AnswerOut, ExamResult


def build_result(exam: Exam, submission: ExamSubmission, student_name: Optional[str]) -> ExamResult:
    answers = [AnswerOut.model_validate(a) for a in submission.answers]
    return ExamResult(
        exam_id=exam.id,
        student_id=submission.student_id,
        student_name=student_name,
        submitted_at=submission.submitted_at,
        completion_time=submission.completion_time,
        total_score=exam.total_score,
        score=submission.score,
        correct_count=sum(1 for a in answers if a.is_correct),
        question_count=len(exam.questions),
        skipped_count=submission.skipped_count,
        answers=answers,
    )


def build_results(exam: Exam, submissions: List[ExamSubmission], usernames: Dict[int, str]) -> List[ExamResult]:
    return [build_result(exam, s, usernames.get(s.student_id)) for s in submissions]
