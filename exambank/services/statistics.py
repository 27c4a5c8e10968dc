"""
Descriptive statistics for one exam, computed from stored submissions.

Results are a snapshot of whatever the session can read at call time.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple
from exambank.core.errors import NotFoundError
from exambank.models.orm import Exam, ExamSubmission, QuestionAnswer, QuestionType
from exambank.models.schemas import ExamStatistics, QuestionStatistics
from exambank.services.exam_repository import ExamRepository
from exambank.services.results import build_results
from exambank.services.stores import QuestionStore, UserStore

logger = logging.getLogger(__name__)

# pass mark and band edges in tenths of the total score
PASS_TENTHS = 6
SCORE_BANDS: Tuple[Tuple[str, int, Optional[int]], ...] = (
    ("0-59", 0, 6),
    ("60-69", 6, 7),
    ("70-79", 7, 8),
    ("80-89", 8, 9),
    ("90-100", 9, None),
)
TALLIED_TYPES = {QuestionType.SINGLE_CHOICE.value, QuestionType.TRUE_FALSE.value}


def _at_least(score: int, total: int, tenths: int) -> bool:
    # score >= total * tenths / 10 without floating point
    return score * 10 >= total * tenths


def passed(score: int, total: int) -> bool:
    return _at_least(score, total, PASS_TENTHS)


def score_band(score: int, total: int) -> str:
    """Half-open bands [lo, hi) over score/total; the top band is closed."""
    for label, lo, hi in SCORE_BANDS:
        if _at_least(score, total, lo) and (hi is None or not _at_least(score, total, hi)):
            return label
    return SCORE_BANDS[0][0]


def score_distribution(scores: Sequence[int], total: int) -> Dict[str, int]:
    dist = {label: 0 for label, _, _ in SCORE_BANDS}
    for s in scores:
        dist[score_band(s, total)] += 1
    return dist


def option_counts(answers: Sequence[QuestionAnswer]) -> Dict[str, int]:
    """Tally raw answer strings split on commas; tokens are not trimmed."""
    counts: Dict[str, int] = {}
    for a in answers:
        for token in (a.answer or "").split(","):
            if token:
                counts[token] = counts.get(token, 0) + 1
    return counts


class StatisticsAggregator:
    def __init__(self, repository: ExamRepository, questions: QuestionStore, users: UserStore):
        self.repository = repository
        self.questions = questions
        self.users = users

    def compute_statistics(self, exam_id: int, student_id: Optional[int] = None) -> ExamStatistics:
        inputs = self.repository.get_statistics_inputs(exam_id)
        if inputs is None:
            raise NotFoundError(f"Exam {exam_id} not found", {"exam_id": exam_id})
        exam, submissions = inputs.exam, inputs.submissions
        scores = [s.score for s in submissions]
        n = len(scores)

        stats = ExamStatistics(
            exam_id=exam.id,
            exam_title=exam.title,
            student_count=len(inputs.assignments),
            submitted_count=n,
            average_score=(sum(scores) / n) if n else 0.0,
            highest_score=max(scores) if n else 0,
            lowest_score=min(scores) if n else 0,
            pass_rate=(sum(1 for s in scores if passed(s, exam.total_score)) / n) if n else 0.0,
            score_distribution=score_distribution(scores, exam.total_score),
            question_statistics=self._question_statistics(exam, submissions),
        )
        shown = submissions if student_id is None else [s for s in submissions if s.student_id == student_id]
        stats.student_results = build_results(exam, shown, self.users.get_usernames(s.student_id for s in shown))
        logger.debug("Computed statistics for exam %s over %d submissions", exam_id, n)
        return stats

    def _question_statistics(self, exam: Exam, submissions: List[ExamSubmission]) -> List[QuestionStatistics]:
        by_question: Dict[int, List[QuestionAnswer]] = {}
        for s in submissions:
            for a in s.answers:
                by_question.setdefault(a.question_id, []).append(a)
        bank = self.questions.get_questions_by_ids(eq.question_id for eq in exam.questions)

        out = []
        for eq in exam.questions:
            answers = by_question.get(eq.question_id, [])
            correct = sum(1 for a in answers if a.is_correct)
            q = bank.get(eq.question_id)
            out.append(QuestionStatistics(
                question_id=eq.question_id,
                order=eq.order,
                type=q.type if q is not None else None,
                content=q.content if q is not None else None,
                correct_count=correct,
                incorrect_count=len(answers) - correct,
                correct_rate=(correct / len(answers)) if answers else 0.0,
                option_counts=option_counts(answers) if q is not None and q.type in TALLIED_TYPES else None,
            ))
        return out
