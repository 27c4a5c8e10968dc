from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence
from exambank.models.orm import QuestionType


@dataclass(frozen=True)
class GradeOutcome:
    is_correct: bool
    awarded_score: int


def _norm(token: str) -> str: return token.strip().casefold()


def _tokens(raw: str) -> List[str]:
    return [t for t in (_norm(p) for p in raw.split(",")) if t]


def exact_match(correct_answers: Sequence[str], student_answer: str) -> bool:
    if not correct_answers: return False
    return _norm(correct_answers[0]) == _norm(student_answer)


def multiset_match(correct_answers: Sequence[str], student_answer: str) -> bool:
    expected = sorted(t for entry in correct_answers for t in _tokens(entry))
    if not expected: return False
    return expected == sorted(_tokens(student_answer))


# no fuzzy matching for free-text types: fill-in-blank and short answer are exact
RULES: Dict[QuestionType, Callable[[Sequence[str], str], bool]] = {
    QuestionType.SINGLE_CHOICE: exact_match,
    QuestionType.TRUE_FALSE: exact_match,
    QuestionType.FILL_IN_BLANK: exact_match,
    QuestionType.SHORT_ANSWER: exact_match,
    QuestionType.MULTIPLE_CHOICE: multiset_match,
}


def rule_for(question_type: int) -> Optional[Callable[[Sequence[str], str], bool]]:
    try:
        return RULES.get(QuestionType(question_type))
    except ValueError:
        return None


def grade(question_type: int, correct_answers: Optional[Sequence[str]], student_answer: Optional[str], max_score: int) -> GradeOutcome:
    """All-or-nothing: max_score when the rule for the type accepts the answer, else 0.

    PROGRAM and unknown type codes have no rule and are never correct.
    """
    rule = rule_for(question_type)
    ok = bool(rule and rule(list(correct_answers or []), student_answer or ""))
    return GradeOutcome(is_correct=ok, awarded_score=max_score if ok else 0)
