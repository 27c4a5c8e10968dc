from datetime import datetime, timezone
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, constr, field_validator
from exambank.models.orm import QuestionType


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ---- questions ----

class QuestionIn(BaseModel):
    type: QuestionType
    content: constr(min_length=1)
    options: Optional[List[str]] = None
    answers: Optional[List[str]] = None
    analysis: Optional[str] = None
    reference_answer: Optional[str] = None
    examples: Optional[List[dict]] = None
    category: Optional[str] = None
    difficulty: int = Field(default=1, ge=0)
    tags: List[str] = []


class QuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    type: int
    content: str
    options: Optional[List[str]] = None
    answers: Optional[List[str]] = None
    analysis: Optional[str] = None
    reference_answer: Optional[str] = None
    examples: Optional[List[dict]] = None
    category: Optional[str] = None
    difficulty: int = 1
    tags: List[str] = []
    created_at: Optional[datetime] = None


# ---- exams ----

class ExamQuestionIn(BaseModel):
    question_id: int
    order: int
    score: int = Field(ge=0)


class ExamCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    deadline: Optional[datetime] = None
    questions: List[ExamQuestionIn] = []

    @field_validator("deadline")
    @classmethod
    def deadline_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)


class ExamQuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    question_id: int
    order: int
    score: int
    question: Optional[QuestionOut] = None


class ExamOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    title: str
    description: Optional[str] = None
    created_at: datetime
    deadline: Optional[datetime] = None
    total_score: int
    status: int
    questions: List[ExamQuestionOut] = []


class AssignRequest(BaseModel):
    student_ids: List[int]


class AssignmentResult(BaseModel):
    exam_id: int
    status: int
    assigned: List[int]
    already_assigned: List[int]


# ---- submissions & results ----

class AnswerIn(BaseModel):
    question_id: int
    answer: str = ""


class SubmissionIn(BaseModel):
    answers: List[AnswerIn] = []
    completion_time: int = Field(default=0, ge=0)


class AnswerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    question_id: int
    answer: str
    is_correct: bool
    score: int


class ExamResult(BaseModel):
    exam_id: int
    student_id: int
    student_name: Optional[str] = None
    submitted_at: datetime
    completion_time: int
    total_score: int
    score: int
    correct_count: int
    question_count: int
    skipped_count: int = 0
    answers: List[AnswerOut] = []


class QuestionStatistics(BaseModel):
    question_id: int
    order: int
    type: Optional[int] = None
    content: Optional[str] = None
    correct_count: int
    incorrect_count: int
    correct_rate: float
    option_counts: Optional[Dict[str, int]] = None


class ExamStatistics(BaseModel):
    exam_id: int
    exam_title: Optional[str] = None
    student_count: int
    submitted_count: int
    average_score: float
    highest_score: int
    lowest_score: int
    pass_rate: float
    score_distribution: Dict[str, int]
    question_statistics: List[QuestionStatistics] = []
    student_results: List[ExamResult] = []


# ---- users ----

class StudentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    username: str
