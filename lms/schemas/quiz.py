from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime


# ------------------------------------------------------------
# AUTHORING (coordinator)
# ------------------------------------------------------------
class QuestionCreate(BaseModel):
    text: str = Field(min_length=1)
    options: List[str] = Field(min_length=2)
    correct_option: int = Field(ge=0)
    points: int = Field(default=1, ge=1)


class QuizCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    pass_percentage: Optional[int] = Field(default=None, ge=1, le=100)
    time_limit_minutes: Optional[int] = Field(default=None, ge=1)
    questions_per_attempt: Optional[int] = Field(default=None, ge=1)
    is_active: bool = True
    questions: List[QuestionCreate] = Field(min_length=1)


class QuestionRead(BaseModel):
    id: UUID
    text: str
    options: List[str]
    correct_option: int
    points: int
    order: int

    class Config:
        from_attributes = True


class QuizRead(BaseModel):
    id: UUID
    course_id: UUID
    unit_id: UUID
    title: str
    pass_percentage: int
    time_limit_minutes: int
    questions_per_attempt: Optional[int] = None
    is_active: bool
    updated_at: datetime
    questions: List[QuestionRead]


# ------------------------------------------------------------
# TAKING (student)
# ------------------------------------------------------------
class QuizAvailability(BaseModel):
    unit_id: UUID
    quiz_id: UUID
    title: str
    pass_percentage: int
    time_limit_minutes: int
    videos_total: int
    videos_completed: int
    documents_total: int
    documents_completed: int
    incomplete_units: List[str]
    attempts: int
    passed: bool
    available: bool
    reason: Optional[str] = None


class AttemptQuestion(BaseModel):
    question_id: UUID
    number: int
    text: str
    options: List[str]
    points: int


class AttemptStart(BaseModel):
    attempt_id: UUID
    unit_title: str
    time_limit_minutes: int
    started_at: datetime
    questions: List[AttemptQuestion]


class QuizAnswer(BaseModel):
    question_id: UUID
    selected_option: Optional[int] = None


class QuizSubmission(BaseModel):
    answers: List[QuizAnswer] = Field(default_factory=list)


class AttemptSummary(BaseModel):
    attempt_id: UUID
    score: int
    max_score: int
    percentage: float
    passed: bool
    completed_at: datetime


class ResultQuestion(BaseModel):
    number: int
    text: str
    options: List[str]
    correct_option: int
    selected_option: Optional[int] = None
    is_correct: bool
    points: int
    earned_points: int


class AttemptResults(AttemptSummary):
    unit_title: str
    questions: List[ResultQuestion]
