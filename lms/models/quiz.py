# lms/models/quiz.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Integer, Float, Text, Boolean, DateTime, JSON
from datetime import datetime
from typing import Optional, List, Dict, Any
import uuid

from lms.models.user import utcnow


class UnitQuiz(SQLModel, table=True):
    """End-of-unit quiz. A unit carries at most one."""
    __tablename__ = "unit_quizzes"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    course_id: uuid.UUID = Field(foreign_key="courses.id", index=True)
    unit_id: uuid.UUID = Field(foreign_key="units.id", unique=True)

    title: str
    pass_percentage: int = Field(default=70, sa_column=Column(Integer, nullable=False, default=70))
    time_limit_minutes: int = Field(default=30, sa_column=Column(Integer, nullable=False, default=30))
    # None draws every question
    questions_per_attempt: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))

    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class QuizQuestion(SQLModel, table=True):
    __tablename__ = "quiz_questions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    quiz_id: uuid.UUID = Field(foreign_key="unit_quizzes.id", index=True)

    text: str = Field(sa_column=Column(Text, nullable=False))
    options: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    correct_option: int  # index into options
    points: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    order: int = Field(default=1, sa_column=Column("order", Integer, nullable=False, default=1))


class QuizAttempt(SQLModel, table=True):
    __tablename__ = "quiz_attempts"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    quiz_id: uuid.UUID = Field(foreign_key="unit_quizzes.id", index=True)
    student_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    course_id: uuid.UUID = Field(foreign_key="courses.id", index=True)
    unit_id: uuid.UUID = Field(foreign_key="units.id")

    # questions drawn for this attempt, frozen so later edits to the quiz
    # do not change grading:
    # [{"question_id", "text", "options", "correct_option", "points"}]
    questions: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    # [{"question_id", "selected_option", "is_correct", "points"}]
    answers: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    score: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    max_score: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    percentage: float = Field(default=0.0, sa_column=Column(Float, nullable=False, default=0.0))
    passed: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))

    started_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
