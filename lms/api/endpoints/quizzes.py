# lms/api/endpoints/quizzes.py

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from lms.api.deps import get_db_session
from lms.core.errors import to_http
from lms.core.rbac import AllowRoles, require_staff, require_student
from lms.models.user import User, UserRole
from lms.schemas.quiz import (
    QuizCreate,
    QuizRead,
    QuizAvailability,
    AttemptStart,
    QuizSubmission,
    AttemptSummary,
    AttemptResults,
)
from lms.services import quiz_service

router = APIRouter(prefix="/api/quizzes", tags=["Unit Quizzes"])

quiz_authors = AllowRoles(UserRole.Teacher)


# ------------------------------------------------------------
# AUTHORING
# ------------------------------------------------------------
@router.put("/units/{unit_id}", response_model=QuizRead)
async def save_unit_quiz(
    unit_id: UUID,
    data: QuizCreate,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(quiz_authors),
):
    """Course Coordinator (or Admin) sets the quiz of a unit."""
    try:
        return await quiz_service.save_unit_quiz(session, user, unit_id, data)
    except Exception as e:
        raise to_http(e)


@router.get("/units/{unit_id}", response_model=QuizRead)
async def get_unit_quiz(
    unit_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_staff),
):
    try:
        return await quiz_service.get_unit_quiz(session, user, unit_id)
    except Exception as e:
        raise to_http(e)


# ------------------------------------------------------------
# STUDENTS
# ------------------------------------------------------------
@router.get("/units/{unit_id}/availability", response_model=QuizAvailability)
async def quiz_availability(
    unit_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    student: User = Depends(require_student),
):
    try:
        return await quiz_service.quiz_availability(session, student, unit_id)
    except Exception as e:
        raise to_http(e)


@router.post("/units/{unit_id}/attempts", response_model=AttemptStart)
async def start_attempt(
    unit_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    student: User = Depends(require_student),
):
    try:
        return await quiz_service.start_attempt(session, student, unit_id)
    except Exception as e:
        raise to_http(e)


@router.post("/attempts/{attempt_id}/submit", response_model=AttemptSummary)
async def submit_attempt(
    attempt_id: UUID,
    payload: QuizSubmission,
    session: AsyncSession = Depends(get_db_session),
    student: User = Depends(require_student),
):
    answers = [(str(a.question_id), a.selected_option) for a in payload.answers]
    try:
        return await quiz_service.submit_attempt(session, student, attempt_id, answers)
    except Exception as e:
        raise to_http(e)


@router.get("/attempts/{attempt_id}/results", response_model=AttemptResults)
async def attempt_results(
    attempt_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    student: User = Depends(require_student),
):
    try:
        return await quiz_service.attempt_results(session, student, attempt_id)
    except Exception as e:
        raise to_http(e)
