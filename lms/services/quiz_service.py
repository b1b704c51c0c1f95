# lms/services/quiz_service.py

import random
import uuid
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlmodel import select
from sqlalchemy import func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.config import settings
from lms.core.errors import NotFound
from lms.models.user import User, utcnow
from lms.models.content import Unit
from lms.models.enums import ContentType
from lms.models.quiz import UnitQuiz, QuizQuestion, QuizAttempt
from lms.schemas.quiz import QuizCreate
from lms.services import access_service, learning_service


async def _unit(session: AsyncSession, unit_id: uuid.UUID) -> Unit:
    unit = await session.get(Unit, unit_id)
    if not unit:
        raise NotFound("Unit not found")
    return unit


async def _unit_quiz(session: AsyncSession, unit_id: uuid.UUID) -> Optional[UnitQuiz]:
    result = await session.execute(select(UnitQuiz).where(UnitQuiz.unit_id == unit_id))
    return result.scalars().first()


async def _questions(session: AsyncSession, quiz_id: uuid.UUID) -> List[QuizQuestion]:
    result = await session.execute(
        select(QuizQuestion).where(QuizQuestion.quiz_id == quiz_id).order_by(QuizQuestion.order)
    )
    return list(result.scalars().all())


def _quiz_view(quiz: UnitQuiz, questions: List[QuizQuestion]) -> Dict[str, Any]:
    return {
        "id": quiz.id,
        "course_id": quiz.course_id,
        "unit_id": quiz.unit_id,
        "title": quiz.title,
        "pass_percentage": quiz.pass_percentage,
        "time_limit_minutes": quiz.time_limit_minutes,
        "questions_per_attempt": quiz.questions_per_attempt,
        "is_active": quiz.is_active,
        "updated_at": quiz.updated_at,
        "questions": questions,
    }


# ============================================================================
# AUTHORING
# ============================================================================
async def save_unit_quiz(session: AsyncSession, user: User, unit_id: uuid.UUID, data: QuizCreate) -> Dict[str, Any]:
    """
    Create or replace the quiz of a unit. The question list is replaced as a
    whole; attempts already started keep the questions they were dealt.
    """
    unit = await _unit(session, unit_id)
    await access_service.ensure_cc_of(session, user, unit.course_id)

    for number, q in enumerate(data.questions, start=1):
        if q.correct_option >= len(q.options):
            raise ValueError(f"Question {number}: correct_option is out of range")
    if data.questions_per_attempt and data.questions_per_attempt > len(data.questions):
        raise ValueError("questions_per_attempt exceeds the number of questions")

    quiz = await _unit_quiz(session, unit.id)
    if quiz is None:
        quiz = UnitQuiz(course_id=unit.course_id, unit_id=unit.id, title=data.title, created_by=user.id)
    else:
        await session.execute(delete(QuizQuestion).where(QuizQuestion.quiz_id == quiz.id))

    quiz.title = data.title.strip()
    quiz.pass_percentage = data.pass_percentage or settings.QUIZ_PASS_PERCENTAGE
    quiz.time_limit_minutes = data.time_limit_minutes or settings.QUIZ_TIME_LIMIT_MINUTES
    quiz.questions_per_attempt = data.questions_per_attempt
    quiz.is_active = data.is_active
    quiz.updated_at = utcnow()
    session.add(quiz)
    await session.flush()

    for order, q in enumerate(data.questions, start=1):
        session.add(QuizQuestion(
            quiz_id=quiz.id,
            text=q.text.strip(),
            options=list(q.options),
            correct_option=q.correct_option,
            points=q.points,
            order=order,
        ))

    await session.commit()
    await session.refresh(quiz)
    logger.info(f"Quiz for unit {unit.title} saved with {len(data.questions)} questions by {user.id}")
    return _quiz_view(quiz, await _questions(session, quiz.id))


async def get_unit_quiz(session: AsyncSession, user: User, unit_id: uuid.UUID) -> Dict[str, Any]:
    """Staff view, correct answers included."""
    unit = await _unit(session, unit_id)
    course = await access_service.get_course(session, unit.course_id)
    await access_service.ensure_department_scope(session, user, course.department_id)

    quiz = await _unit_quiz(session, unit.id)
    if quiz is None:
        raise NotFound("This unit has no quiz")
    return _quiz_view(quiz, await _questions(session, quiz.id))


# ============================================================================
# AVAILABILITY
# ============================================================================
def _unit_complete(part: Dict[str, Any]) -> bool:
    if not all(e["done"] for e in part["entries"]):
        return False
    return part["quiz"] is None or part["quiz_passed"]


async def _completed_attempts(session: AsyncSession, student_id: uuid.UUID, quiz_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count(QuizAttempt.id)).where(
            QuizAttempt.student_id == student_id,
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.completed_at.is_not(None),
        )
    )
    return result.scalar() or 0


async def quiz_availability(session: AsyncSession, student: User, unit_id: uuid.UUID) -> Dict[str, Any]:
    """
    A unit quiz opens once every video and document of the unit is done
    and every earlier unit is complete, its own quiz included.
    """
    unit = await _unit(session, unit_id)
    course = await learning_service.launched_course_for(session, student, unit.course_id)

    quiz = await _unit_quiz(session, unit.id)
    if quiz is None or not quiz.is_active:
        raise NotFound("This unit has no quiz")

    outline = await learning_service.course_outline(session, student, course)
    current = next((p for p in outline if p["unit"].id == unit.id), None)
    entries = current["entries"] if current else []

    videos = [e for e in entries if e["item"]["type"] == ContentType.video.value]
    docs = [e for e in entries if e["item"]["type"] == ContentType.document.value]
    incomplete = [
        p["unit"].title for p in outline
        if p["unit"].order < unit.order and not _unit_complete(p)
    ]
    passed = bool(current and current["quiz_passed"])

    reason = None
    if incomplete:
        reason = "Complete the earlier units first"
    elif not all(e["done"] for e in videos):
        reason = "Watch every video in this unit first"
    elif not all(e["done"] for e in docs):
        reason = "Read every document in this unit first"
    elif passed:
        reason = "Quiz already passed"

    return {
        "unit_id": unit.id,
        "quiz_id": quiz.id,
        "title": quiz.title,
        "pass_percentage": quiz.pass_percentage,
        "time_limit_minutes": quiz.time_limit_minutes,
        "videos_total": len(videos),
        "videos_completed": sum(1 for e in videos if e["done"]),
        "documents_total": len(docs),
        "documents_completed": sum(1 for e in docs if e["done"]),
        "incomplete_units": incomplete,
        "attempts": await _completed_attempts(session, student.id, quiz.id),
        "passed": passed,
        "available": reason is None,
        "reason": reason,
    }


# ============================================================================
# ATTEMPTS
# ============================================================================
def _attempt_view(attempt: QuizAttempt, unit: Unit, time_limit: int) -> Dict[str, Any]:
    return {
        "attempt_id": attempt.id,
        "unit_title": unit.title,
        "time_limit_minutes": time_limit,
        "started_at": attempt.started_at,
        "questions": [
            {
                "question_id": q["question_id"],
                "number": number,
                "text": q["text"],
                "options": q["options"],
                "points": q["points"],
            }
            for number, q in enumerate(attempt.questions, start=1)
        ],
    }


async def start_attempt(session: AsyncSession, student: User, unit_id: uuid.UUID) -> Dict[str, Any]:
    """Deal a new attempt, or hand back the one still open."""
    availability = await quiz_availability(session, student, unit_id)
    if availability["passed"]:
        raise ValueError("Quiz already passed")
    if not availability["available"]:
        raise PermissionError(availability["reason"])

    unit = await _unit(session, unit_id)
    quiz = await session.get(UnitQuiz, availability["quiz_id"])

    result = await session.execute(
        select(QuizAttempt).where(
            QuizAttempt.quiz_id == quiz.id,
            QuizAttempt.student_id == student.id,
            QuizAttempt.completed_at.is_(None),
        )
    )
    attempt = result.scalars().first()
    if attempt is not None:
        return _attempt_view(attempt, unit, quiz.time_limit_minutes)

    questions = await _questions(session, quiz.id)
    if not questions:
        raise ValueError("This quiz has no questions yet")
    if quiz.questions_per_attempt and quiz.questions_per_attempt < len(questions):
        questions = random.sample(questions, quiz.questions_per_attempt)

    attempt = QuizAttempt(
        quiz_id=quiz.id,
        student_id=student.id,
        course_id=quiz.course_id,
        unit_id=unit.id,
        questions=[
            {
                "question_id": str(q.id),
                "text": q.text,
                "options": q.options,
                "correct_option": q.correct_option,
                "points": q.points,
            }
            for q in questions
        ],
        max_score=sum(q.points for q in questions),
    )
    session.add(attempt)
    await session.commit()
    await session.refresh(attempt)
    return _attempt_view(attempt, unit, quiz.time_limit_minutes)


async def _own_attempt(session: AsyncSession, student: User, attempt_id: uuid.UUID) -> QuizAttempt:
    attempt = await session.get(QuizAttempt, attempt_id)
    if not attempt:
        raise NotFound("Quiz attempt not found")
    if attempt.student_id != student.id:
        raise PermissionError("Not your quiz attempt")
    return attempt


def _summary(attempt: QuizAttempt) -> Dict[str, Any]:
    return {
        "attempt_id": attempt.id,
        "score": attempt.score,
        "max_score": attempt.max_score,
        "percentage": attempt.percentage,
        "passed": attempt.passed,
        "completed_at": attempt.completed_at,
    }


async def submit_attempt(
    session: AsyncSession,
    student: User,
    attempt_id: uuid.UUID,
    answers: List[Tuple[str, Optional[int]]],
) -> Dict[str, Any]:
    """
    Grade an attempt. Unanswered questions score zero. Passing the quiz of
    a unit opens the first video of the next one.
    """
    attempt = await _own_attempt(session, student, attempt_id)
    if attempt.completed_at is not None:
        raise ValueError("Quiz already submitted")

    quiz = await session.get(UnitQuiz, attempt.quiz_id)
    chosen = {qid: option for qid, option in answers}

    score = 0
    graded = []
    for q in attempt.questions:
        selected = chosen.get(q["question_id"])
        is_correct = selected is not None and selected == q["correct_option"]
        points = q["points"] if is_correct else 0
        score += points
        graded.append({
            "question_id": q["question_id"],
            "selected_option": selected,
            "is_correct": is_correct,
            "points": points,
        })

    attempt.answers = graded
    attempt.score = score
    attempt.percentage = learning_service.percent(score, attempt.max_score)
    attempt.passed = attempt.percentage >= quiz.pass_percentage
    attempt.completed_at = utcnow()
    session.add(attempt)
    await session.commit()
    await session.refresh(attempt)

    logger.info(
        f"Quiz attempt {attempt.id} by {student.id}: {attempt.score}/{attempt.max_score} "
        f"({'passed' if attempt.passed else 'failed'})"
    )
    return _summary(attempt)


async def attempt_results(session: AsyncSession, student: User, attempt_id: uuid.UUID) -> Dict[str, Any]:
    attempt = await _own_attempt(session, student, attempt_id)
    if attempt.completed_at is None:
        raise ValueError("Quiz attempt has not been submitted")

    unit = await _unit(session, attempt.unit_id)
    given = {a["question_id"]: a for a in attempt.answers}

    questions = []
    for number, q in enumerate(attempt.questions, start=1):
        answer = given.get(q["question_id"], {})
        questions.append({
            "number": number,
            "text": q["text"],
            "options": q["options"],
            "correct_option": q["correct_option"],
            "selected_option": answer.get("selected_option"),
            "is_correct": answer.get("is_correct", False),
            "points": q["points"],
            "earned_points": answer.get("points", 0),
        })

    return dict(_summary(attempt), unit_title=unit.title, questions=questions)


# ============================================================================
# MARKS
# ============================================================================
async def quiz_marks(session: AsyncSession, student_id: uuid.UUID, course_id: uuid.UUID) -> Dict[str, Any]:
    """
    Course marks from the best graded attempt of each active quiz:
    the average percentage over the quizzes passed.
    """
    quizzes = await learning_service.active_quizzes(session, course_id)
    quiz_ids = [q.id for q in quizzes.values()]

    best: Dict[uuid.UUID, QuizAttempt] = {}
    if quiz_ids:
        result = await session.execute(
            select(QuizAttempt).where(
                QuizAttempt.student_id == student_id,
                QuizAttempt.quiz_id.in_(quiz_ids),
                QuizAttempt.completed_at.is_not(None),
            )
        )
        for attempt in result.scalars().all():
            top = best.get(attempt.quiz_id)
            if top is None or attempt.percentage > top.percentage:
                best[attempt.quiz_id] = attempt

    passed = [a for a in best.values() if a.passed]
    marks = round(sum(a.percentage for a in passed) / len(passed), 2) if passed else 0.0
    return {"total_quizzes": len(quiz_ids), "passed_quizzes": len(passed), "marks_percent": marks}
