import os
import tempfile
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# ------------------------------------------------------------------
# FORCE TESTING MODE
# Must happen BEFORE importing lms.main so config.py and database.py
# pick up the sqlite database and the relaxed settings.
# ------------------------------------------------------------------
TEST_DB = Path(tempfile.gettempdir()) / "campus_lms_test.db"

os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB}"
os.environ["SECRET_KEY"] = "test-secret-key-for-campus-lms"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("REDIS_URL", None)
os.environ.pop("SMTP_HOST", None)

from lms.main import app  # noqa: E402
from lms.core.database import AsyncSessionLocal, drop_db, init_db  # noqa: E402
from lms.core.security import create_access_token  # noqa: E402
from lms.models.user import UserRole  # noqa: E402
from lms.models.school import School  # noqa: E402
from lms.models.department import Department  # noqa: E402
from lms.models.course import Course, CourseCoordinator  # noqa: E402
from lms.models.content import Unit, Video, ReadingMaterial  # noqa: E402
from lms.models.section import Section, SectionStudent, SectionCourseTeacher  # noqa: E402
from lms.services.auth_service import create_user  # noqa: E402

PASSWORD = "password123"


@pytest_asyncio.fixture(autouse=True)
async def fresh_db():
    await drop_db()
    await init_db()
    yield


@pytest_asyncio.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session():
    async with AsyncSessionLocal() as session:
        yield session


def auth_headers(user) -> dict:
    token = create_access_token(subject=str(user.id), data={"role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers


async def _add(session, *rows):
    for row in rows:
        session.add(row)
    await session.commit()
    for row in rows:
        await session.refresh(row)
    return rows[0] if len(rows) == 1 else rows


# ------------------------------------------------------------------
# A small campus:
#   School SOE -> Department CSE (HOD) -> Course CS101
#   Unit 1: video v1 (seq 1), video v2 (seq 2), document d1
#   Unit 2: video v3, document d2
#   Section A with one student, taught by the coordinator
# ------------------------------------------------------------------
@pytest_asyncio.fixture
async def campus(db_session):
    s = db_session

    school = await _add(s, School(name="School of Engineering", code="SOE"))
    dept = await _add(s, Department(name="Computer Science", code="CSE", school_id=school.id))
    other_dept = await _add(s, Department(name="Mechanical", code="ME", school_id=school.id))

    admin = await create_user(s, "Admin", "admin@campus.edu", PASSWORD, UserRole.Admin)
    dean = await create_user(s, "Dean", "dean@campus.edu", PASSWORD, UserRole.Dean, school_id=school.id)
    hod = await create_user(s, "Hod", "hod@campus.edu", PASSWORD, UserRole.HOD, department_id=dept.id)
    cc = await create_user(s, "Coordinator", "cc@campus.edu", PASSWORD, UserRole.Teacher, department_id=dept.id)
    teacher = await create_user(
        s, "Other Teacher", "teacher@campus.edu", PASSWORD, UserRole.Teacher, department_id=dept.id
    )
    outsider = await create_user(
        s, "Outsider", "outsider@campus.edu", PASSWORD, UserRole.Teacher, department_id=other_dept.id
    )
    student = await create_user(
        s, "Asha Student", "asha@campus.edu", PASSWORD, UserRole.Student,
        department_id=dept.id, registration_number="CSE2024001",
    )
    student2 = await create_user(
        s, "Bala Student", "bala@campus.edu", PASSWORD, UserRole.Student,
        department_id=dept.id, registration_number="CSE2024002",
    )

    school.dean_id = dean.id
    dept.hod_id = hod.id
    await _add(s, school, dept)

    course = await _add(s, Course(title="Programming Basics", code="CS101", department_id=dept.id))
    await _add(s, CourseCoordinator(course_id=course.id, teacher_id=cc.id, assigned_by=hod.id))

    unit1 = await _add(s, Unit(course_id=course.id, title="Unit 1", order=1))
    unit2 = await _add(s, Unit(course_id=course.id, title="Unit 2", order=2))

    v1 = await _add(s, Video(course_id=course.id, unit_id=unit1.id, title="Intro", duration=100, sequence=1))
    v2 = await _add(s, Video(course_id=course.id, unit_id=unit1.id, title="Variables", duration=200, sequence=2))
    d1 = await _add(s, ReadingMaterial(course_id=course.id, unit_id=unit1.id, title="Notes 1", pages=3, order=1))
    v3 = await _add(s, Video(course_id=course.id, unit_id=unit2.id, title="Loops", duration=300, sequence=1))
    d2 = await _add(s, ReadingMaterial(course_id=course.id, unit_id=unit2.id, title="Notes 2", pages=5, order=1))

    section = await _add(s, Section(name="A", school_id=school.id, department_id=dept.id))
    await _add(
        s,
        SectionStudent(section_id=section.id, student_id=student.id),
        SectionCourseTeacher(section_id=section.id, course_id=course.id, teacher_id=cc.id, assigned_by=hod.id),
    )

    return SimpleNamespace(
        school=school, dept=dept, other_dept=other_dept,
        admin=admin, dean=dean, hod=hod, cc=cc, teacher=teacher, outsider=outsider,
        student=student, student2=student2,
        course=course, unit1=unit1, unit2=unit2,
        v1=v1, v2=v2, d1=d1, v3=v3, d2=d2,
        section=section,
    )


# ------------------------------------------------------------------
# Workflow shortcuts used by several modules
# ------------------------------------------------------------------
async def open_arrangement(client, campus) -> dict:
    res = await client.get(
        f"/api/content-arrangement/course/{campus.course.id}", headers=auth_headers(campus.cc)
    )
    assert res.status_code == 200, res.text
    return res.json()["arrangement"]


async def approve_and_launch(client, campus) -> dict:
    arrangement = await open_arrangement(client, campus)
    res = await client.post(
        f"/api/content-arrangement/{arrangement['id']}/submit", headers=auth_headers(campus.cc)
    )
    assert res.status_code == 200, res.text
    res = await client.post(
        f"/api/content-arrangement/{arrangement['id']}/review",
        json={"action": "approve"},
        headers=auth_headers(campus.hod),
    )
    assert res.status_code == 200, res.text
    res = await client.post(
        f"/api/content-arrangement/course/{campus.course.id}/launch", headers=auth_headers(campus.hod)
    )
    assert res.status_code == 200, res.text
    return res.json()


QUIZ_QUESTIONS = [
    {"text": "2 + 2 = ?", "options": ["3", "4", "5"], "correct_option": 1},
    {"text": "Capital of France?", "options": ["Paris", "Rome"], "correct_option": 0},
]
CORRECT = {q["text"]: q["correct_option"] for q in QUIZ_QUESTIONS}


async def save_quiz(client, campus, unit, **overrides) -> dict:
    payload = {"title": f"{unit.title} quiz", "questions": QUIZ_QUESTIONS}
    payload.update(overrides)
    res = await client.put(f"/api/quizzes/units/{unit.id}", json=payload, headers=auth_headers(campus.cc))
    assert res.status_code == 200, res.text
    return res.json()


async def complete(client, student, *contents):
    """contents: (content_type, row) pairs, in arranged order."""
    for ctype, content in contents:
        res = await client.post(
            "/api/learning/progress",
            json={"content_type": ctype, "content_id": str(content.id), "completed": True},
            headers=auth_headers(student),
        )
        assert res.status_code == 200, res.text


async def take_quiz(client, student, unit, wrong: int = 0) -> dict:
    """Start an attempt and answer it, getting the first `wrong` questions wrong."""
    headers = auth_headers(student)
    res = await client.post(f"/api/quizzes/units/{unit.id}/attempts", headers=headers)
    assert res.status_code == 200, res.text
    attempt = res.json()

    answers = []
    for n, q in enumerate(attempt["questions"]):
        right = CORRECT[q["text"]]
        answers.append({"question_id": q["question_id"], "selected_option": right + 1 if n < wrong else right})

    res = await client.post(
        f"/api/quizzes/attempts/{attempt['attempt_id']}/submit", json={"answers": answers}, headers=headers
    )
    assert res.status_code == 200, res.text
    return res.json()
