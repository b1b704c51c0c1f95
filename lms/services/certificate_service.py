# lms/services/certificate_service.py

import hashlib
import uuid
from typing import Any, Dict, List

from loguru import logger
from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.core.config import settings
from lms.core.errors import NotFound
from lms.models.user import User, utcnow
from lms.models.course import Course
from lms.models.section import SectionStudent, SectionCourseTeacher
from lms.models.certificate import Certificate
from lms.services import access_service, learning_service, quiz_service


def _number() -> str:
    return f"{settings.CERTIFICATE_PREFIX}-{utcnow().year}-{uuid.uuid4().hex[:8].upper()}"


def _fingerprint(cert: Certificate) -> str:
    """Ties the public data to the certificate number."""
    raw = "|".join([
        cert.certificate_number,
        str(cert.student_id),
        str(cert.course_id),
        cert.student_name,
        cert.course_title,
        f"{cert.marks_percent:.2f}",
    ])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


async def _section_students(session: AsyncSession, section_id: uuid.UUID) -> List[User]:
    result = await session.execute(
        select(User)
        .join(SectionStudent, SectionStudent.student_id == User.id)
        .where(SectionStudent.section_id == section_id)
        .order_by(User.name)
    )
    return list(result.scalars().all())


async def _course_section(session: AsyncSession, course_id: uuid.UUID, section_id: uuid.UUID):
    course = await access_service.get_course(session, course_id)
    section = await access_service.get_section(session, section_id)

    taught = await session.execute(
        select(SectionCourseTeacher.id).where(
            SectionCourseTeacher.section_id == section.id,
            SectionCourseTeacher.course_id == course.id,
        )
    )
    if taught.first() is None:
        raise ValueError("This course is not assigned to the section")
    return course, section


async def _refresh_marks(session: AsyncSession, cert: Certificate, course: Course) -> bool:
    """Recompute marks and completion; True when anything changed."""
    marks = await quiz_service.quiz_marks(session, cert.student_id, course.id)
    content_ids = await learning_service.active_content_ids(session, course)
    done = (await learning_service.completed_counts(
        session, course, content_ids, [cert.student_id]
    )).get(cert.student_id, 0)
    completion = learning_service.percent(done, len(content_ids))

    changed = (
        cert.total_quizzes != marks["total_quizzes"]
        or cert.passed_quizzes != marks["passed_quizzes"]
        or cert.marks_percent != marks["marks_percent"]
        or cert.completion_percent != completion
    )
    cert.total_quizzes = marks["total_quizzes"]
    cert.passed_quizzes = marks["passed_quizzes"]
    cert.marks_percent = marks["marks_percent"]
    cert.completion_percent = completion
    cert.verification_hash = _fingerprint(cert)
    return changed


# ============================================================================
# ACTIVATION (HOD)
# ============================================================================
async def activate_certificates(
    session: AsyncSession, user: User, course_id: uuid.UUID, section_id: uuid.UUID
) -> Dict[str, Any]:
    """
    Issue a certificate to every student of the section for a launched
    course. Students already holding one get their marks refreshed;
    revoked certificates are left alone.
    """
    course, section = await _course_section(session, course_id, section_id)
    await access_service.ensure_hod_of(session, user, course.department_id)

    if not course.is_launched:
        raise ValueError("Certificates can only be activated for a launched course")

    students = await _section_students(session, section.id)
    if not students:
        raise ValueError("No students assigned to this section")

    result = await session.execute(
        select(Certificate).where(
            Certificate.course_id == course.id,
            Certificate.student_id.in_([s.id for s in students]),
        )
    )
    existing = {c.student_id: c for c in result.scalars().all()}

    issued = refreshed = 0
    for student in students:
        cert = existing.get(student.id)
        if cert is not None:
            if cert.is_revoked:
                continue
            await _refresh_marks(session, cert, course)
            refreshed += 1
        else:
            cert = Certificate(
                certificate_number=_number(),
                student_id=student.id,
                course_id=course.id,
                section_id=section.id,
                student_name=student.name,
                course_title=course.title,
                activated_by=user.id,
                verification_hash="",
            )
            await _refresh_marks(session, cert, course)
            issued += 1
        session.add(cert)

    await session.commit()
    logger.info(
        f"Certificates for {course.code} / section {section.name}: "
        f"{issued} issued, {refreshed} refreshed by {user.id}"
    )
    return {"course_id": course.id, "section_id": section.id, "issued": issued, "refreshed": refreshed}


async def certificate_status(
    session: AsyncSession, user: User, course_id: uuid.UUID, section_id: uuid.UUID
) -> Dict[str, Any]:
    course, section = await _course_section(session, course_id, section_id)
    await access_service.ensure_section_scope(session, user, section)

    students = await _section_students(session, section.id)
    result = await session.execute(select(Certificate).where(Certificate.course_id == course.id))
    certs = {c.student_id: c for c in result.scalars().all()}

    return {
        "course_id": course.id,
        "section_id": section.id,
        "students": [
            {
                "student_id": s.id,
                "name": s.name,
                "registration_number": s.registration_number,
                "certificate": certs.get(s.id),
            }
            for s in students
        ],
    }


# ============================================================================
# STUDENTS
# ============================================================================
async def student_certificates(session: AsyncSession, student: User) -> List[Certificate]:
    """Own certificates, marks brought up to date."""
    result = await session.execute(
        select(Certificate).where(Certificate.student_id == student.id).order_by(Certificate.issued_at)
    )
    certs = list(result.scalars().all())

    dirty = False
    for cert in certs:
        if cert.is_revoked:
            continue
        course = await session.get(Course, cert.course_id)
        if course and await _refresh_marks(session, cert, course):
            session.add(cert)
            dirty = True

    if dirty:
        await session.commit()
    return certs


# ============================================================================
# PUBLIC VERIFICATION
# ============================================================================
async def verify_certificate(session: AsyncSession, certificate_number: str) -> Dict[str, Any]:
    result = await session.execute(
        select(Certificate).where(Certificate.certificate_number == certificate_number.strip().upper())
    )
    cert = result.scalars().first()
    if not cert:
        raise NotFound("Certificate not found")

    intact = cert.verification_hash == _fingerprint(cert)
    if not intact:
        logger.warning(f"Certificate {cert.certificate_number} failed its integrity check")

    return {
        "certificate_number": cert.certificate_number,
        "student_name": cert.student_name,
        "course_title": cert.course_title,
        "marks_percent": cert.marks_percent,
        "issued_at": cert.issued_at,
        "is_revoked": cert.is_revoked,
        "is_valid": intact and not cert.is_revoked,
    }


# ============================================================================
# REVOCATION
# ============================================================================
async def revoke_certificate(
    session: AsyncSession, user: User, certificate_id: uuid.UUID, reason: str | None = None
) -> Certificate:
    cert = await session.get(Certificate, certificate_id)
    if not cert:
        raise NotFound("Certificate not found")

    course = await access_service.get_course(session, cert.course_id)
    await access_service.ensure_hod_of(session, user, course.department_id)

    if cert.is_revoked:
        raise ValueError("Certificate is already revoked")

    cert.is_revoked = True
    cert.revoked_at = utcnow()
    cert.revoked_by = user.id
    cert.revocation_reason = reason or "No reason provided"
    session.add(cert)
    await session.commit()
    await session.refresh(cert)

    logger.info(f"Certificate {cert.certificate_number} revoked by {user.id}")
    return cert
