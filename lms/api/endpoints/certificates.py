# lms/api/endpoints/certificates.py

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from uuid import UUID

from lms.api.deps import get_db_session
from lms.core.errors import to_http
from lms.core.rbac import require_reviewer, require_staff, require_student
from lms.models.user import User
from lms.schemas.certificate import (
    CertificateActivate,
    ActivationResult,
    CertificateRead,
    CertificateStatus,
    CertificateVerification,
    RevokeRequest,
)
from lms.services import certificate_service
from lms.services.audit_service import log_activity

router = APIRouter(prefix="/api/certificates", tags=["Certificates"])


@router.post("/activate", response_model=ActivationResult)
async def activate_certificates(
    payload: CertificateActivate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_reviewer),
):
    """HOD of the course's department (or Admin) issues certificates to a section."""
    try:
        result = await certificate_service.activate_certificates(
            session, user, payload.course_id, payload.section_id
        )
    except Exception as e:
        raise to_http(e)

    background_tasks.add_task(
        log_activity,
        action="CERTIFICATES_ACTIVATED",
        actor_id=user.id,
        actor_role=user.role.value,
        actor_name=user.name,
        category="certificates",
        resource_type="course",
        resource_id=str(payload.course_id),
        details={"section_id": str(payload.section_id), "issued": result["issued"]},
    )
    return result


@router.get("/courses/{course_id}/sections/{section_id}", response_model=CertificateStatus)
async def certificate_status(
    course_id: UUID,
    section_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_staff),
):
    try:
        return await certificate_service.certificate_status(session, user, course_id, section_id)
    except Exception as e:
        raise to_http(e)


@router.get("/me", response_model=List[CertificateRead])
async def my_certificates(
    session: AsyncSession = Depends(get_db_session),
    student: User = Depends(require_student),
):
    return await certificate_service.student_certificates(session, student)


@router.get("/verify/{certificate_number}", response_model=CertificateVerification)
async def verify_certificate(
    certificate_number: str,
    session: AsyncSession = Depends(get_db_session),
):
    """Public: anyone holding the number can check it."""
    try:
        return await certificate_service.verify_certificate(session, certificate_number)
    except Exception as e:
        raise to_http(e)


@router.post("/{certificate_id}/revoke", response_model=CertificateRead)
async def revoke_certificate(
    certificate_id: UUID,
    payload: RevokeRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db_session),
    user: User = Depends(require_reviewer),
):
    try:
        cert = await certificate_service.revoke_certificate(session, user, certificate_id, payload.reason)
    except Exception as e:
        raise to_http(e)

    background_tasks.add_task(
        log_activity,
        action="CERTIFICATE_REVOKED",
        actor_id=user.id,
        actor_role=user.role.value,
        actor_name=user.name,
        category="certificates",
        resource_type="certificate",
        resource_id=cert.certificate_number,
        remarks=cert.revocation_reason,
    )
    return cert
