from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.errors import BadRequestError, NotFoundError
from loanportal.core.roles import Role
from loanportal.models.application_assignment import ApplicationAssignment
from loanportal.models.loan_application import LoanApplication
from loanportal.models.loan_document import LoanDocument
from loanportal.models.user import User
from loanportal.schemas.applications import ApplicationCreate, ApplicationStatus, ApplicationUpdate, Priority
from loanportal.services import authz, documents
from loanportal.services.audit import model_snapshot, record_audit_log
from loanportal.services.completeness import required_documents_for
from loanportal.services.identifiers import generate_application_number
from loanportal.services.lifecycle import SUBMISSION_COMMENT, append_history, apply_status, check_version
from loanportal.services.system_logs import record_system_log

logger = logging.getLogger(__name__)

HIGH_PRIORITY_AMOUNT = Decimal("1000000")
MEDIUM_PRIORITY_AMOUNT = Decimal("500000")
DEFAULT_APPROVAL_THRESHOLD = 2
WITH_FILES_APPROVAL_THRESHOLD = 1
STORAGE_FAILURE_MESSAGE = "File could not be stored; please upload it again"

_AUDIT_EXCLUDE = {"personal_details", "loan_details", "education_details"}


def derive_priority(amount: Decimal | int | float) -> str:
    amount = Decimal(str(amount))
    if amount > HIGH_PRIORITY_AMOUNT:
        return Priority.HIGH.value
    if amount > MEDIUM_PRIORITY_AMOUNT:
        return Priority.MEDIUM.value
    return Priority.LOW.value


async def get_application(db: AsyncSession, application_id: UUID) -> LoanApplication:
    result = await db.execute(select(LoanApplication).where(LoanApplication.id == application_id))
    application = result.scalar_one_or_none()
    if application is None:
        raise NotFoundError("Loan application not found")
    return application


async def get_visible_application(db: AsyncSession, application_id: UUID, user: User) -> LoanApplication:
    application = await get_application(db, application_id)
    authz.ensure_can_view_application(user, application)
    return application


async def create_application(
    db: AsyncSession,
    payload: ApplicationCreate,
    *,
    applicant: User,
    final_approval_threshold: int = DEFAULT_APPROVAL_THRESHOLD,
) -> LoanApplication:
    amount = payload.loan_details.amount
    application = LoanApplication(
        application_number=generate_application_number(),
        user_id=applicant.id,
        loan_type=payload.loan_type,
        personal_details=payload.personal_details.model_dump(mode="json"),
        loan_details=payload.loan_details.model_dump(mode="json"),
        education_details=payload.education_details.model_dump(mode="json"),
        amount=amount,
        status=ApplicationStatus.PENDING.value,
        priority=derive_priority(amount),
        required_documents=required_documents_for(payload.loan_type),
        final_approval_threshold=final_approval_threshold,
        payment_status="pending",
    )
    append_history(
        application,
        ApplicationStatus.PENDING.value,
        actor_id=applicant.id,
        comments=SUBMISSION_COMMENT,
    )
    db.add(application)
    await db.flush()
    record_audit_log(
        db,
        actor_id=applicant.id,
        action="loan_application.submitted",
        resource_type="loan_application",
        resource_id=str(application.id),
        new_value=model_snapshot(application, exclude=_AUDIT_EXCLUDE),
    )
    await db.commit()
    await db.refresh(application)
    logger.info(
        "Application submitted",
        extra={"application_id": str(application.id), "application_number": application.application_number},
    )
    return application


def _scope_conditions(user: User) -> list:
    role = authz.role_of(user)
    if role is Role.ADMIN:
        return []
    if role is Role.DSA:
        assigned = select(ApplicationAssignment.loan_application_id).where(
            ApplicationAssignment.dsa_id == user.id
        )
        return [LoanApplication.id.in_(assigned)]
    return [LoanApplication.user_id == user.id]


async def list_applications(
    db: AsyncSession,
    user: User,
    *,
    status: str | None = None,
    priority: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[LoanApplication], int]:
    conditions = _scope_conditions(user)
    if status:
        conditions.append(LoanApplication.status == status)
    if priority:
        conditions.append(LoanApplication.priority == priority)
    if search:
        conditions.append(LoanApplication.application_number.ilike(f"%{search.strip()}%"))

    count_stmt = select(func.count()).select_from(LoanApplication).where(*conditions)
    total = int((await db.execute(count_stmt)).scalar_one() or 0)
    stmt = (
        select(LoanApplication)
        .where(*conditions)
        .order_by(LoanApplication.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = (await db.execute(stmt)).scalars().all()
    return list(rows), total


async def update_application(
    db: AsyncSession,
    application: LoanApplication,
    payload: ApplicationUpdate,
    *,
    actor: User,
) -> LoanApplication:
    """Staff update; a status change in the payload goes through the lifecycle rules."""
    authz.ensure_can_update_status(actor, application)
    check_version(application, payload.expected_version)

    old_value = model_snapshot(application, exclude=_AUDIT_EXCLUDE)
    if payload.status is not None:
        apply_status(application, payload.status, actor_id=actor.id, comments=payload.comments)
    if payload.priority is not None:
        application.priority = payload.priority.value
    if payload.review_deadline is not None:
        application.review_deadline = payload.review_deadline
    if payload.final_approval_threshold is not None:
        application.final_approval_threshold = payload.final_approval_threshold

    new_value = model_snapshot(application, exclude=_AUDIT_EXCLUDE)
    if payload.comments:
        new_value["comments"] = payload.comments

    record_audit_log(
        db,
        actor_id=actor.id,
        action="loan_application.updated",
        resource_type="loan_application",
        resource_id=str(application.id),
        old_value=old_value,
        new_value=new_value,
    )
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application


async def _record_failed_upload(
    db: AsyncSession,
    application: LoanApplication,
    field: str,
    upload: UploadFile,
    error: str,
    applicant: User,
    *,
    level: str = "warn",
) -> dict:
    record_system_log(
        db,
        level,
        f"Upload failed for {field}: {error}",
        context={"application_id": str(application.id), "file_name": upload.filename},
        user_id=applicant.id,
    )
    await db.commit()
    return {"field": field, "file_name": upload.filename, "error": error}


async def create_with_files(
    db: AsyncSession,
    payload: ApplicationCreate,
    uploads: list[tuple[str, str, UploadFile]],
    *,
    applicant: User,
) -> tuple[LoanApplication, list[LoanDocument], list[dict]]:
    """Persist the application, then store each ``(field, document_type, file)`` in order.

    A file that fails validation or cannot be written is reported and skipped;
    it never undoes the application or the files stored before it.
    """
    application = await create_application(
        db, payload, applicant=applicant, final_approval_threshold=WITH_FILES_APPROVAL_THRESHOLD
    )
    stored: list[LoanDocument] = []
    failed: list[dict] = []
    for field, document_type, upload in uploads:
        try:
            stored.append(
                await documents.store_document(db, application, upload, document_type, uploader=applicant)
            )
        except BadRequestError as exc:
            logger.warning(
                "Upload rejected during submission",
                extra={"application_id": str(application.id), "field": field, "error": exc.message},
            )
            failed.append(await _record_failed_upload(db, application, field, upload, exc.message, applicant))
        except Exception:
            # storage faults (disk, permissions) must not lose an application that is already saved
            logger.exception(
                "Upload failed during submission",
                extra={"application_id": str(application.id), "field": field},
            )
            failed.append(
                await _record_failed_upload(
                    db, application, field, upload, STORAGE_FAILURE_MESSAGE, applicant, level="error"
                )
            )
    await db.refresh(application)
    return application, stored, failed
