from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.errors import BadRequestError, ConflictError
from loanportal.core.settings import settings
from loanportal.models.application_assignment import ApplicationAssignment
from loanportal.models.dsa_review import DSAReview
from loanportal.models.loan_application import LoanApplication
from loanportal.models.user import User
from loanportal.schemas.applications import ApplicationStatus
from loanportal.services.audit import record_audit_log
from loanportal.services.lifecycle import apply_status, is_terminal

logger = logging.getLogger(__name__)

MAX_ASSIGNED_DSAS = 5
OPEN_STATUSES = (ApplicationStatus.PENDING.value, ApplicationStatus.UNDER_REVIEW.value)


def review_window() -> timedelta:
    return timedelta(days=settings.review_window_days)


async def dsa_workloads(db: AsyncSession, dsa_ids: list[UUID] | None = None) -> dict[str, int]:
    """Count of open (pending/under_review) applications each DSA is assigned to."""
    stmt = (
        select(ApplicationAssignment.dsa_id, func.count(ApplicationAssignment.id))
        .join(LoanApplication, LoanApplication.id == ApplicationAssignment.loan_application_id)
        .where(LoanApplication.status.in_(OPEN_STATUSES))
        .group_by(ApplicationAssignment.dsa_id)
    )
    if dsa_ids:
        stmt = stmt.where(ApplicationAssignment.dsa_id.in_(dsa_ids))
    rows = (await db.execute(stmt)).all()
    return {str(dsa_id): int(count) for dsa_id, count in rows}


async def list_available_dsas(db: AsyncSession, application: LoanApplication) -> dict:
    stmt = select(User).where(User.role == "dsa", User.is_active.is_(True))
    dsas = (await db.execute(stmt)).scalars().all()
    workloads = await dsa_workloads(db)
    assigned = {str(dsa_id) for dsa_id in application.assigned_dsa_ids}

    available = [
        {
            "id": dsa.id,
            "name": dsa.full_name,
            "email": dsa.email,
            "bank_name": dsa.bank_name,
            "dsa_id": dsa.dsa_id,
            "specialization": dsa.specialization or [],
            "workload": workloads.get(str(dsa.id), 0),
            "is_currently_assigned": str(dsa.id) in assigned,
        }
        for dsa in dsas
    ]
    available.sort(key=lambda item: (item["workload"], item["name"].lower()))
    return {
        "available_dsas": available,
        "current_assignments": list(application.assigned_dsa_ids),
        "final_approval_threshold": application.final_approval_threshold,
    }


async def _load_active_dsas(db: AsyncSession, dsa_ids: list[UUID]) -> list[User]:
    stmt = select(User).where(
        User.id.in_(dsa_ids),
        User.role == "dsa",
        User.is_active.is_(True),
    )
    return list((await db.execute(stmt)).scalars().all())


async def assign_dsas(
    db: AsyncSession,
    application: LoanApplication,
    dsa_ids: list[UUID],
    *,
    threshold: int,
    actor: User,
    now: datetime | None = None,
) -> LoanApplication:
    """Replace the assignment set of *application* and restart the review round."""
    if not dsa_ids or len(dsa_ids) > MAX_ASSIGNED_DSAS or len(set(dsa_ids)) != len(dsa_ids):
        raise BadRequestError(f"Provide between 1 and {MAX_ASSIGNED_DSAS} distinct DSA IDs")
    if is_terminal(application.status):
        raise ConflictError(f"Cannot assign DSAs to a {application.status} application")

    dsas = await _load_active_dsas(db, dsa_ids)
    if len(dsas) != len(dsa_ids):
        raise BadRequestError("One or more DSA IDs are invalid or inactive")

    now = now or datetime.now(timezone.utc)
    wanted = [str(dsa_id) for dsa_id in dsa_ids]
    old_value = {
        "dsa_ids": [str(dsa_id) for dsa_id in application.assigned_dsa_ids],
        "final_approval_threshold": application.final_approval_threshold,
        "status": application.status,
    }

    # Keep rows for DSAs that stay assigned so the (application, dsa) pairs remain unique.
    existing_assignments = {str(a.dsa_id): a for a in application.assignments}
    application.assignments = [
        existing_assignments.get(dsa_id)
        or ApplicationAssignment(dsa_id=UUID(dsa_id), assigned_by=actor.id, assigned_at=now)
        for dsa_id in wanted
    ]
    existing_reviews = {str(r.dsa_id): r for r in application.reviews}
    reviews = []
    for dsa_id in wanted:
        review = existing_reviews.get(dsa_id) or DSAReview(dsa_id=UUID(dsa_id), documents_reviewed=[])
        review.status = "pending"
        review.comments = None
        review.risk_assessment = None
        review.reviewed_at = None
        reviews.append(review)
    application.reviews = reviews

    # A threshold above the panel size could never be met.
    application.final_approval_threshold = min(threshold, len(wanted))
    application.assigned_at = now
    application.review_deadline = now + review_window()
    if application.dsa_id is None or str(application.dsa_id) not in wanted:
        application.dsa_id = UUID(wanted[0])

    if application.status == ApplicationStatus.PENDING.value:
        apply_status(
            application,
            ApplicationStatus.UNDER_REVIEW,
            actor_id=actor.id,
            comments=f"Assigned to {len(wanted)} DSA(s)",
        )

    record_audit_log(
        db,
        actor_id=actor.id,
        action="loan_application.dsas_assigned",
        resource_type="loan_application",
        resource_id=str(application.id),
        old_value=old_value,
        new_value={
            "dsa_ids": wanted,
            "final_approval_threshold": application.final_approval_threshold,
            "status": application.status,
        },
    )
    logger.info(
        "DSAs assigned",
        extra={"application_id": str(application.id), "dsa_count": len(wanted)},
    )
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application
