from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.errors import BadRequestError, ConflictError, ForbiddenError
from loanportal.models.dsa_review import DSAReview
from loanportal.models.loan_application import LoanApplication
from loanportal.models.user import User
from loanportal.schemas.applications import ApplicationStatus, ReviewCreate
from loanportal.services import activity
from loanportal.services.audit import record_audit_log
from loanportal.services.lifecycle import aggregate_review_status, apply_status, can_transition, is_terminal

logger = logging.getLogger(__name__)

_ACTIVITY_BY_DECISION = {
    "approved": "application_approve",
    "rejected": "application_reject",
    "pending": "application_review",
}


def approval_summary(application: LoanApplication) -> dict[str, int]:
    statuses = [review.status for review in application.reviews]
    return {
        "approved": statuses.count("approved"),
        "rejected": statuses.count("rejected"),
        "pending": statuses.count("pending"),
    }


def can_select_dsa(application: LoanApplication) -> bool:
    summary = approval_summary(application)
    return summary["approved"] > 0 or application.status == ApplicationStatus.UNDER_REVIEW.value


def reviews_payload(application: LoanApplication) -> dict:
    return {
        "application_id": application.id,
        "status": application.status,
        "reviews": list(application.reviews),
        "summary": approval_summary(application),
        "final_approval_threshold": application.final_approval_threshold,
        "can_select_dsa": can_select_dsa(application),
        "primary_dsa_id": application.dsa_id,
    }


async def submit_review(
    db: AsyncSession,
    application: LoanApplication,
    payload: ReviewCreate,
    *,
    reviewer: User,
) -> LoanApplication:
    if not application.is_assigned_to(reviewer.id):
        raise ForbiddenError("Only DSAs assigned to this application can review it")
    if is_terminal(application.status):
        raise ConflictError(f"Application is already {application.status}")

    review = next((r for r in application.reviews if str(r.dsa_id) == str(reviewer.id)), None)
    if review is None:
        review = DSAReview(dsa_id=reviewer.id)
        application.reviews.append(review)
    review.status = payload.status.value
    review.comments = payload.comments
    review.documents_reviewed = list(payload.documents_reviewed)
    review.risk_assessment = (
        payload.risk_assessment.model_dump(mode="json") if payload.risk_assessment else None
    )
    review.reviewed_at = datetime.now(timezone.utc)

    old_status = application.status
    target = aggregate_review_status(
        [r.status for r in application.reviews],
        application.final_approval_threshold,
        application.status,
    )
    if target != application.status:
        if can_transition(application.status, target):
            apply_status(application, target, actor_id=reviewer.id, comments=payload.comments)
        else:
            logger.warning(
                "Review outcome not applied",
                extra={"application_id": str(application.id), "from_status": old_status, "to_status": target},
            )

    activity.record_dsa_activity(
        db,
        dsa_id=reviewer.id,
        activity_type=_ACTIVITY_BY_DECISION[review.status],
        application_id=application.id,
        details={"status": review.status, "application_status": application.status},
    )
    record_audit_log(
        db,
        actor_id=reviewer.id,
        action="loan_application.reviewed",
        resource_type="loan_application",
        resource_id=str(application.id),
        old_value={"status": old_status},
        new_value={"status": application.status, "review_status": review.status},
    )
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application


async def select_dsa(
    db: AsyncSession,
    application: LoanApplication,
    dsa_id: UUID,
    *,
    actor: User,
) -> LoanApplication:
    if str(application.user_id) != str(actor.id):
        raise ForbiddenError("Only the applicant can select a DSA")
    if not can_select_dsa(application):
        raise BadRequestError("A DSA can be selected once at least one review approves the application")
    if not application.is_assigned_to(dsa_id):
        raise BadRequestError("Selected DSA is not assigned to this application")

    old_dsa = application.dsa_id
    application.dsa_id = dsa_id
    record_audit_log(
        db,
        actor_id=actor.id,
        action="loan_application.dsa_selected",
        resource_type="loan_application",
        resource_id=str(application.id),
        old_value={"dsa_id": str(old_dsa) if old_dsa else None},
        new_value={"dsa_id": str(dsa_id)},
    )
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application
