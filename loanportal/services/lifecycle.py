from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.errors import InvalidStatusTransition, StaleVersionError
from loanportal.models.loan_application import LoanApplication
from loanportal.models.status_history import StatusHistoryEntry
from loanportal.models.user import User
from loanportal.schemas.applications import ApplicationStatus
from loanportal.services import authz
from loanportal.services.audit import record_audit_log

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset(
        {ApplicationStatus.UNDER_REVIEW, ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}
    ),
    ApplicationStatus.UNDER_REVIEW: frozenset(
        {
            ApplicationStatus.APPROVED,
            ApplicationStatus.REJECTED,
            ApplicationStatus.PARTIALLY_APPROVED,
            ApplicationStatus.PENDING,
        }
    ),
    ApplicationStatus.PARTIALLY_APPROVED: frozenset(
        {ApplicationStatus.UNDER_REVIEW, ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}
    ),
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)

SUBMISSION_COMMENT = "Application submitted"


def can_transition(current: str, target: str) -> bool:
    return ApplicationStatus(target) in ALLOWED_TRANSITIONS[ApplicationStatus(current)]


def is_terminal(status: str) -> bool:
    return ApplicationStatus(status) in TERMINAL_STATUSES


def append_history(
    application: LoanApplication,
    status: str,
    *,
    actor_id,
    comments: str | None = None,
    now: datetime | None = None,
) -> StatusHistoryEntry:
    entry = StatusHistoryEntry(
        status=status,
        updated_by=actor_id,
        comments=comments,
        updated_at=now or datetime.now(timezone.utc),
    )
    application.status_history.append(entry)
    return entry


def apply_status(
    application: LoanApplication,
    target: ApplicationStatus | str,
    *,
    actor_id,
    comments: str | None = None,
) -> bool:
    """Move *application* to *target* and append one history entry.

    Returns False (and touches nothing) when the application already has that status.
    """
    target = ApplicationStatus(target)
    if application.status == target.value:
        return False
    if not can_transition(application.status, target.value):
        raise InvalidStatusTransition(
            f"Cannot change status from {application.status} to {target.value}",
            details={"from": application.status, "to": target.value},
        )
    application.status = target.value
    append_history(application, target.value, actor_id=actor_id, comments=comments)
    return True


def check_version(application: LoanApplication, expected_version: int | None) -> None:
    if expected_version is not None and application.version != expected_version:
        raise StaleVersionError(
            "Application was modified by another request",
            details={"expected_version": expected_version, "current_version": application.version},
        )


async def transition_status(
    db: AsyncSession,
    application: LoanApplication,
    *,
    target: ApplicationStatus | str,
    actor: User,
    comments: str | None = None,
    expected_version: int | None = None,
) -> LoanApplication:
    authz.ensure_can_update_status(actor, application)
    check_version(application, expected_version)

    old_status = application.status
    changed = apply_status(application, target, actor_id=actor.id, comments=comments)
    if changed:
        record_audit_log(
            db,
            actor_id=actor.id,
            action="loan_application.status_changed",
            resource_type="loan_application",
            resource_id=str(application.id),
            old_value={"status": old_status},
            new_value={"status": application.status, "comments": comments},
        )
        logger.info(
            "Application status changed",
            extra={
                "application_id": str(application.id),
                "from_status": old_status,
                "to_status": application.status,
            },
        )
    elif comments:
        record_audit_log(
            db,
            actor_id=actor.id,
            action="loan_application.comment_added",
            resource_type="loan_application",
            resource_id=str(application.id),
            new_value={"status": application.status, "comments": comments},
        )
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application


def aggregate_review_status(
    review_statuses: list[str],
    threshold: int,
    current: str,
) -> str:
    """Overall status implied by the per-DSA review decisions."""
    approved = review_statuses.count("approved")
    rejected = review_statuses.count("rejected")
    pending = review_statuses.count("pending")
    if approved >= threshold:
        return ApplicationStatus.APPROVED.value
    if rejected > 0 and pending == 0:
        return ApplicationStatus.REJECTED.value
    if approved > 0 and pending > 0:
        return ApplicationStatus.PARTIALLY_APPROVED.value
    if review_statuses and pending == len(review_statuses):
        return ApplicationStatus.UNDER_REVIEW.value
    return current
