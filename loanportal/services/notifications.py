"""Notifications are derived from current application state on every read.

Nothing is persisted, so two reads at the same ``now`` over unchanged data
return the same list.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.roles import Role
from loanportal.models.application_assignment import ApplicationAssignment
from loanportal.models.loan_application import LoanApplication
from loanportal.services.completeness import application_completeness

DEFAULT_LIMIT = 10
MAX_LIMIT = 50

_DAY = timedelta(days=1)
_RECENT_USER_WINDOW = timedelta(days=7)
_STALE_PENDING_AGE = timedelta(hours=48)
_OVERDUE_AGE = timedelta(days=10)

_OPEN = ("pending", "under_review")
_DECIDED = ("approved", "rejected")


def _aware(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def time_ago(created_at: datetime, now: datetime) -> str:
    elapsed = now - _aware(created_at)
    hours = int(elapsed.total_seconds() // 3600)
    if hours < 1:
        return "Just now"
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def _notification(
    prefix: str,
    application: LoanApplication,
    *,
    type_: str,
    title: str,
    message: str,
    created_at: datetime,
    priority: str,
    now: datetime,
) -> dict:
    created_at = _aware(created_at)
    return {
        "id": f"{prefix}_{application.id}",
        "type": type_,
        "title": title,
        "message": message,
        "application_id": application.id,
        "created_at": created_at,
        "read": False,
        "priority": priority,
        "time_ago": time_ago(created_at, now),
    }


def _last_history_at(application: LoanApplication, status: str) -> datetime | None:
    stamps = [_aware(entry.updated_at) for entry in application.status_history if entry.status == status]
    return max(stamps) if stamps else None


def build_admin_notifications(applications: Iterable[LoanApplication], now: datetime) -> list[dict]:
    items: list[dict] = []
    for app in applications:
        created_at = _aware(app.created_at)
        if created_at and now - created_at <= _DAY:
            items.append(
                _notification(
                    "new_app", app,
                    type_="application",
                    title="New application submitted",
                    message=f"Application {app.application_number} was submitted",
                    created_at=created_at,
                    priority="medium",
                    now=now,
                )
            )
        if app.priority == "high" and app.status in _OPEN:
            items.append(
                _notification(
                    "high_priority", app,
                    type_="priority",
                    title="High priority application",
                    message=f"Application {app.application_number} for {app.amount} needs attention",
                    created_at=created_at,
                    priority="high",
                    now=now,
                )
            )
        if app.status == "pending" and created_at and now - created_at > _STALE_PENDING_AGE:
            items.append(
                _notification(
                    "pending_approval", app,
                    type_="approval",
                    title="Application awaiting assignment",
                    message=f"Application {app.application_number} has been pending for over 48 hours",
                    created_at=created_at,
                    priority="high",
                    now=now,
                )
            )
    return items


def build_dsa_notifications(applications: Iterable[LoanApplication], dsa_id, now: datetime) -> list[dict]:
    items: list[dict] = []
    for app in applications:
        assignment = next((a for a in app.assignments if str(a.dsa_id) == str(dsa_id)), None)
        assigned_at = _aware(assignment.assigned_at) if assignment else None
        if assigned_at and now - assigned_at <= _DAY:
            items.append(
                _notification(
                    "new_assignment", app,
                    type_="assignment",
                    title="New application assigned",
                    message=f"You have been assigned application {app.application_number}",
                    created_at=assigned_at,
                    priority="high",
                    now=now,
                )
            )
        recent_docs = [
            _aware(doc.uploaded_at)
            for doc in app.active_documents
            if doc.uploaded_at and now - _aware(doc.uploaded_at) <= _DAY
        ]
        if recent_docs:
            items.append(
                _notification(
                    "doc_update", app,
                    type_="document",
                    title="Documents updated",
                    message=f"{len(recent_docs)} document(s) uploaded to {app.application_number}",
                    created_at=max(recent_docs),
                    priority="medium",
                    now=now,
                )
            )
        if app.status in _DECIDED:
            decided_at = _last_history_at(app, app.status)
            if decided_at and now - decided_at <= _DAY:
                items.append(
                    _notification(
                        "approval_update", app,
                        type_="status",
                        title=f"Application {app.status}",
                        message=f"Application {app.application_number} was {app.status}",
                        created_at=decided_at,
                        priority="medium",
                        now=now,
                    )
                )
        if app.status in _OPEN:
            created_at = _aware(app.created_at)
            deadline = _aware(app.review_deadline)
            overdue = created_at is not None and now - created_at > _OVERDUE_AGE
            past_deadline = deadline is not None and deadline < now
            if overdue or past_deadline:
                items.append(
                    _notification(
                        "deadline", app,
                        type_="deadline",
                        title="Review overdue",
                        message=f"Application {app.application_number} is past its review deadline",
                        created_at=deadline if past_deadline else created_at,
                        priority="high",
                        now=now,
                    )
                )
    return items


def build_user_notifications(applications: Iterable[LoanApplication], now: datetime) -> list[dict]:
    items: list[dict] = []
    for app in applications:
        updated_at = _aware(app.updated_at)
        if app.status != "pending" and updated_at and now - updated_at <= _RECENT_USER_WINDOW:
            items.append(
                _notification(
                    "status_update", app,
                    type_="status",
                    title="Application status updated",
                    message=f"Application {app.application_number} is now {app.status.replace('_', ' ')}",
                    created_at=updated_at,
                    priority="medium",
                    now=now,
                )
            )
        if app.status not in _DECIDED:
            completeness = application_completeness(app)
            if completeness.percentage < 100:
                items.append(
                    _notification(
                        "doc_request", app,
                        type_="document",
                        title="Documents required",
                        message=f"Please upload: {', '.join(completeness.missing)}",
                        created_at=_aware(app.created_at) or now,
                        priority="high",
                        now=now,
                    )
                )
        if app.status == "approved":
            approved_at = _last_history_at(app, "approved")
            if approved_at and now - approved_at <= _RECENT_USER_WINDOW:
                items.append(
                    _notification(
                        "approval", app,
                        type_="approval",
                        title="Application approved",
                        message=f"Congratulations! Application {app.application_number} was approved",
                        created_at=approved_at,
                        priority="high",
                        now=now,
                    )
                )
    return items


async def _admin(db: AsyncSession, user_id, now: datetime) -> list[dict]:
    stmt = select(LoanApplication).where(
        or_(LoanApplication.created_at >= now - _DAY, LoanApplication.status.in_(_OPEN))
    )
    return build_admin_notifications((await db.execute(stmt)).scalars().all(), now)


async def _dsa(db: AsyncSession, user_id, now: datetime) -> list[dict]:
    assigned = select(ApplicationAssignment.loan_application_id).where(ApplicationAssignment.dsa_id == user_id)
    stmt = select(LoanApplication).where(LoanApplication.id.in_(assigned))
    return build_dsa_notifications((await db.execute(stmt)).scalars().all(), user_id, now)


async def _user(db: AsyncSession, user_id, now: datetime) -> list[dict]:
    stmt = select(LoanApplication).where(LoanApplication.user_id == user_id)
    return build_user_notifications((await db.execute(stmt)).scalars().all(), now)


_DERIVERS: dict[Role, Callable] = {
    Role.ADMIN: _admin,
    Role.DSA: _dsa,
    Role.USER: _user,
}

assert set(_DERIVERS) == set(Role), "every role needs a notification deriver"


async def derive_notifications(
    db: AsyncSession,
    *,
    role: Role | str,
    user_id,
    now: datetime | None = None,
    unread_only: bool = False,
    limit: int = DEFAULT_LIMIT,
) -> dict:
    now = _aware(now) or datetime.now(timezone.utc)
    limit = max(1, min(limit, MAX_LIMIT))
    items = await _DERIVERS[Role(role)](db, user_id, now)
    if unread_only:
        items = [item for item in items if not item["read"]]
    items.sort(key=lambda item: (item["created_at"], item["id"]), reverse=True)
    return {
        "notifications": items[:limit],
        "unread_count": sum(1 for item in items if not item["read"]),
        "total": len(items),
    }
