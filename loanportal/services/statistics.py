from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.roles import Role
from loanportal.models.application_assignment import ApplicationAssignment
from loanportal.models.loan_application import APPLICATION_STATUSES, PRIORITIES, LoanApplication
from loanportal.models.user import User

TOP_DSA_LIMIT = 5
TREND_MONTHS = 6


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


def _rate(numerator: int, denominator: int) -> float:
    if not denominator:
        return 0.0
    return round(numerator / denominator * 100, 1)


def _month_starts(now: datetime, months: int) -> list[datetime]:
    starts = []
    year, month = now.year, now.month
    for _ in range(months):
        starts.append(datetime(year, month, 1, tzinfo=timezone.utc))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(starts))


async def _count(db: AsyncSession, stmt) -> int:
    return int((await db.execute(stmt)).scalar_one() or 0)


async def admin_statistics(db: AsyncSession, user: User, period_days: int, now: datetime) -> dict:
    since = now - timedelta(days=period_days)
    overview = {
        "total_applications": await _count(db, select(func.count()).select_from(LoanApplication)),
        "total_users": await _count(db, select(func.count()).select_from(User).where(User.role == "user")),
        "total_dsas": await _count(db, select(func.count()).select_from(User).where(User.role == "dsa")),
        "pending_verifications": await _count(
            db,
            select(func.count()).select_from(User).where(User.role == "dsa", User.is_verified.is_(False)),
        ),
        "recent_applications": await _count(
            db,
            select(func.count()).select_from(LoanApplication).where(LoanApplication.created_at >= since),
        ),
    }

    status_rows = (
        await db.execute(
            select(
                LoanApplication.status,
                func.count(),
                func.coalesce(func.sum(LoanApplication.amount), 0),
            ).group_by(LoanApplication.status)
        )
    ).all()
    by_status = {status: {"count": 0, "total_amount": Decimal("0")} for status in APPLICATION_STATUSES}
    for status, count, amount in status_rows:
        by_status[status] = {"count": int(count), "total_amount": _as_decimal(amount)}

    priority_rows = (
        await db.execute(select(LoanApplication.priority, func.count()).group_by(LoanApplication.priority))
    ).all()
    by_priority = {priority: 0 for priority in PRIORITIES}
    by_priority.update({priority: int(count) for priority, count in priority_rows})

    approved_case = case((LoanApplication.status == "approved", 1), else_=0)
    top_rows = (
        await db.execute(
            select(
                User.id,
                User.first_name,
                User.last_name,
                func.count(ApplicationAssignment.id),
                func.coalesce(func.sum(approved_case), 0),
            )
            .join(ApplicationAssignment, ApplicationAssignment.dsa_id == User.id)
            .join(LoanApplication, LoanApplication.id == ApplicationAssignment.loan_application_id)
            .where(User.role == "dsa")
            .group_by(User.id, User.first_name, User.last_name)
        )
    ).all()
    top_dsas = [
        {
            "dsa_id": dsa_id,
            "name": f"{first} {last}".strip(),
            "total_assigned": int(total),
            "approved": int(approved),
            "success_rate": _rate(int(approved), int(total)),
        }
        for dsa_id, first, last, total, approved in top_rows
    ]
    top_dsas.sort(key=lambda item: (item["approved"], item["success_rate"]), reverse=True)

    months = _month_starts(now, TREND_MONTHS)
    month_bucket = func.date_trunc("month", LoanApplication.created_at)
    trend_rows = (
        await db.execute(
            select(month_bucket, func.count(), func.coalesce(func.sum(LoanApplication.amount), 0))
            .where(LoanApplication.created_at >= months[0])
            .group_by(month_bucket)
        )
    ).all()
    trend_map = {f"{bucket:%Y-%m}": (int(count), _as_decimal(amount)) for bucket, count, amount in trend_rows}
    monthly_trends = []
    for start in months:
        key = f"{start:%Y-%m}"
        count, amount = trend_map.get(key, (0, Decimal("0")))
        monthly_trends.append({"month": key, "count": count, "total_amount": amount})

    return {
        "role": Role.ADMIN.value,
        "period_days": period_days,
        "overview": overview,
        "by_status": by_status,
        "by_priority": by_priority,
        "top_dsas": top_dsas[:TOP_DSA_LIMIT],
        "monthly_trends": monthly_trends,
    }


async def dsa_statistics(db: AsyncSession, user: User, period_days: int, now: datetime) -> dict:
    assigned = select(ApplicationAssignment.loan_application_id).where(ApplicationAssignment.dsa_id == user.id)
    rows = (
        await db.execute(
            select(LoanApplication.status, func.count())
            .where(LoanApplication.id.in_(assigned))
            .group_by(LoanApplication.status)
        )
    ).all()
    by_status = {status: 0 for status in APPLICATION_STATUSES}
    by_status.update({status: int(count) for status, count in rows})
    total = sum(by_status.values())
    return {
        "role": Role.DSA.value,
        "period_days": period_days,
        "overview": {
            "total_assigned": total,
            "pending_reviews": by_status["pending"] + by_status["under_review"],
            "approved": by_status["approved"],
            "rejected": by_status["rejected"],
            "success_rate": _rate(by_status["approved"], total),
        },
        "by_status": by_status,
    }


async def user_statistics(db: AsyncSession, user: User, period_days: int, now: datetime) -> dict:
    rows = (
        await db.execute(
            select(LoanApplication.status, func.count())
            .where(LoanApplication.user_id == user.id)
            .group_by(LoanApplication.status)
        )
    ).all()
    counts = {status: int(count) for status, count in rows}
    latest = (
        await db.execute(
            select(LoanApplication)
            .where(LoanApplication.user_id == user.id)
            .order_by(LoanApplication.created_at.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    return {
        "role": Role.USER.value,
        "period_days": period_days,
        "overview": {
            "total_applications": sum(counts.values()),
            "approved": counts.get("approved", 0),
            "pending": counts.get("pending", 0) + counts.get("under_review", 0),
            "rejected": counts.get("rejected", 0),
        },
        "latest_application": latest,
    }


_BUILDERS: dict[Role, Callable] = {
    Role.ADMIN: admin_statistics,
    Role.DSA: dsa_statistics,
    Role.USER: user_statistics,
}

assert set(_BUILDERS) == set(Role), "every role needs a statistics builder"


async def build_statistics(
    db: AsyncSession,
    user: User,
    *,
    period_days: int = 30,
    now: datetime | None = None,
) -> dict:
    now = now or datetime.now(timezone.utc)
    return await _BUILDERS[Role(user.role)](db, user, period_days, now)
