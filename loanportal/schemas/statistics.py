from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from loanportal.schemas.applications import ApplicationSummaryDTO


class StatusBucket(BaseModel):
    count: int
    total_amount: Decimal


class TopDSA(BaseModel):
    dsa_id: UUID
    name: str
    total_assigned: int
    approved: int
    success_rate: float


class MonthlyTrend(BaseModel):
    month: str
    count: int
    total_amount: Decimal


class AdminOverview(BaseModel):
    total_applications: int
    total_users: int
    total_dsas: int
    pending_verifications: int
    recent_applications: int


class AdminStatistics(BaseModel):
    role: str = "admin"
    period_days: int
    overview: AdminOverview
    by_status: dict[str, StatusBucket]
    by_priority: dict[str, int]
    top_dsas: list[TopDSA]
    monthly_trends: list[MonthlyTrend]


class DSAOverview(BaseModel):
    total_assigned: int
    pending_reviews: int
    approved: int
    rejected: int
    success_rate: float


class DSAStatistics(BaseModel):
    role: str = "dsa"
    period_days: int
    overview: DSAOverview
    by_status: dict[str, int]


class UserOverview(BaseModel):
    total_applications: int
    approved: int
    pending: int
    rejected: int


class UserStatistics(BaseModel):
    role: str = "user"
    period_days: int
    overview: UserOverview
    latest_application: ApplicationSummaryDTO | None = None
