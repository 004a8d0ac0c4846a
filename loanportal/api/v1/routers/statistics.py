from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.api import deps
from loanportal.core.roles import Capability, Role
from loanportal.db.session import get_db
from loanportal.models import User
from loanportal.schemas.statistics import AdminStatistics, DSAStatistics, UserStatistics
from loanportal.services import statistics

router = APIRouter(prefix="/statistics", tags=["statistics"])

_RESPONSE_MODELS: dict[Role, type[BaseModel]] = {
    Role.ADMIN: AdminStatistics,
    Role.DSA: DSAStatistics,
    Role.USER: UserStatistics,
}


@router.get("", response_model=AdminStatistics | DSAStatistics | UserStatistics)
async def read_statistics(
    period: int = Query(default=30, ge=1, le=365, description="Window in days"),
    current_user: User = Depends(deps.require_capability(Capability.STATISTICS_VIEW)),
    db: AsyncSession = Depends(get_db),
):
    payload = await statistics.build_statistics(db, current_user, period_days=period)
    return _RESPONSE_MODELS[Role(current_user.role)].model_validate(payload)
