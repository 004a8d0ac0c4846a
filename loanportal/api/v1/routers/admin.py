from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.api import deps
from loanportal.core.roles import Capability
from loanportal.db.session import get_db
from loanportal.models import User
from loanportal.schemas.common import PageMeta
from loanportal.schemas.system_logs import SystemLogDTO, SystemLogListResponse
from loanportal.schemas.users import (
    AdminUserListResponse,
    UserProfileDTO,
    UserStatusFilter,
    UserStatusRequest,
    VerifyUserRequest,
)
from loanportal.services import system_logs
from loanportal.services import users as user_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=AdminUserListResponse)
async def list_users(
    role: str | None = Query(default=None, pattern=r"^(admin|dsa|user)$"),
    search: str | None = Query(default=None, max_length=100),
    status: UserStatusFilter | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    current_user: User = Depends(deps.require_capability(Capability.USER_MANAGE)),
    db: AsyncSession = Depends(get_db),
) -> AdminUserListResponse:
    users, total = await user_service.list_users(
        db, role=role, search=search, status=status, page=page, limit=limit
    )
    return AdminUserListResponse(
        items=[UserProfileDTO.model_validate(user) for user in users],
        pagination=PageMeta.build(page=page, limit=limit, total=total),
    )


@router.put("/users/{user_id}/verify", response_model=UserProfileDTO)
async def verify_user(
    user_id: UUID,
    payload: VerifyUserRequest,
    current_user: User = Depends(deps.require_capability(Capability.USER_VERIFY)),
    db: AsyncSession = Depends(get_db),
) -> UserProfileDTO:
    user = await user_service.get_user(db, user_id)
    user = await user_service.set_verification(db, user, payload.is_verified, actor=current_user)
    return UserProfileDTO.model_validate(user)


@router.put("/users/{user_id}/status", response_model=UserProfileDTO)
async def set_user_status(
    user_id: UUID,
    payload: UserStatusRequest,
    current_user: User = Depends(deps.require_capability(Capability.USER_MANAGE)),
    db: AsyncSession = Depends(get_db),
) -> UserProfileDTO:
    user = await user_service.get_user(db, user_id)
    user = await user_service.set_active(db, user, payload.is_active, actor=current_user)
    return UserProfileDTO.model_validate(user)


@router.get("/system-logs", response_model=SystemLogListResponse)
async def list_system_logs(
    level: str | None = Query(default=None, pattern=r"^(error|warn|info|debug)$"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    current_user: User = Depends(deps.require_capability(Capability.SYSTEM_LOG_VIEW)),
    db: AsyncSession = Depends(get_db),
) -> SystemLogListResponse:
    logs, total = await system_logs.list_system_logs(db, level=level, page=page, limit=limit)
    return SystemLogListResponse(
        items=[SystemLogDTO.model_validate(log) for log in logs],
        pagination=PageMeta.build(page=page, limit=limit, total=total),
    )
