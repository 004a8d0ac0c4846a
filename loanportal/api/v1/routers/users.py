from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.api import deps
from loanportal.db.session import get_db
from loanportal.models import User
from loanportal.schemas.users import ProfileUpdate, UserProfileDTO
from loanportal.services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile", response_model=UserProfileDTO)
async def read_profile(current_user: User = Depends(deps.require_authenticated_user)) -> UserProfileDTO:
    return UserProfileDTO.model_validate(current_user)


@router.put("/profile", response_model=UserProfileDTO)
async def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> UserProfileDTO:
    user = await user_service.update_profile(db, current_user, payload)
    return UserProfileDTO.model_validate(user)


@router.get("/{user_id}/profile", response_model=UserProfileDTO)
async def read_user_profile(
    user_id: UUID,
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> UserProfileDTO:
    user = await user_service.get_profile_for(db, current_user, user_id)
    return UserProfileDTO.model_validate(user)
