from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.api import deps
from loanportal.core.roles import Capability
from loanportal.db.session import get_db
from loanportal.models import User
from loanportal.schemas.common import MessageResponse
from loanportal.schemas.notifications import NotificationList
from loanportal.services import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationList)
async def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=notifications.DEFAULT_LIMIT, ge=1, le=notifications.MAX_LIMIT),
    current_user: User = Depends(deps.require_capability(Capability.NOTIFICATION_VIEW)),
    db: AsyncSession = Depends(get_db),
) -> NotificationList:
    payload = await notifications.derive_notifications(
        db,
        role=current_user.role,
        user_id=current_user.id,
        now=datetime.now(timezone.utc),
        unread_only=unread_only,
        limit=limit,
    )
    return NotificationList(**payload)


@router.put("", response_model=MessageResponse)
async def mark_notifications_read(
    current_user: User = Depends(deps.require_capability(Capability.NOTIFICATION_VIEW)),
) -> MessageResponse:
    # Notifications are derived on read; there is no stored read state to update.
    return MessageResponse(message="Notifications marked as read")
