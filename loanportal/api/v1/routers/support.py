from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.api import deps
from loanportal.core.roles import Capability
from loanportal.db.session import get_db
from loanportal.models import User
from loanportal.schemas.common import MessageResponse, PageMeta
from loanportal.schemas.support import (
    TicketCategory,
    TicketCreate,
    TicketDTO,
    TicketListResponse,
    TicketPriority,
    TicketReply,
    TicketStatus,
    TicketUpdate,
)
from loanportal.services import support

router = APIRouter(prefix="/support", tags=["support"])


@router.post("", response_model=TicketDTO, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    payload: TicketCreate,
    current_user: User = Depends(deps.require_capability(Capability.SUPPORT_CREATE)),
    db: AsyncSession = Depends(get_db),
) -> TicketDTO:
    ticket = await support.create_ticket(db, payload, user=current_user)
    return TicketDTO.model_validate(support.ticket_payload(current_user, ticket))


@router.get("", response_model=TicketListResponse)
async def list_tickets(
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    category: TicketCategory | None = Query(default=None),
    priority: TicketPriority | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> TicketListResponse:
    tickets, total = await support.list_tickets(
        db,
        current_user,
        status=status_filter.value if status_filter else None,
        category=category.value if category else None,
        priority=priority.value if priority else None,
        page=page,
        limit=limit,
    )
    return TicketListResponse(
        items=[TicketDTO.model_validate(support.ticket_payload(current_user, t)) for t in tickets],
        pagination=PageMeta.build(page=page, limit=limit, total=total),
    )


@router.get("/{ticket_id}", response_model=TicketDTO)
async def get_ticket(
    ticket_id: UUID,
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> TicketDTO:
    ticket = await support.get_ticket(db, ticket_id, current_user)
    return TicketDTO.model_validate(support.ticket_payload(current_user, ticket))


@router.put("/{ticket_id}", response_model=TicketDTO)
async def update_ticket(
    ticket_id: UUID,
    payload: TicketUpdate,
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> TicketDTO:
    ticket = await support.get_ticket(db, ticket_id, current_user)
    ticket = await support.update_ticket(db, ticket, payload, actor=current_user)
    return TicketDTO.model_validate(support.ticket_payload(current_user, ticket))


@router.post("/{ticket_id}/responses", response_model=TicketDTO, status_code=status.HTTP_201_CREATED)
async def reply_to_ticket(
    ticket_id: UUID,
    payload: TicketReply,
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> TicketDTO:
    ticket = await support.get_ticket(db, ticket_id, current_user)
    ticket = await support.add_response(db, ticket, payload, actor=current_user)
    return TicketDTO.model_validate(support.ticket_payload(current_user, ticket))


@router.delete("/{ticket_id}", response_model=MessageResponse)
async def delete_ticket(
    ticket_id: UUID,
    current_user: User = Depends(deps.require_capability(Capability.SUPPORT_DELETE)),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    ticket = await support.get_ticket(db, ticket_id, current_user)
    await support.delete_ticket(db, ticket, actor=current_user)
    return MessageResponse(message="Ticket deleted")
