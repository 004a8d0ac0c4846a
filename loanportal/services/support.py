from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.errors import BadRequestError, ForbiddenError, NotFoundError
from loanportal.core.roles import Role
from loanportal.models.support_ticket import SupportTicket, TicketResponse
from loanportal.models.user import User
from loanportal.schemas.support import TicketCreate, TicketReply, TicketStatus, TicketUpdate
from loanportal.services import authz
from loanportal.services.audit import model_snapshot, record_audit_log
from loanportal.services.identifiers import generate_ticket_number

logger = logging.getLogger(__name__)

_RESOLVED_STATUSES = {TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value}


def _visibility_conditions(user: User) -> list:
    role = authz.role_of(user)
    conditions = [SupportTicket.is_deleted.is_(False)]
    if role is Role.USER:
        conditions.append(SupportTicket.user_id == user.id)
    elif role is Role.DSA:
        conditions.append(SupportTicket.assigned_to == user.id)
    return conditions


def can_view_ticket(user: User, ticket: SupportTicket) -> bool:
    if ticket.is_deleted:
        return False
    role = authz.role_of(user)
    if role is Role.ADMIN:
        return True
    if role is Role.DSA:
        return str(ticket.assigned_to) == str(user.id)
    return str(ticket.user_id) == str(user.id)


def visible_responses(user: User, ticket: SupportTicket) -> list[TicketResponse]:
    if authz.role_of(user) is Role.USER:
        return [response for response in ticket.responses if not response.is_internal]
    return list(ticket.responses)


def ticket_payload(user: User, ticket: SupportTicket) -> dict:
    payload = {column.name: getattr(ticket, column.name) for column in SupportTicket.__table__.columns}
    payload["responses"] = visible_responses(user, ticket)
    return payload


async def create_ticket(db: AsyncSession, payload: TicketCreate, *, user: User) -> SupportTicket:
    ticket = SupportTicket(
        ticket_number=generate_ticket_number(),
        user_id=user.id,
        subject=payload.subject,
        description=payload.description,
        category=payload.category.value,
        priority=payload.priority.value,
        status=TicketStatus.OPEN.value,
        loan_application_id=payload.application_id,
        is_deleted=False,
    )
    db.add(ticket)
    await db.flush()
    record_audit_log(
        db,
        actor_id=user.id,
        action="support_ticket.created",
        resource_type="support_ticket",
        resource_id=str(ticket.id),
        new_value={"ticket_number": ticket.ticket_number, "category": ticket.category},
    )
    await db.commit()
    await db.refresh(ticket)
    return ticket


async def list_tickets(
    db: AsyncSession,
    user: User,
    *,
    status: str | None = None,
    category: str | None = None,
    priority: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[SupportTicket], int]:
    conditions = _visibility_conditions(user)
    if status:
        conditions.append(SupportTicket.status == status)
    if category:
        conditions.append(SupportTicket.category == category)
    if priority:
        conditions.append(SupportTicket.priority == priority)
    total = int((await db.execute(select(func.count()).select_from(SupportTicket).where(*conditions))).scalar_one() or 0)
    stmt = (
        select(SupportTicket)
        .where(*conditions)
        .order_by(SupportTicket.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list((await db.execute(stmt)).scalars().all()), total


async def get_ticket(db: AsyncSession, ticket_id: UUID, user: User) -> SupportTicket:
    ticket = (await db.execute(select(SupportTicket).where(SupportTicket.id == ticket_id))).scalar_one_or_none()
    if ticket is None or ticket.is_deleted:
        raise NotFoundError("Support ticket not found")
    if not can_view_ticket(user, ticket):
        raise ForbiddenError("You do not have access to this ticket")
    return ticket


async def _ensure_assignable(db: AsyncSession, assignee_id: UUID) -> None:
    assignee = (await db.execute(select(User).where(User.id == assignee_id))).scalar_one_or_none()
    if assignee is None or not assignee.is_active or assignee.role not in (Role.DSA.value, Role.ADMIN.value):
        raise BadRequestError("Tickets can only be assigned to an active DSA or admin")


async def update_ticket(
    db: AsyncSession,
    ticket: SupportTicket,
    payload: TicketUpdate,
    *,
    actor: User,
) -> SupportTicket:
    role = authz.role_of(actor)
    if payload.status is not None and role is Role.USER:
        raise ForbiddenError("Only support staff can change ticket status")
    if (payload.assigned_to is not None or payload.priority is not None) and role is not Role.ADMIN:
        raise ForbiddenError("Only admins can assign tickets or change priority")

    old_value = model_snapshot(ticket)
    if payload.status is not None:
        ticket.status = payload.status.value
        if ticket.status in _RESOLVED_STATUSES:
            ticket.resolved_at = datetime.now(timezone.utc)
            ticket.resolved_by = actor.id
    if payload.priority is not None:
        ticket.priority = payload.priority.value
    if payload.assigned_to is not None:
        await _ensure_assignable(db, payload.assigned_to)
        ticket.assigned_to = payload.assigned_to

    record_audit_log(
        db,
        actor_id=actor.id,
        action="support_ticket.updated",
        resource_type="support_ticket",
        resource_id=str(ticket.id),
        old_value=old_value,
        new_value=model_snapshot(ticket),
    )
    db.add(ticket)
    await db.commit()
    await db.refresh(ticket)
    return ticket


async def add_response(
    db: AsyncSession,
    ticket: SupportTicket,
    payload: TicketReply,
    *,
    actor: User,
) -> SupportTicket:
    role = authz.role_of(actor)
    if payload.is_internal and role is Role.USER:
        raise ForbiddenError("Users cannot post internal notes")

    ticket.responses.append(
        TicketResponse(
            user_id=actor.id,
            message=payload.message,
            is_internal=payload.is_internal,
            created_at=datetime.now(timezone.utc),
        )
    )
    old_status = ticket.status
    if role is Role.USER and ticket.status == TicketStatus.CLOSED.value:
        ticket.status = TicketStatus.OPEN.value
        ticket.resolved_at = None
        ticket.resolved_by = None
    elif role is not Role.USER and ticket.status == TicketStatus.OPEN.value:
        ticket.status = TicketStatus.IN_PROGRESS.value
    if ticket.status != old_status:
        logger.info(
            "Ticket status changed by reply",
            extra={"ticket_id": str(ticket.id), "from_status": old_status, "to_status": ticket.status},
        )

    db.add(ticket)
    await db.commit()
    await db.refresh(ticket)
    return ticket


async def delete_ticket(db: AsyncSession, ticket: SupportTicket, *, actor: User) -> None:
    ticket.is_deleted = True
    record_audit_log(
        db,
        actor_id=actor.id,
        action="support_ticket.deleted",
        resource_type="support_ticket",
        resource_id=str(ticket.id),
    )
    db.add(ticket)
    await db.commit()
