from uuid import uuid4

import pytest

from conftest import FakeResult, entity_handler, make_admin, make_dsa, make_user
from loanportal.core.errors import BadRequestError, ForbiddenError
from loanportal.models import SupportTicket, TicketResponse, User
from loanportal.schemas.support import TicketReply, TicketUpdate
from loanportal.services import support


def make_ticket(owner: User, *, status: str = "open", assigned_to=None) -> SupportTicket:
    ticket = SupportTicket(
        id=uuid4(),
        ticket_number=f"TK{uuid4().hex[:10].upper()}",
        user_id=owner.id,
        subject="Upload keeps failing",
        description="The bank statement upload returns an error",
        category="technical",
        priority="medium",
        status=status,
        assigned_to=assigned_to,
        is_deleted=False,
    )
    ticket.responses = []
    return ticket


def test_create_ticket_route(act_as, fake_db) -> None:
    user = make_user()
    response = act_as(user).post(
        "/api/v1/support",
        json={"subject": "Need help", "description": "How long does review take?", "category": "loan_inquiry"},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "open"
    assert data["priority"] == "medium"
    assert data["ticket_number"].startswith("TK")
    assert data["user_id"] == str(user.id)


@pytest.mark.asyncio
async def test_user_cannot_change_status(fake_db) -> None:
    owner = make_user()
    ticket = make_ticket(owner)
    with pytest.raises(ForbiddenError):
        await support.update_ticket(fake_db, ticket, TicketUpdate(status="closed"), actor=owner)


@pytest.mark.asyncio
async def test_only_admin_assigns(fake_db) -> None:
    ticket = make_ticket(make_user())
    with pytest.raises(ForbiddenError):
        await support.update_ticket(fake_db, ticket, TicketUpdate(assigned_to=uuid4()), actor=make_dsa())


@pytest.mark.asyncio
async def test_assign_to_applicant_is_rejected(fake_db) -> None:
    applicant = make_user()
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=applicant)))
    ticket = make_ticket(make_user())
    with pytest.raises(BadRequestError):
        await support.update_ticket(fake_db, ticket, TicketUpdate(assigned_to=applicant.id), actor=make_admin())


@pytest.mark.asyncio
async def test_resolving_stamps_resolution(fake_db) -> None:
    dsa = make_dsa()
    ticket = make_ticket(make_user(), assigned_to=dsa.id)

    await support.update_ticket(fake_db, ticket, TicketUpdate(status="resolved"), actor=dsa)

    assert ticket.status == "resolved"
    assert ticket.resolved_by == dsa.id
    assert ticket.resolved_at is not None


@pytest.mark.asyncio
async def test_staff_reply_moves_open_ticket_in_progress(fake_db) -> None:
    admin = make_admin()
    ticket = make_ticket(make_user())

    await support.add_response(fake_db, ticket, TicketReply(message="Looking into it"), actor=admin)

    assert ticket.status == "in_progress"
    assert len(ticket.responses) == 1


@pytest.mark.asyncio
async def test_user_reply_reopens_closed_ticket(fake_db) -> None:
    owner = make_user()
    ticket = make_ticket(owner, status="closed")
    ticket.resolved_by = uuid4()

    await support.add_response(fake_db, ticket, TicketReply(message="Still broken"), actor=owner)

    assert ticket.status == "open"
    assert ticket.resolved_by is None


@pytest.mark.asyncio
async def test_user_cannot_post_internal_note(fake_db) -> None:
    owner = make_user()
    with pytest.raises(ForbiddenError):
        await support.add_response(fake_db, make_ticket(owner), TicketReply(message="x", is_internal=True), actor=owner)


def test_internal_notes_hidden_from_applicant() -> None:
    owner = make_user()
    ticket = make_ticket(owner)
    ticket.responses = [
        TicketResponse(id=uuid4(), message="Public", is_internal=False),
        TicketResponse(id=uuid4(), message="Staff only", is_internal=True),
    ]

    assert [r.message for r in support.visible_responses(owner, ticket)] == ["Public"]
    assert len(support.visible_responses(make_admin(), ticket)) == 2


def test_ticket_visibility_by_role() -> None:
    owner, dsa = make_user(), make_dsa()
    ticket = make_ticket(owner, assigned_to=dsa.id)

    assert support.can_view_ticket(owner, ticket)
    assert support.can_view_ticket(dsa, ticket)
    assert support.can_view_ticket(make_admin(), ticket)
    assert not support.can_view_ticket(make_dsa(), ticket)
    assert not support.can_view_ticket(make_user(), ticket)
    ticket.is_deleted = True
    assert not support.can_view_ticket(owner, ticket)


def test_reply_route_returns_visible_thread(fake_db, act_as) -> None:
    owner = make_user()
    ticket = make_ticket(owner)
    ticket.responses = [TicketResponse(id=uuid4(), message="Staff only", is_internal=True)]
    fake_db.on_execute(entity_handler(SupportTicket, FakeResult(scalar=ticket)))

    response = act_as(owner).post(f"/api/v1/support/{ticket.id}/responses", json={"message": "Any update?"})

    assert response.status_code == 201
    messages = [item["message"] for item in response.json()["data"]["responses"]]
    assert messages == ["Any update?"]


def test_other_user_cannot_read_ticket(fake_db, act_as) -> None:
    ticket = make_ticket(make_user())
    fake_db.on_execute(entity_handler(SupportTicket, FakeResult(scalar=ticket)))

    response = act_as(make_user()).get(f"/api/v1/support/{ticket.id}")

    assert response.status_code == 403


def test_delete_requires_admin(fake_db, act_as) -> None:
    ticket = make_ticket(make_user())
    fake_db.on_execute(entity_handler(SupportTicket, FakeResult(scalar=ticket)))

    assert act_as(make_dsa()).delete(f"/api/v1/support/{ticket.id}").status_code == 403
    assert act_as(make_admin()).delete(f"/api/v1/support/{ticket.id}").status_code == 200
    assert ticket.is_deleted is True
