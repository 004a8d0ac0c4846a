from datetime import datetime, timezone
from uuid import uuid4

import pytest

from conftest import FakeResult, entity_handler, make_admin, make_application, make_dsa, make_user
from loanportal.core.errors import BadRequestError, ForbiddenError
from loanportal.models import Chat, ChatMessage, LoanApplication, User
from loanportal.schemas.chat import ChatCreate, MessageCreate
from loanportal.services import chat as chat_service


def make_chat(application, members) -> Chat:
    return Chat(
        id=uuid4(),
        loan_application_id=application.id,
        participants=[{"user_id": str(m.id), "role": m.role} for m in members],
        participant_key=chat_service.participant_key(m.id for m in members),
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


def make_message(chat: Chat, sender: User, text: str = "hello", read_by=None) -> ChatMessage:
    return ChatMessage(
        id=uuid4(),
        chat_id=chat.id,
        sender_id=sender.id,
        message=text,
        message_type="text",
        is_read=False,
        read_by=list(read_by or []),
        created_at=datetime.now(timezone.utc),
    )


def test_participant_key_is_order_independent() -> None:
    a, b = uuid4(), uuid4()
    assert chat_service.participant_key([a, b]) == chat_service.participant_key([b, a, a])


@pytest.mark.asyncio
async def test_create_chat_is_idempotent(fake_db) -> None:
    owner, dsa = make_user(), make_dsa()
    application = make_application(applicant=owner, dsas=[dsa])
    existing = make_chat(application, [owner, dsa])
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))
    fake_db.on_execute(entity_handler(User, FakeResult(items=[owner, dsa])))
    fake_db.on_execute(entity_handler(Chat, FakeResult(scalar=existing)))

    chat = await chat_service.create_chat(
        fake_db, ChatCreate(application_id=application.id, participant_ids=[dsa.id]), user=owner
    )

    assert chat is existing
    assert fake_db.added_of(Chat) == []


@pytest.mark.asyncio
async def test_create_chat_stores_participants(fake_db) -> None:
    owner, dsa = make_user(), make_dsa()
    application = make_application(applicant=owner, dsas=[dsa])
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))
    fake_db.on_execute(entity_handler(User, FakeResult(items=[owner, dsa])))

    chat = await chat_service.create_chat(
        fake_db, ChatCreate(application_id=application.id, participant_ids=[dsa.id]), user=owner
    )

    assert chat.has_participant(owner.id)
    assert chat.has_participant(dsa.id)
    assert chat.participant_key == chat_service.participant_key([owner.id, dsa.id])


@pytest.mark.asyncio
async def test_create_chat_rejects_participant_without_access(fake_db) -> None:
    owner, outsider = make_user(), make_dsa()
    application = make_application(applicant=owner, dsas=[make_dsa()])
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))
    fake_db.on_execute(entity_handler(User, FakeResult(items=[owner, outsider])))

    with pytest.raises(BadRequestError):
        await chat_service.create_chat(
            fake_db, ChatCreate(application_id=application.id, participant_ids=[outsider.id]), user=owner
        )


@pytest.mark.asyncio
async def test_chat_with_only_yourself_is_rejected(fake_db) -> None:
    owner = make_user()
    application = make_application(applicant=owner)
    fake_db.on_execute(entity_handler(LoanApplication, FakeResult(scalar=application)))

    with pytest.raises(BadRequestError):
        await chat_service.create_chat(
            fake_db, ChatCreate(application_id=application.id, participant_ids=[owner.id]), user=owner
        )


@pytest.mark.asyncio
async def test_send_message_updates_last_message_at(fake_db) -> None:
    owner, dsa = make_user(), make_dsa()
    chat = make_chat(make_application(applicant=owner), [owner, dsa])

    message = await chat_service.send_message(fake_db, chat, MessageCreate(message="Hi"), sender=owner)

    assert message.sender_id == owner.id
    assert chat.last_message_at == message.created_at


@pytest.mark.asyncio
async def test_non_participant_cannot_send(fake_db) -> None:
    owner, dsa = make_user(), make_dsa()
    chat = make_chat(make_application(applicant=owner), [owner, dsa])
    with pytest.raises(ForbiddenError):
        await chat_service.send_message(fake_db, chat, MessageCreate(message="Hi"), sender=make_admin())


@pytest.mark.asyncio
async def test_admin_can_open_but_not_post(fake_db) -> None:
    owner, dsa, admin = make_user(), make_dsa(), make_admin()
    chat = make_chat(make_application(applicant=owner), [owner, dsa])
    fake_db.on_execute(entity_handler(Chat, FakeResult(scalar=chat)))

    assert await chat_service.get_chat(fake_db, chat.id, admin) is chat
    with pytest.raises(ForbiddenError):
        await chat_service.get_chat(fake_db, chat.id, admin, allow_admin=False)


@pytest.mark.asyncio
async def test_mark_read_only_counts_unread_from_others(fake_db) -> None:
    owner, dsa = make_user(), make_dsa()
    chat = make_chat(make_application(applicant=owner), [owner, dsa])
    unread = make_message(chat, dsa, "docs received")
    already_read = make_message(chat, dsa, "ok", read_by=[{"user_id": str(owner.id), "read_at": "earlier"}])
    fake_db.on_execute(entity_handler(ChatMessage, FakeResult(items=[unread, already_read])))

    marked = await chat_service.mark_read(fake_db, chat, user=owner)

    assert marked == 1
    assert unread.is_read is True
    assert unread.read_by[0]["user_id"] == str(owner.id)
    assert len(already_read.read_by) == 1


def test_messages_route_paginates(fake_db, act_as) -> None:
    owner, dsa = make_user(), make_dsa()
    chat = make_chat(make_application(applicant=owner), [owner, dsa])
    messages = [make_message(chat, dsa, f"m{i}") for i in range(3)]
    fake_db.on_execute(entity_handler(Chat, FakeResult(scalar=chat)))
    fake_db.on_execute(entity_handler(ChatMessage, FakeResult(scalar=3, items=messages)))
    fake_db.on_execute_return(FakeResult(scalar=3))

    response = act_as(owner).get(f"/api/v1/chat/{chat.id}/messages", params={"limit": 2})

    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data["messages"]) == 3
    assert data["pagination"]["total"] == 3
    assert data["pagination"]["total_pages"] == 2


def test_read_route_reports_count(fake_db, act_as) -> None:
    owner, dsa = make_user(), make_dsa()
    chat = make_chat(make_application(applicant=owner), [owner, dsa])
    fake_db.on_execute(entity_handler(Chat, FakeResult(scalar=chat)))
    fake_db.on_execute(entity_handler(ChatMessage, FakeResult(items=[make_message(chat, dsa)])))

    response = act_as(owner).put(f"/api/v1/chat/{chat.id}/read")

    assert response.status_code == 200
    assert response.json()["data"] == {"marked_count": 1}
