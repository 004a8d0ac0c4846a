from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.errors import BadRequestError, ForbiddenError, NotFoundError
from loanportal.core.roles import Role
from loanportal.models.chat import Chat, ChatMessage
from loanportal.models.user import User
from loanportal.schemas.chat import ChatCreate, MessageCreate
from loanportal.services import authz
from loanportal.services.applications import get_application

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


def participant_key(user_ids) -> str:
    return ",".join(sorted({str(user_id) for user_id in user_ids}))


def _read_by_user(message: ChatMessage, user_id) -> bool:
    return any(str(entry.get("user_id")) == str(user_id) for entry in (message.read_by or []))


def _is_unread_for(message: ChatMessage, user_id) -> bool:
    return str(message.sender_id) != str(user_id) and not _read_by_user(message, user_id)


async def create_chat(db: AsyncSession, payload: ChatCreate, *, user: User) -> Chat:
    """Return the chat for this application and participant set, creating it once."""
    application = await get_application(db, payload.application_id)
    authz.ensure_can_view_application(user, application)

    member_ids = {str(user.id)} | {str(pid) for pid in payload.participant_ids}
    if len(member_ids) < 2:
        raise BadRequestError("A chat needs at least one other participant")
    members = (
        await db.execute(select(User).where(User.id.in_([UUID(mid) for mid in member_ids])))
    ).scalars().all()
    if len(members) != len(member_ids) or not all(member.is_active for member in members):
        raise BadRequestError("One or more participants are invalid or inactive")
    for member in members:
        if not authz.can_view_application(member, application):
            raise BadRequestError(f"User {member.id} has no access to this application")

    key = participant_key(member_ids)
    existing = (
        await db.execute(
            select(Chat).where(Chat.loan_application_id == application.id, Chat.participant_key == key)
        )
    ).scalar_one_or_none()
    if existing is not None:
        return existing

    chat = Chat(
        loan_application_id=application.id,
        participants=[{"user_id": str(member.id), "role": member.role} for member in members],
        participant_key=key,
        is_active=True,
    )
    db.add(chat)
    await db.commit()
    await db.refresh(chat)
    return chat


async def list_chats(db: AsyncSession, user: User) -> list[dict]:
    stmt = (
        select(Chat)
        .where(Chat.is_active.is_(True), Chat.participant_key.contains(str(user.id)))
        .order_by(Chat.last_message_at.desc().nulls_last(), Chat.created_at.desc())
    )
    chats = [chat for chat in (await db.execute(stmt)).scalars().all() if chat.has_participant(user.id)]
    if not chats:
        return []
    candidates = (
        await db.execute(
            select(ChatMessage).where(
                ChatMessage.chat_id.in_([chat.id for chat in chats]),
                ChatMessage.sender_id != user.id,
            )
        )
    ).scalars().all()
    unread: dict[str, int] = {}
    for message in candidates:
        if _is_unread_for(message, user.id):
            unread[str(message.chat_id)] = unread.get(str(message.chat_id), 0) + 1
    return [
        {
            "id": chat.id,
            "loan_application_id": chat.loan_application_id,
            "participants": chat.participants,
            "is_active": chat.is_active,
            "last_message_at": chat.last_message_at,
            "created_at": chat.created_at,
            "unread_count": unread.get(str(chat.id), 0),
        }
        for chat in chats
    ]


async def get_chat(db: AsyncSession, chat_id: UUID, user: User, *, allow_admin: bool = True) -> Chat:
    chat = (await db.execute(select(Chat).where(Chat.id == chat_id))).scalar_one_or_none()
    if chat is None:
        raise NotFoundError("Chat not found")
    if chat.has_participant(user.id):
        return chat
    if allow_admin and authz.role_of(user) is Role.ADMIN:
        return chat
    raise ForbiddenError("You are not a participant of this chat")


async def list_messages(
    db: AsyncSession,
    chat: Chat,
    *,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> tuple[list[ChatMessage], int]:
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    total = int(
        (await db.execute(select(func.count()).select_from(ChatMessage).where(ChatMessage.chat_id == chat.id))).scalar_one()
        or 0
    )
    stmt = (
        select(ChatMessage)
        .where(ChatMessage.chat_id == chat.id)
        .order_by(ChatMessage.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list((await db.execute(stmt)).scalars().all()), total


async def send_message(db: AsyncSession, chat: Chat, payload: MessageCreate, *, sender: User) -> ChatMessage:
    if not chat.has_participant(sender.id):
        raise ForbiddenError("Only participants can post in this chat")
    now = datetime.now(timezone.utc)
    message = ChatMessage(
        chat_id=chat.id,
        sender_id=sender.id,
        message=payload.message,
        message_type=payload.message_type,
        file_url=payload.file_url,
        is_read=False,
        read_by=[],
        created_at=now,
    )
    chat.last_message_at = now
    db.add(message)
    db.add(chat)
    await db.commit()
    await db.refresh(message)
    return message


async def mark_read(db: AsyncSession, chat: Chat, *, user: User) -> int:
    if not chat.has_participant(user.id):
        raise ForbiddenError("You are not a participant of this chat")
    messages = (
        await db.execute(
            select(ChatMessage).where(ChatMessage.chat_id == chat.id, ChatMessage.sender_id != user.id)
        )
    ).scalars().all()
    read_at = datetime.now(timezone.utc).isoformat()
    marked = 0
    for message in messages:
        if not _is_unread_for(message, user.id):
            continue
        # JSON columns only register reassignment, not in-place mutation.
        message.read_by = [*(message.read_by or []), {"user_id": str(user.id), "read_at": read_at}]
        message.is_read = True
        db.add(message)
        marked += 1
    if marked:
        await db.commit()
    return marked
