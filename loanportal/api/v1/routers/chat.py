from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.api import deps
from loanportal.core.roles import Capability
from loanportal.db.session import get_db
from loanportal.models import User
from loanportal.schemas.chat import ChatCreate, ChatDTO, MarkReadResponse, MessageCreate, MessageDTO, MessagePage
from loanportal.schemas.common import PageMeta
from loanportal.services import chat as chat_service

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("", response_model=ChatDTO, status_code=status.HTTP_201_CREATED)
async def create_chat(
    payload: ChatCreate,
    current_user: User = Depends(deps.require_capability(Capability.CHAT_PARTICIPATE)),
    db: AsyncSession = Depends(get_db),
) -> ChatDTO:
    chat = await chat_service.create_chat(db, payload, user=current_user)
    return ChatDTO.model_validate(chat)


@router.get("", response_model=list[ChatDTO])
async def list_chats(
    current_user: User = Depends(deps.require_capability(Capability.CHAT_PARTICIPATE)),
    db: AsyncSession = Depends(get_db),
) -> list[ChatDTO]:
    return [ChatDTO(**item) for item in await chat_service.list_chats(db, current_user)]


@router.get("/{chat_id}/messages", response_model=MessagePage)
async def list_messages(
    chat_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=chat_service.DEFAULT_PAGE_SIZE, ge=1, le=chat_service.MAX_PAGE_SIZE),
    current_user: User = Depends(deps.require_capability(Capability.CHAT_PARTICIPATE)),
    db: AsyncSession = Depends(get_db),
) -> MessagePage:
    chat = await chat_service.get_chat(db, chat_id, current_user)
    messages, total = await chat_service.list_messages(db, chat, page=page, limit=limit)
    return MessagePage(
        messages=[MessageDTO.model_validate(message) for message in messages],
        pagination=PageMeta.build(page=page, limit=limit, total=total),
    )


@router.post("/{chat_id}/messages", response_model=MessageDTO, status_code=status.HTTP_201_CREATED)
async def send_message(
    chat_id: UUID,
    payload: MessageCreate,
    current_user: User = Depends(deps.require_capability(Capability.CHAT_PARTICIPATE)),
    db: AsyncSession = Depends(get_db),
) -> MessageDTO:
    chat = await chat_service.get_chat(db, chat_id, current_user, allow_admin=False)
    message = await chat_service.send_message(db, chat, payload, sender=current_user)
    return MessageDTO.model_validate(message)


@router.put("/{chat_id}/read", response_model=MarkReadResponse)
async def mark_chat_read(
    chat_id: UUID,
    current_user: User = Depends(deps.require_capability(Capability.CHAT_PARTICIPATE)),
    db: AsyncSession = Depends(get_db),
) -> MarkReadResponse:
    chat = await chat_service.get_chat(db, chat_id, current_user, allow_admin=False)
    marked = await chat_service.mark_read(db, chat, user=current_user)
    return MarkReadResponse(marked_count=marked)
