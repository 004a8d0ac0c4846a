from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from loanportal.schemas.common import PageMeta


class ChatCreate(BaseModel):
    application_id: UUID
    participant_ids: list[UUID] = Field(min_length=1, max_length=10)


class ChatDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_application_id: UUID
    participants: list[dict]
    is_active: bool
    last_message_at: datetime | None = None
    created_at: datetime | None = None
    unread_count: int = 0


class MessageCreate(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    message_type: str = Field(default="text", pattern=r"^(text|file|image)$")
    file_url: str | None = Field(default=None, max_length=1024)


class MessageDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    chat_id: UUID
    sender_id: UUID | None = None
    message: str
    message_type: str
    file_url: str | None = None
    is_read: bool
    read_by: list[dict] = []
    created_at: datetime | None = None


class MessagePage(BaseModel):
    messages: list[MessageDTO]
    pagination: PageMeta


class MarkReadResponse(BaseModel):
    marked_count: int
