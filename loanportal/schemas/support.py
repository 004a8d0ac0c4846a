from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from loanportal.schemas.common import PageMeta


class TicketCategory(str, Enum):
    TECHNICAL = "technical"
    LOAN_INQUIRY = "loan_inquiry"
    DOCUMENT = "document"
    GENERAL = "general"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketCreate(BaseModel):
    subject: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    category: TicketCategory
    priority: TicketPriority = TicketPriority.MEDIUM
    application_id: UUID | None = None


class TicketUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    assigned_to: UUID | None = None


class TicketReply(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    is_internal: bool = False


class TicketResponseDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID | None = None
    message: str
    is_internal: bool
    created_at: datetime | None = None


class TicketDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ticket_number: str
    user_id: UUID
    subject: str
    description: str
    category: str
    priority: str
    status: str
    assigned_to: UUID | None = None
    loan_application_id: UUID | None = None
    resolved_at: datetime | None = None
    resolved_by: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    responses: list[TicketResponseDTO] = []


class TicketListResponse(BaseModel):
    items: list[TicketDTO]
    pagination: PageMeta
