from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from loanportal.schemas.common import PageMeta


class SystemLogDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    level: str
    message: str
    context: dict = {}
    user_id: UUID | None = None
    created_at: datetime | None = None


class SystemLogListResponse(BaseModel):
    items: list[SystemLogDTO]
    pagination: PageMeta
