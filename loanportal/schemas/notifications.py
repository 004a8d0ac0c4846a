from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class Notification(BaseModel):
    id: str
    type: str
    title: str
    message: str
    application_id: UUID | None = None
    created_at: datetime
    read: bool = False
    priority: str = "medium"
    time_ago: str


class NotificationList(BaseModel):
    notifications: list[Notification]
    unread_count: int
    total: int
