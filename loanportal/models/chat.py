import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from loanportal.db.base import Base


MESSAGE_TYPES = ("text", "file", "image")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Chat(Base):
    __tablename__ = "chats"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # [{"user_id": "...", "role": "user|dsa|admin"}]
    participants = Column(JSON, nullable=False, default=list)
    # sorted participant ids joined by ","; lets creation be idempotent
    participant_key = Column(String(1024), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def has_participant(self, user_id) -> bool:
        return any(str(p.get("user_id")) == str(user_id) for p in (self.participants or []))


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (
        CheckConstraint("message_type IN ('text', 'file', 'image')", name="ck_chat_message_type"),
        Index("ix_chat_messages_chat_created", "chat_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    chat_id = Column(UUID(as_uuid=True), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    message = Column(Text, nullable=False)
    message_type = Column(String(10), nullable=False, default="text")
    file_url = Column(String(1024), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    # [{"user_id": "...", "read_at": "..."}]
    read_by = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)
