import uuid

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID

from loanportal.db.base import Base


LOG_LEVELS = ("error", "warn", "info", "debug")


class SystemLog(Base):
    __tablename__ = "system_logs"
    __table_args__ = (
        CheckConstraint("level IN ('error', 'warn', 'info', 'debug')", name="ck_system_log_level"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    level = Column(String(10), nullable=False, index=True)
    message = Column(String(1000), nullable=False)
    context = Column(JSON, nullable=False, default=dict)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
