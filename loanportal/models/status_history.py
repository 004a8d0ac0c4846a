import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from loanportal.db.base import Base


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StatusHistoryEntry(Base):
    """Append-only record of one status change of a loan application."""

    __tablename__ = "loan_application_status_history"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(String(30), nullable=False)
    updated_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    comments = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)

    loan_application = relationship("LoanApplication", back_populates="status_history")
