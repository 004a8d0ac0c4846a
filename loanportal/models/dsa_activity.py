import uuid

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID

from loanportal.db.base import Base


ACTIVITY_TYPES = ("login", "application_review", "application_approve", "application_reject")


class DSAActivity(Base):
    __tablename__ = "dsa_activities"
    __table_args__ = (
        CheckConstraint(
            "activity_type IN ('login', 'application_review', 'application_approve', 'application_reject')",
            name="ck_dsa_activity_type",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    dsa_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    activity_type = Column(String(30), nullable=False)
    loan_application_id = Column(
        UUID(as_uuid=True), ForeignKey("loan_applications.id", ondelete="SET NULL"), nullable=True
    )
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
