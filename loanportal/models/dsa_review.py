import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from loanportal.db.base import Base


REVIEW_STATUSES = ("pending", "approved", "rejected")


class DSAReview(Base):
    __tablename__ = "dsa_reviews"
    __table_args__ = (
        UniqueConstraint("loan_application_id", "dsa_id", name="uq_dsa_review_per_application"),
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_dsa_review_status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    dsa_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")
    comments = Column(Text, nullable=True)
    documents_reviewed = Column(JSON, nullable=False, default=list)
    risk_assessment = Column(JSON, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    loan_application = relationship("LoanApplication", back_populates="reviews")
