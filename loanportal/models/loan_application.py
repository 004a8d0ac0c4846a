import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from loanportal.db.base import Base


APPLICATION_STATUSES = ("pending", "under_review", "approved", "rejected", "partially_approved")
PRIORITIES = ("low", "medium", "high")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")


class LoanApplication(Base):
    __tablename__ = "loan_applications"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'under_review', 'approved', 'rejected', 'partially_approved')",
            name="ck_loan_app_status",
        ),
        CheckConstraint("priority IN ('low', 'medium', 'high')", name="ck_loan_app_priority"),
        CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded')",
            name="ck_loan_app_payment_status",
        ),
        CheckConstraint("amount >= 10000", name="ck_loan_app_min_amount"),
        CheckConstraint(
            "final_approval_threshold BETWEEN 1 AND 5",
            name="ck_loan_app_threshold_range",
        ),
        CheckConstraint("version >= 1", name="ck_loan_app_version_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_number = Column(String(20), nullable=False, unique=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    loan_type = Column(String(30), nullable=False, default="education")
    personal_details = Column(JSON, nullable=False, default=dict)
    loan_details = Column(JSON, nullable=False, default=dict)
    education_details = Column(JSON, nullable=False, default=dict)
    # denormalized from loan_details for filtering and aggregation
    amount = Column(Numeric(14, 2), nullable=False)
    status = Column(String(30), nullable=False, default="pending", index=True)
    priority = Column(String(10), nullable=False, default="low")
    required_documents = Column(JSON, nullable=False, default=list)
    dsa_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    review_deadline = Column(DateTime(timezone=True), nullable=True, index=True)
    final_approval_threshold = Column(Integer, nullable=False, default=2)
    payment_status = Column(String(20), nullable=False, default="pending")
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    status_history = relationship(
        "StatusHistoryEntry",
        back_populates="loan_application",
        order_by="StatusHistoryEntry.updated_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    assignments = relationship(
        "ApplicationAssignment",
        back_populates="loan_application",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    reviews = relationship(
        "DSAReview",
        back_populates="loan_application",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    documents = relationship(
        "LoanDocument",
        back_populates="loan_application",
        order_by="LoanDocument.uploaded_at",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def assigned_dsa_ids(self) -> list:
        return [assignment.dsa_id for assignment in (self.assignments or [])]

    def is_assigned_to(self, user_id) -> bool:
        return any(str(dsa_id) == str(user_id) for dsa_id in self.assigned_dsa_ids)

    @property
    def active_documents(self) -> list:
        return [doc for doc in (self.documents or []) if not doc.is_deleted]
