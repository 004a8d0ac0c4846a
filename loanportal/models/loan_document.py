import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from loanportal.db.base import Base


DOCUMENT_TYPES = (
    "profile_picture",
    "aadhar_card",
    "pan_card",
    "income_certificate",
    "bank_statement",
    "admission_letter",
    "fee_structure",
    "chat_files",
    "other",
)

DOCUMENT_STATUSES = ("uploaded", "processing", "approved", "rejected")


class LoanDocument(Base):
    __tablename__ = "loan_documents"
    __table_args__ = (
        CheckConstraint(
            "document_type IN ('profile_picture', 'aadhar_card', 'pan_card', 'income_certificate', "
            "'bank_statement', 'admission_letter', 'fee_structure', 'chat_files', 'other')",
            name="ck_loan_document_type",
        ),
        CheckConstraint(
            "status IN ('uploaded', 'processing', 'approved', 'rejected')",
            name="ck_loan_document_status",
        ),
        Index("ix_loan_documents_app_deleted", "loan_application_id", "is_deleted"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loan_applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    uploaded_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    document_type = Column(String(30), nullable=False)
    original_name = Column(String(255), nullable=False)
    storage_provider = Column(String(32), nullable=False, default="local")
    storage_key = Column(String(1024), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    mime_type = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default="uploaded")
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    loan_application = relationship("LoanApplication", back_populates="documents")
