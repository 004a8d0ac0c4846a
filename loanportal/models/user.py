import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from loanportal.db.base import Base
from loanportal.models.types import EncryptedString


ROLES = ("admin", "dsa", "user")
BANK_NAMES = ("SBI", "HDFC", "ICICI", "AXIS", "KOTAK")


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('admin', 'dsa', 'user')", name="ck_users_role"),
        CheckConstraint(
            "bank_name IS NULL OR bank_name IN ('SBI', 'HDFC', 'ICICI', 'AXIS', 'KOTAK')",
            name="ck_users_bank_name",
        ),
        CheckConstraint("role != 'dsa' OR bank_name IS NOT NULL", name="ck_users_dsa_bank"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(10), nullable=False, unique=True)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(String(10), nullable=False, default="user", index=True)

    bank_name = Column(String(10), nullable=True, index=True)
    dsa_id = Column(String(20), nullable=True, unique=True)
    specialization = Column(JSON, nullable=False, default=list)

    is_active = Column(Boolean, nullable=False, default=True)
    is_verified = Column(Boolean, nullable=False, default=True)
    verified_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    profile_picture_url = Column(String(1024), nullable=True)

    date_of_birth = Column(Date, nullable=True)
    address = Column(String(500), nullable=True)
    aadhar_number = Column(EncryptedString(), nullable=True)
    pan_number = Column(EncryptedString(), nullable=True)

    current_institution = Column(String(255), nullable=True)
    course = Column(String(255), nullable=True)
    course_duration = Column(String(50), nullable=True)
    fee_structure = Column(Numeric(14, 2), nullable=True)
    admission_date = Column(Date, nullable=True)

    annual_income = Column(Numeric(14, 2), nullable=True)
    employment_type = Column(String(50), nullable=True)
    employer_name = Column(String(255), nullable=True)
    work_experience = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
