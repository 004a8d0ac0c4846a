from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer

from loanportal.models.types import mask_identifier
from loanportal.schemas.common import PageMeta


class BankName(str, Enum):
    SBI = "SBI"
    HDFC = "HDFC"
    ICICI = "ICICI"
    AXIS = "AXIS"
    KOTAK = "KOTAK"


class UserStatusFilter(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    VERIFIED = "verified"
    UNVERIFIED = "unverified"


class UserProfileDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    first_name: str
    last_name: str
    phone: str
    role: str
    bank_name: str | None = None
    dsa_id: str | None = None
    specialization: list[str] = []
    is_active: bool
    is_verified: bool
    verified_at: datetime | None = None
    profile_picture_url: str | None = None
    date_of_birth: date | None = None
    address: str | None = None
    aadhar_number: str | None = None
    pan_number: str | None = None
    current_institution: str | None = None
    course: str | None = None
    course_duration: str | None = None
    fee_structure: Decimal | None = None
    admission_date: date | None = None
    annual_income: Decimal | None = None
    employment_type: str | None = None
    employer_name: str | None = None
    work_experience: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime | None = None

    @field_serializer("aadhar_number", "pan_number")
    def _mask(self, value: str | None) -> str | None:
        return mask_identifier(value)


class ProfileUpdate(BaseModel):
    """Self-editable profile fields; role and account flags are admin-only."""

    model_config = ConfigDict(extra="forbid")

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    phone: str | None = Field(default=None, pattern=r"^\d{10}$")
    specialization: list[str] | None = None
    profile_picture_url: str | None = None
    date_of_birth: date | None = None
    address: str | None = Field(default=None, max_length=500)
    aadhar_number: str | None = Field(default=None, pattern=r"^\d{12}$")
    pan_number: str | None = Field(default=None, pattern=r"^[A-Z]{5}\d{4}[A-Z]$")
    current_institution: str | None = None
    course: str | None = None
    course_duration: str | None = None
    fee_structure: Decimal | None = Field(default=None, ge=0)
    admission_date: date | None = None
    annual_income: Decimal | None = Field(default=None, ge=0)
    employment_type: str | None = None
    employer_name: str | None = None
    work_experience: str | None = None


class AdminUserListResponse(BaseModel):
    items: list[UserProfileDTO]
    pagination: PageMeta


class VerifyUserRequest(BaseModel):
    is_verified: bool


class UserStatusRequest(BaseModel):
    is_active: bool
