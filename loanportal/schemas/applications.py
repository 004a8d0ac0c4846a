from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from loanportal.schemas.common import PageMeta


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    PARTIALLY_APPROVED = "partially_approved"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DocumentType(str, Enum):
    PROFILE_PICTURE = "profile_picture"
    AADHAR_CARD = "aadhar_card"
    PAN_CARD = "pan_card"
    INCOME_CERTIFICATE = "income_certificate"
    BANK_STATEMENT = "bank_statement"
    ADMISSION_LETTER = "admission_letter"
    FEE_STRUCTURE = "fee_structure"
    CHAT_FILES = "chat_files"
    OTHER = "other"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------


class Address(BaseModel):
    street: str
    city: str
    state: str
    zip_code: str
    country: str = "India"


class Employment(BaseModel):
    type: str = Field(pattern=r"^(Salaried|Self-Employed|Business)$")
    company_name: str | None = None
    designation: str | None = None
    work_experience: int | None = Field(default=None, ge=0)


class PersonalDetails(BaseModel):
    full_name: str = Field(min_length=1, max_length=200)
    date_of_birth: date | None = None
    gender: str | None = Field(default=None, pattern=r"^(Male|Female|Other)$")
    marital_status: str | None = Field(default=None, pattern=r"^(Single|Married|Divorced|Widowed)$")
    address: Address | None = None
    employment: Employment | None = None
    income: Decimal | None = Field(default=None, ge=0)


class LoanDetails(BaseModel):
    amount: Decimal = Field(ge=10000)
    purpose: str = Field(min_length=1, max_length=500)
    tenure_months: int = Field(ge=6, le=360)
    interest_rate: Decimal | None = Field(default=None, ge=0, le=50)


class EducationDetails(BaseModel):
    institution_name: str | None = None
    course_name: str | None = None
    course_duration: str | None = None
    admission_date: date | None = None
    total_fees: Decimal | None = Field(default=None, ge=0)


class ApplicationCreate(BaseModel):
    loan_type: str = Field(default="education", pattern=r"^education$")
    personal_details: PersonalDetails
    loan_details: LoanDetails
    education_details: EducationDetails = Field(default_factory=EducationDetails)


class ApplicationUpdate(BaseModel):
    """Staff-side update; a status change is a lifecycle transition."""

    model_config = ConfigDict(extra="forbid")

    status: ApplicationStatus | None = None
    comments: str | None = Field(default=None, max_length=1000)
    priority: Priority | None = None
    review_deadline: datetime | None = None
    final_approval_threshold: int | None = Field(default=None, ge=1, le=5)
    expected_version: int | None = Field(default=None, ge=1)


# ---------------------------------------------------------------------------
# Assignment & reviews
# ---------------------------------------------------------------------------


class AssignDSAsRequest(BaseModel):
    dsa_ids: list[UUID] = Field(min_length=1, max_length=5)
    final_approval_threshold: int = Field(default=2, ge=1, le=5)

    @field_validator("dsa_ids")
    @classmethod
    def _unique(cls, value: list[UUID]) -> list[UUID]:
        if len(set(value)) != len(value):
            raise ValueError("dsa_ids must be unique")
        return value


class AvailableDSA(BaseModel):
    id: UUID
    name: str
    email: str
    bank_name: str | None = None
    dsa_id: str | None = None
    specialization: list[str] = []
    workload: int
    is_currently_assigned: bool


class AvailableDSAsResponse(BaseModel):
    available_dsas: list[AvailableDSA]
    current_assignments: list[UUID]
    final_approval_threshold: int


class RiskAssessment(BaseModel):
    credit_score: int | None = Field(default=None, ge=300, le=900)
    risk_level: RiskLevel | None = None
    recommendations: list[str] = []


class ReviewCreate(BaseModel):
    status: ReviewStatus
    comments: str | None = Field(default=None, max_length=2000)
    documents_reviewed: list[str] = []
    risk_assessment: RiskAssessment | None = None


class SelectDSARequest(BaseModel):
    dsa_id: UUID


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


class StatusHistoryDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: str
    updated_by: UUID | None = None
    comments: str | None = None
    updated_at: datetime | None = None


class DSAReviewDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    dsa_id: UUID
    status: str
    comments: str | None = None
    documents_reviewed: list[str] = []
    risk_assessment: dict | None = None
    reviewed_at: datetime | None = None


class AssignmentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    dsa_id: UUID
    assigned_at: datetime | None = None


class DocumentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_application_id: UUID
    document_type: str
    original_name: str
    file_size: int
    mime_type: str | None = None
    status: str
    uploaded_at: datetime | None = None
    file_url: str | None = None
    is_image: bool = False
    is_pdf: bool = False


class CompletenessDTO(BaseModel):
    required: list[str]
    submitted: list[str]
    missing: list[str]
    percentage: float


class ApplicationSummaryDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_number: str
    user_id: UUID
    loan_type: str
    amount: Decimal
    status: str
    priority: str
    dsa_id: UUID | None = None
    assigned_at: datetime | None = None
    review_deadline: datetime | None = None
    final_approval_threshold: int
    payment_status: str
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ApplicationDTO(ApplicationSummaryDTO):
    personal_details: dict
    loan_details: dict
    education_details: dict
    required_documents: list[str] = []
    status_history: list[StatusHistoryDTO] = []
    assignments: list[AssignmentDTO] = []
    reviews: list[DSAReviewDTO] = []


class ApplicationDetailDTO(ApplicationDTO):
    documents: list[DocumentDTO] = []
    completeness: CompletenessDTO


class ApplicationListResponse(BaseModel):
    items: list[ApplicationSummaryDTO]
    pagination: PageMeta


class ApprovalSummary(BaseModel):
    approved: int
    rejected: int
    pending: int


class ReviewsResponse(BaseModel):
    application_id: UUID
    status: str
    reviews: list[DSAReviewDTO]
    summary: ApprovalSummary
    final_approval_threshold: int
    can_select_dsa: bool
    primary_dsa_id: UUID | None = None


class FailedUpload(BaseModel):
    field: str
    file_name: str | None = None
    error: str


class ApplicationWithFilesResponse(BaseModel):
    application: ApplicationDTO
    files_uploaded: int
    documents: list[DocumentDTO]
    failed_uploads: list[FailedUpload] = []


class StatusTransitionRequest(BaseModel):
    status: ApplicationStatus
    comments: str | None = Field(default=None, max_length=1000)
    expected_version: int | None = Field(default=None, ge=1)
