from __future__ import annotations

import json
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile as StarletteUploadFile

from loanportal.api import deps
from loanportal.core.errors import BadRequestError
from loanportal.core.roles import Capability
from loanportal.db.session import get_db
from loanportal.models import LoanApplication, User
from loanportal.schemas.applications import (
    ApplicationCreate,
    ApplicationDetailDTO,
    ApplicationDTO,
    ApplicationListResponse,
    ApplicationStatus,
    ApplicationSummaryDTO,
    ApplicationUpdate,
    ApplicationWithFilesResponse,
    AssignDSAsRequest,
    AvailableDSAsResponse,
    CompletenessDTO,
    DocumentDTO,
    FailedUpload,
    Priority,
    ReviewCreate,
    ReviewsResponse,
    SelectDSARequest,
    StatusTransitionRequest,
)
from loanportal.schemas.common import PageMeta
from loanportal.services import applications as application_service
from loanportal.services import assignment, lifecycle, reviews
from loanportal.services.completeness import application_completeness
from loanportal.services.documents import document_payload

router = APIRouter(prefix="/applications", tags=["applications"])

# form field -> document type; camelCase names are accepted from older clients
_UPLOAD_FIELDS: dict[str, str] = {
    "aadhar_card": "aadhar_card",
    "aadharCard": "aadhar_card",
    "pan_card": "pan_card",
    "panCard": "pan_card",
    "income_certificate": "income_certificate",
    "incomeProof": "income_certificate",
    "admission_letter": "admission_letter",
    "educationCertificate": "admission_letter",
    "fee_structure": "fee_structure",
    "feeReceipt": "fee_structure",
    "bank_statement": "bank_statement",
    "bankStatement": "bank_statement",
}


def _application_dto(application: LoanApplication) -> ApplicationDTO:
    return ApplicationDTO.model_validate(application)


def _application_detail(application: LoanApplication) -> ApplicationDetailDTO:
    base = ApplicationDTO.model_validate(application).model_dump()
    completeness = application_completeness(application)
    return ApplicationDetailDTO(
        **base,
        documents=[DocumentDTO(**document_payload(doc)) for doc in application.active_documents],
        completeness=CompletenessDTO(**completeness.__dict__),
    )


@router.post("", response_model=ApplicationDTO, status_code=status.HTTP_201_CREATED)
async def create_application(
    payload: ApplicationCreate,
    current_user: User = Depends(deps.require_capability(Capability.APPLICATION_SUBMIT)),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await application_service.create_application(db, payload, applicant=current_user)
    return _application_dto(application)


@router.post("/with-files", response_model=ApplicationWithFilesResponse, status_code=status.HTTP_201_CREATED)
async def create_application_with_files(
    request: Request,
    current_user: User = Depends(deps.require_capability(Capability.APPLICATION_SUBMIT)),
    db: AsyncSession = Depends(get_db),
) -> ApplicationWithFilesResponse:
    form = await request.form()
    raw = form.get("application_data") or form.get("applicationData")
    if not raw or not isinstance(raw, str):
        raise BadRequestError("application_data form field is required")
    try:
        payload = ApplicationCreate.model_validate(json.loads(raw))
    except json.JSONDecodeError as exc:
        raise BadRequestError("application_data must be valid JSON") from exc
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc

    uploads = [
        (field, _UPLOAD_FIELDS[field], value)
        for field, value in form.multi_items()
        if field in _UPLOAD_FIELDS and isinstance(value, StarletteUploadFile) and value.filename
    ]
    application, stored, failed = await application_service.create_with_files(
        db, payload, uploads, applicant=current_user
    )
    return ApplicationWithFilesResponse(
        application=_application_dto(application),
        files_uploaded=len(stored),
        documents=[DocumentDTO(**document_payload(doc)) for doc in stored],
        failed_uploads=[FailedUpload(**item) for item in failed],
    )


@router.get("", response_model=ApplicationListResponse)
async def list_applications(
    status_filter: ApplicationStatus | None = Query(default=None, alias="status"),
    priority: Priority | None = Query(default=None),
    search: str | None = Query(default=None, max_length=50),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> ApplicationListResponse:
    rows, total = await application_service.list_applications(
        db,
        current_user,
        status=status_filter.value if status_filter else None,
        priority=priority.value if priority else None,
        search=search,
        page=page,
        limit=limit,
    )
    return ApplicationListResponse(
        items=[ApplicationSummaryDTO.model_validate(row) for row in rows],
        pagination=PageMeta.build(page=page, limit=limit, total=total),
    )


@router.get("/{application_id}", response_model=ApplicationDetailDTO)
async def get_application(
    application_id: UUID,
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDetailDTO:
    application = await application_service.get_visible_application(db, application_id, current_user)
    return _application_detail(application)


@router.put("/{application_id}", response_model=ApplicationDTO)
async def update_application(
    application_id: UUID,
    payload: ApplicationUpdate,
    current_user: User = Depends(deps.require_capability(Capability.APPLICATION_UPDATE_STATUS)),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await application_service.get_application(db, application_id)
    application = await application_service.update_application(db, application, payload, actor=current_user)
    return _application_dto(application)


@router.patch("/{application_id}/status", response_model=ApplicationDTO)
async def transition_application_status(
    application_id: UUID,
    payload: StatusTransitionRequest,
    current_user: User = Depends(deps.require_capability(Capability.APPLICATION_UPDATE_STATUS)),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await application_service.get_application(db, application_id)
    application = await lifecycle.transition_status(
        db,
        application,
        target=payload.status,
        actor=current_user,
        comments=payload.comments,
        expected_version=payload.expected_version,
    )
    return _application_dto(application)


@router.get("/{application_id}/completeness", response_model=CompletenessDTO)
async def get_completeness(
    application_id: UUID,
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> CompletenessDTO:
    application = await application_service.get_visible_application(db, application_id, current_user)
    return CompletenessDTO(**application_completeness(application).__dict__)


@router.get("/{application_id}/assign-dsas", response_model=AvailableDSAsResponse)
async def list_assignable_dsas(
    application_id: UUID,
    current_user: User = Depends(deps.require_capability(Capability.APPLICATION_ASSIGN)),
    db: AsyncSession = Depends(get_db),
) -> AvailableDSAsResponse:
    application = await application_service.get_application(db, application_id)
    return AvailableDSAsResponse(**await assignment.list_available_dsas(db, application))


@router.post("/{application_id}/assign-dsas", response_model=ApplicationDTO)
async def assign_dsas(
    application_id: UUID,
    payload: AssignDSAsRequest,
    current_user: User = Depends(deps.require_capability(Capability.APPLICATION_ASSIGN)),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await application_service.get_application(db, application_id)
    application = await assignment.assign_dsas(
        db,
        application,
        payload.dsa_ids,
        threshold=payload.final_approval_threshold,
        actor=current_user,
    )
    return _application_dto(application)


@router.get("/{application_id}/reviews", response_model=ReviewsResponse)
async def list_reviews(
    application_id: UUID,
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> ReviewsResponse:
    application = await application_service.get_visible_application(db, application_id, current_user)
    return ReviewsResponse(**reviews.reviews_payload(application))


@router.post("/{application_id}/reviews", response_model=ReviewsResponse)
async def submit_review(
    application_id: UUID,
    payload: ReviewCreate,
    current_user: User = Depends(deps.require_capability(Capability.APPLICATION_REVIEW)),
    db: AsyncSession = Depends(get_db),
) -> ReviewsResponse:
    application = await application_service.get_application(db, application_id)
    application = await reviews.submit_review(db, application, payload, reviewer=current_user)
    return ReviewsResponse(**reviews.reviews_payload(application))


@router.post("/{application_id}/select-dsa", response_model=ApplicationDTO)
async def select_dsa(
    application_id: UUID,
    payload: SelectDSARequest,
    current_user: User = Depends(deps.require_capability(Capability.APPLICATION_SELECT_DSA)),
    db: AsyncSession = Depends(get_db),
) -> ApplicationDTO:
    application = await application_service.get_application(db, application_id)
    application = await reviews.select_dsa(db, application, payload.dsa_id, actor=current_user)
    return _application_dto(application)
