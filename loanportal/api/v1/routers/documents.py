from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.api import deps
from loanportal.core.roles import Capability
from loanportal.db.session import get_db
from loanportal.models import User
from loanportal.schemas.applications import DocumentDTO, DocumentType
from loanportal.schemas.common import MessageResponse
from loanportal.services import applications as application_service
from loanportal.services import authz, documents

router = APIRouter(prefix="/applications/{application_id}/documents", tags=["documents"])


@router.get("", response_model=list[DocumentDTO])
async def list_documents(
    application_id: UUID,
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> list[DocumentDTO]:
    application = await application_service.get_visible_application(db, application_id, current_user)
    rows = await documents.list_documents(db, application)
    return [DocumentDTO(**documents.document_payload(row)) for row in rows]


@router.post("", response_model=DocumentDTO, status_code=status.HTTP_201_CREATED)
async def upload_document(
    application_id: UUID,
    document_type: DocumentType = Form(...),
    file: UploadFile = File(...),
    current_user: User = Depends(deps.require_capability(Capability.DOCUMENT_UPLOAD)),
    db: AsyncSession = Depends(get_db),
) -> DocumentDTO:
    application = await application_service.get_application(db, application_id)
    authz.ensure_owner_or_admin(current_user, application)
    document = await documents.store_document(
        db, application, file, document_type.value, uploader=current_user
    )
    return DocumentDTO(**documents.document_payload(document))


@router.delete("/{document_id}", response_model=MessageResponse)
async def delete_document(
    application_id: UUID,
    document_id: UUID,
    current_user: User = Depends(deps.require_capability(Capability.DOCUMENT_DELETE)),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    application = await application_service.get_application(db, application_id)
    authz.ensure_owner_or_admin(current_user, application)
    await documents.soft_delete_document(db, application, document_id, actor=current_user)
    return MessageResponse(message="Document deleted")
