from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.errors import BadRequestError, NotFoundError
from loanportal.core.settings import settings
from loanportal.models.loan_application import LoanApplication
from loanportal.models.loan_document import LoanDocument
from loanportal.models.user import User
from loanportal.services.audit import record_audit_log
from loanportal.services.local_uploads import (
    UploadRejected,
    application_documents_subdir,
    guess_mime_type,
    save_upload,
)
from loanportal.services.storage.store import get_document_store

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


@dataclass(frozen=True)
class DocumentRule:
    formats: tuple[str, ...]
    max_size_bytes: int


_IDENTITY_RULE = DocumentRule(("jpg", "jpeg", "png", "pdf"), 10 * _MB)

DOCUMENT_RULES: dict[str, DocumentRule] = {
    "profile_picture": DocumentRule(("jpg", "jpeg", "png"), 5 * _MB),
    "aadhar_card": _IDENTITY_RULE,
    "pan_card": _IDENTITY_RULE,
    "income_certificate": _IDENTITY_RULE,
    "admission_letter": _IDENTITY_RULE,
    "fee_structure": _IDENTITY_RULE,
    "bank_statement": DocumentRule(("pdf",), 20 * _MB),
    "chat_files": DocumentRule(("jpg", "jpeg", "png", "pdf", "doc", "docx"), 15 * _MB),
    "other": DocumentRule(("jpg", "jpeg", "png", "pdf"), 10 * _MB),
}

_IMAGE_MIME_PREFIX = "image/"


def rule_for(document_type: str) -> DocumentRule:
    try:
        return DOCUMENT_RULES[document_type]
    except KeyError as exc:
        raise BadRequestError(f"Unsupported document type: {document_type}") from exc


def document_payload(document: LoanDocument) -> dict:
    mime_type = document.mime_type or ""
    return {
        "id": document.id,
        "loan_application_id": document.loan_application_id,
        "document_type": document.document_type,
        "original_name": document.original_name,
        "file_size": document.file_size,
        "mime_type": document.mime_type,
        "status": document.status,
        "uploaded_at": document.uploaded_at,
        "file_url": get_document_store().download_url(document.storage_key, settings.download_url_expiry_seconds),
        "is_image": mime_type.startswith(_IMAGE_MIME_PREFIX),
        "is_pdf": mime_type == "application/pdf",
    }


async def store_document(
    db: AsyncSession,
    application: LoanApplication,
    file: UploadFile,
    document_type: str,
    *,
    uploader: User,
    commit: bool = True,
) -> LoanDocument:
    """Validate and persist one upload; raises BadRequestError without leaving anything behind."""
    rule = rule_for(document_type)
    try:
        storage_key, original_name, size = await save_upload(
            file,
            Path(settings.local_upload_dir),
            application_documents_subdir(application.id),
            allowed_formats=rule.formats,
            max_size_bytes=rule.max_size_bytes,
        )
    except UploadRejected as exc:
        raise BadRequestError(str(exc), details={"document_type": document_type}) from exc

    document = LoanDocument(
        loan_application_id=application.id,
        uploaded_by=uploader.id,
        document_type=document_type,
        original_name=original_name,
        storage_provider="local",
        storage_key=storage_key,
        file_size=size,
        mime_type=guess_mime_type(original_name),
        status="uploaded",
        is_deleted=False,
        uploaded_at=datetime.now(timezone.utc),
    )
    db.add(document)
    record_audit_log(
        db,
        actor_id=uploader.id,
        action="loan_document.uploaded",
        resource_type="loan_application",
        resource_id=str(application.id),
        new_value={"document_type": document_type, "original_name": original_name, "file_size": size},
    )
    if commit:
        await db.commit()
        await db.refresh(document)
    logger.info(
        "Document stored",
        extra={"application_id": str(application.id), "document_type": document_type, "file_size": size},
    )
    return document


async def list_documents(db: AsyncSession, application: LoanApplication) -> list[LoanDocument]:
    stmt = (
        select(LoanDocument)
        .where(
            LoanDocument.loan_application_id == application.id,
            LoanDocument.is_deleted.is_(False),
        )
        .order_by(LoanDocument.uploaded_at.desc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def soft_delete_document(
    db: AsyncSession,
    application: LoanApplication,
    document_id: UUID,
    *,
    actor: User,
) -> LoanDocument:
    stmt = select(LoanDocument).where(
        LoanDocument.id == document_id,
        LoanDocument.loan_application_id == application.id,
        LoanDocument.is_deleted.is_(False),
    )
    document = (await db.execute(stmt)).scalar_one_or_none()
    if document is None:
        raise NotFoundError("Document not found")
    document.is_deleted = True
    document.deleted_at = datetime.now(timezone.utc)
    record_audit_log(
        db,
        actor_id=actor.id,
        action="loan_document.deleted",
        resource_type="loan_application",
        resource_id=str(application.id),
        old_value={"document_id": str(document.id), "document_type": document.document_type},
    )
    db.add(document)
    await db.commit()
    return document
