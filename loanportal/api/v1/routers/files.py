from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import FileResponse

from loanportal.core.settings import settings
from loanportal.services.local_uploads import guess_mime_type
from loanportal.services.storage.signing import link_is_valid
from loanportal.services.storage.store import get_document_store

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/local-content", response_class=FileResponse)
async def read_local_content(
    key: str = Query(..., min_length=1),
    expires: int = Query(...),
    signature: str = Query(..., min_length=1),
) -> FileResponse:
    """Serve an uploaded document to whoever holds a valid download link."""
    if not link_is_valid(settings.secret_key, key, expires, signature):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired link")
    try:
        path = get_document_store().path_for(key)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid storage key") from exc
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(path, media_type=guess_mime_type(path.name))
