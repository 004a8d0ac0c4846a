from __future__ import annotations

from pathlib import Path
from uuid import UUID, uuid4

from fastapi import UploadFile


# Magic byte signatures for known binary file types.
# Used to cross-check that uploaded file content matches the claimed extension.
_MAGIC_SIGNATURES: dict[str, list[bytes]] = {
    ".pdf": [b"%PDF"],
    ".png": [b"\x89PNG\r\n\x1a\n"],
    ".jpg": [b"\xff\xd8\xff"],
    ".jpeg": [b"\xff\xd8\xff"],
    ".doc": [b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"],
    ".docx": [b"PK\x03\x04", b"PK\x05\x06"],
}

# Extensions whose content can execute scripts when rendered in a browser.
_DANGEROUS_EXTENSIONS = {".html", ".htm", ".svg", ".xhtml", ".js", ".mjs", ".xml"}

_MIME_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

_CHUNK_SIZE = 1024 * 1024


class UploadRejected(ValueError):
    """Raised when an upload fails extension, content or size validation."""


def _validate_content_type(header_bytes: bytes, ext: str) -> None:
    if ext in _DANGEROUS_EXTENSIONS:
        raise UploadRejected(
            f"File type '{ext}' is not allowed because it may contain executable content"
        )
    signatures = _MAGIC_SIGNATURES.get(ext)
    if signatures is None:
        return
    if not any(header_bytes.startswith(sig) for sig in signatures):
        raise UploadRejected(f"File content does not match the expected format for '{ext}'")


def _safe_filename(filename: str | None, fallback: str) -> str:
    if not filename:
        return fallback
    return Path(filename).name or fallback


def _normalize_extensions(allowed_formats: set[str] | tuple[str, ...]) -> set[str]:
    normalized = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in allowed_formats}
    if ".jpeg" in normalized:
        normalized.add(".jpg")
    if ".jpg" in normalized:
        normalized.add(".jpeg")
    return normalized


def guess_mime_type(filename: str) -> str:
    return _MIME_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


def _size_error(max_size_bytes: int) -> UploadRejected:
    return UploadRejected(
        f"File exceeds maximum allowed size of {max_size_bytes // (1024 * 1024)} MB"
    )


async def save_upload(
    file: UploadFile,
    base_dir: Path,
    subdir: Path,
    allowed_formats: set[str] | tuple[str, ...] | None = None,
    max_size_bytes: int = 0,
) -> tuple[str, str, int]:
    """Stream *file* under ``base_dir/subdir``; returns ``(storage_key, original_name, size)``.

    Nothing is left on disk when validation fails.
    """
    base_dir = base_dir.resolve()
    dest_dir = (base_dir / subdir).resolve()
    if base_dir not in dest_dir.parents and base_dir != dest_dir:
        raise UploadRejected("Invalid upload path")

    original_name = _safe_filename(file.filename, "upload.bin")
    ext = Path(original_name).suffix.lower()

    if allowed_formats:
        normalized_allowed = _normalize_extensions(allowed_formats)
        if ext not in normalized_allowed:
            raise UploadRejected(
                f"File type not allowed. Allowed extensions: {', '.join(sorted(normalized_allowed))}"
            )

    dest_dir.mkdir(parents=True, exist_ok=True)
    dest_path = dest_dir / f"{uuid4().hex}{ext}"
    bytes_written = 0

    try:
        with dest_path.open("wb") as handle:
            first_chunk = await file.read(_CHUNK_SIZE)
            if not first_chunk:
                raise UploadRejected("Uploaded file is empty")
            _validate_content_type(first_chunk, ext)
            chunk = first_chunk
            while chunk:
                bytes_written += len(chunk)
                if max_size_bytes and bytes_written > max_size_bytes:
                    raise _size_error(max_size_bytes)
                handle.write(chunk)
                chunk = await file.read(_CHUNK_SIZE)
    except ValueError:
        dest_path.unlink(missing_ok=True)
        raise
    finally:
        await file.close()

    return dest_path.relative_to(base_dir).as_posix(), original_name, bytes_written


def application_documents_subdir(application_id: UUID) -> Path:
    return Path("applications") / str(application_id) / "documents"
