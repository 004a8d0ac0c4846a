from pathlib import Path, PurePosixPath
from urllib.parse import urlencode

from loanportal.core.settings import settings
from loanportal.services.storage.signing import DOWNLOAD_PATH, signed_query


class DocumentStore:
    """Application documents kept on local disk, handed out through signed links."""

    provider = "local"

    def __init__(self, root: str | Path, public_base_url: str, signing_key: str) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self.signing_key = signing_key

    def path_for(self, storage_key: str) -> Path:
        """Map a storage key to a file under the root; raises ValueError for keys that escape it."""
        key = PurePosixPath(storage_key)
        if "\\" in storage_key or key.is_absolute() or ".." in key.parts:
            raise ValueError("Invalid storage key")
        root = self.root.resolve()
        path = (root / key).resolve()
        if root not in path.parents:
            raise ValueError("Invalid storage key")
        return path

    def download_url(self, storage_key: str, expires_in: int) -> str:
        query = urlencode(signed_query(self.signing_key, storage_key, expires_in))
        return f"{self.public_base_url}{DOWNLOAD_PATH}?{query}"


def get_document_store() -> DocumentStore:
    return DocumentStore(settings.local_upload_dir, settings.public_base_url, settings.secret_key)
