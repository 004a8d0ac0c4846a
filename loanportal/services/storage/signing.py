"""Expiring HMAC links for documents served by ``/files/local-content``."""

import hashlib
import hmac
import time

DOWNLOAD_PATH = "/api/v1/files/local-content"


def link_signature(secret_key: str, storage_key: str, expires: int) -> str:
    digest = hmac.new(secret_key.encode("utf-8"), f"{storage_key}:{expires}".encode("utf-8"), hashlib.sha256)
    return digest.hexdigest()


def signed_query(secret_key: str, storage_key: str, expires_in: int, *, now: float | None = None) -> dict:
    expires = int(now if now is not None else time.time()) + expires_in
    return {"key": storage_key, "expires": expires, "signature": link_signature(secret_key, storage_key, expires)}


def link_is_valid(
    secret_key: str, storage_key: str, expires: int, signature: str, *, now: float | None = None
) -> bool:
    """False once *expires* has passed or when *signature* was not issued for this key."""
    if int(now if now is not None else time.time()) > expires:
        return False
    return hmac.compare_digest(link_signature(secret_key, storage_key, expires), signature)
