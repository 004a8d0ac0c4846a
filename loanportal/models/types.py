import base64
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator

from loanportal.core.settings import settings

_KDF_SALT = b"loanportal-pii-v1"


@lru_cache(maxsize=8)
def _fernet_for(secret: str) -> Fernet:
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=_KDF_SALT, iterations=200_000)
    return Fernet(base64.urlsafe_b64encode(kdf.derive(secret.encode("utf-8"))))


class EncryptedString(TypeDecorator):
    """Government id numbers (Aadhaar, PAN) stored as Fernet tokens."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return _fernet_for(settings.secret_key).encrypt(str(value).encode("utf-8")).decode("ascii")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        try:
            return _fernet_for(settings.secret_key).decrypt(value.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Unable to decrypt value") from exc


def mask_identifier(value: str | None, visible: int = 4) -> str | None:
    if not value:
        return value
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]


__all__ = ["EncryptedString", "mask_identifier"]
