from __future__ import annotations

import hashlib
import re
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from loanportal.core.settings import settings


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_SPECIAL_CHARS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")


def password_problems(password: str) -> list[str]:
    """Return the list of strength rules *password* fails (empty when acceptable)."""
    problems: list[str] = []
    min_len = settings.default_password_min_length
    if len(password) < min_len:
        problems.append(f"Password must be at least {min_len} characters long")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain at least one number")
    if not _SPECIAL_CHARS.search(password):
        problems.append("Password must contain at least one special character")
    return problems


def get_password_hash(password: str) -> str:
    min_len = settings.default_password_min_length
    if len(password) < min_len:
        raise ValueError(f"Password too short; minimum {min_len} characters")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class JWTKeyError(RuntimeError):
    pass


def _read_key(path: str) -> str:
    with open(path, "r", encoding="utf-8") as key_file:
        return key_file.read()


@lru_cache(maxsize=1)
def _load_signing_key() -> str:
    if settings.jwt_algorithm == "HS256":
        return settings.secret_key
    if settings.jwt_private_key:
        return settings.jwt_private_key
    if settings.jwt_private_key_path:
        return _read_key(settings.jwt_private_key_path)
    raise JWTKeyError("JWT private key not configured")


@lru_cache(maxsize=1)
def _load_verification_key() -> str:
    if settings.jwt_algorithm == "HS256":
        return settings.secret_key
    if settings.jwt_public_key:
        return settings.jwt_public_key
    if settings.jwt_public_key_path:
        return _read_key(settings.jwt_public_key_path)
    raise JWTKeyError("JWT public key not configured")


def create_access_token(
    subject: str,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode: dict[str, Any] = {"sub": subject, "role": role, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, _load_signing_key(), algorithm=settings.jwt_algorithm)


def decode_token(token: str, expected_type: str | None = None) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, _load_verification_key(), algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if expected_type and payload.get("type") != expected_type:
        raise ValueError(f"Unexpected token type: {payload.get('type')}")
    return payload


PASSWORD_RESET_TOKEN_TYPE = "password_reset"


def password_fingerprint(hashed_password: str) -> str:
    """Short digest of the stored hash; changes whenever the password does."""
    return hashlib.sha256(hashed_password.encode("utf-8")).hexdigest()[:16]


def create_password_reset_token(subject: str, hashed_password: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.password_reset_expire_minutes)
    to_encode: dict[str, Any] = {
        "sub": subject,
        "exp": expire,
        "type": PASSWORD_RESET_TOKEN_TYPE,
        "pwd": password_fingerprint(hashed_password),
    }
    return jwt.encode(to_encode, _load_signing_key(), algorithm=settings.jwt_algorithm)
