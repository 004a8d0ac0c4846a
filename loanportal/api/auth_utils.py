from typing import Optional

from fastapi import Request

from loanportal.core.security import verify_password
from loanportal.core.settings import settings
from loanportal.utils.login_security import check_lockout, rate_limit, register_login_attempt

_FAKE_HASH = "$2b$12$EixZaYVK1fsbw1ZfbX3OXePaWrn3ILAWO.P3K.fc8G2.0G7u6g.2"


def constant_time_verify(user_password_hash: Optional[str], password: str) -> bool:
    if user_password_hash:
        return verify_password(password, user_password_hash)
    # Dummy verification to equalize timing for unknown emails
    verify_password(password, _FAKE_HASH)
    return False


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def enforce_login_limits(ip: str, email: str) -> None:
    await rate_limit(f"login-ip:{ip}", limit=settings.rate_limit_per_minute, window_seconds=60)
    await rate_limit(f"login-email:{email}", limit=settings.login_attempt_limit * 2, window_seconds=60)
    await check_lockout(email)


async def record_login_attempt(email: str, success: bool) -> None:
    await register_login_attempt(email, success)
