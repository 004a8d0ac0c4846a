from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from loanportal.core.context import get_user_id
from loanportal.core.settings import settings


def rate_limit_key(request: Request) -> str:
    """Signed-in callers share one budget across addresses; anonymous ones are keyed by client IP."""
    user_id = get_user_id()
    if user_id != "-":
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=rate_limit_key,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.redis_url,
)
