from fastapi import HTTPException, status
from redis.exceptions import RedisError

from loanportal.core.settings import settings
from loanportal.utils.redis_client import get_redis_client

_PREFIX = "loanportal:login"


def _too_many(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=detail)


async def rate_limit(key: str, limit: int, window_seconds: int) -> None:
    """Fixed-window counter; a Redis outage lets the request through."""
    counter = f"{_PREFIX}:rl:{key}"
    try:
        async with get_redis_client().pipeline(transaction=True) as pipe:
            count, _ = await pipe.incr(counter).expire(counter, window_seconds).execute()
    except RedisError:
        return
    if count > limit:
        raise _too_many("Rate limit exceeded")


async def check_lockout(email: str) -> None:
    try:
        locked = await get_redis_client().exists(f"{_PREFIX}:lock:{email}")
    except RedisError:
        return
    if locked:
        raise _too_many("Too many login attempts; try later")


async def register_login_attempt(email: str, success: bool) -> None:
    """Count failures per email and lock the address once the limit is reached."""
    failures, lock = f"{_PREFIX}:fail:{email}", f"{_PREFIX}:lock:{email}"
    window = max(1, settings.login_lockout_minutes * 60)
    redis = get_redis_client()
    try:
        if success:
            await redis.delete(failures, lock)
            return
        async with redis.pipeline(transaction=True) as pipe:
            attempts, _ = await pipe.incr(failures).expire(failures, window).execute()
        if attempts < settings.login_attempt_limit:
            return
        await redis.setex(lock, window, 1)
        await redis.delete(failures)
    except RedisError:
        return
    raise _too_many("Account temporarily locked due to failed attempts")
