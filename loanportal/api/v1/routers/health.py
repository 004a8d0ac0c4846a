from fastapi import APIRouter

from loanportal.core.health import live_payload, ready_payload, status_summary_payload
from loanportal.core.limiter import limiter

router = APIRouter(tags=["health"])


@router.get("/health/live", summary="Process is up")
@limiter.exempt
async def health_live() -> dict:
    return await live_payload()


@router.get("/health/ready", summary="Database, Redis and upload storage are reachable")
@router.get("/health", include_in_schema=False)
@limiter.exempt
async def health_ready() -> dict:
    return await ready_payload()


@router.get("/status/summary", tags=["status"], summary="Readiness plus build version")
@limiter.exempt
async def status_summary() -> dict:
    return await status_summary_payload()
