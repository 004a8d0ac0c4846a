from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.logging import get_stream_logger
from loanportal.models.dsa_activity import DSAActivity

activity_logger = get_stream_logger("activity")


def record_dsa_activity(
    db: AsyncSession,
    *,
    dsa_id,
    activity_type: str,
    application_id=None,
    details: dict | None = None,
) -> DSAActivity:
    """Stage a DSA activity row; it is written with the caller's commit."""
    entry = DSAActivity(
        dsa_id=dsa_id,
        activity_type=activity_type,
        loan_application_id=application_id,
        details=details or {},
    )
    db.add(entry)
    activity_logger.info(
        activity_type,
        extra={"dsa_id": str(dsa_id), "application_id": str(application_id) if application_id else None},
    )
    return entry
