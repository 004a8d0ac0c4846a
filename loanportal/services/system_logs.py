from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.logging import get_stream_logger
from loanportal.models.system_log import SystemLog

system_logger = get_stream_logger("system")

_LOG_LEVELS = {"error": logging.ERROR, "warn": logging.WARNING, "info": logging.INFO, "debug": logging.DEBUG}


def record_system_log(
    db: AsyncSession,
    level: str,
    message: str,
    *,
    context: dict | None = None,
    user_id=None,
) -> SystemLog:
    entry = SystemLog(level=level, message=message[:1000], context=context or {}, user_id=user_id)
    db.add(entry)
    system_logger.log(_LOG_LEVELS.get(level, logging.INFO), message, extra={"context": entry.context})
    return entry


async def list_system_logs(
    db: AsyncSession,
    *,
    level: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[SystemLog], int]:
    conditions = []
    if level:
        conditions.append(SystemLog.level == level)
    total = (await db.execute(select(func.count(SystemLog.id)).where(*conditions))).scalar_one()
    stmt = (
        select(SystemLog)
        .where(*conditions)
        .order_by(SystemLog.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = (await db.execute(stmt)).scalars().all()
    return list(rows), int(total or 0)
