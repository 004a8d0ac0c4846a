from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable

from fastapi.encoders import jsonable_encoder
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from loanportal.core.logging import get_stream_logger
from loanportal.models.audit_log import AuditLog

audit_logger = get_stream_logger("audit")

_SUMMARY_FIELDS = 3


def to_json_safe(value: Any) -> Any:
    # amounts keep their exact decimal text
    return jsonable_encoder(value, custom_encoder={Decimal: str})


def model_snapshot(model: Any, *, exclude: Iterable[str] | None = None) -> dict[str, Any]:
    """Column values of *model*, minus *exclude*, ready to store in an audit row."""
    if model is None:
        return {}
    skipped = set(exclude or ())
    return to_json_safe(
        {attr.key: getattr(model, attr.key) for attr in inspect(model).mapper.column_attrs if attr.key not in skipped}
    )


def field_changes(old: dict | None, new: dict | None) -> dict[str, dict[str, Any]]:
    """Top-level keys whose value differs, as ``{key: {"from": ..., "to": ...}}``."""
    old, new = old or {}, new or {}
    return {
        key: {"from": old.get(key), "to": new.get(key)}
        for key in sorted(set(old) | set(new))
        if old.get(key) != new.get(key)
    }


def record_audit_log(
    db: AsyncSession,
    *,
    actor_id,
    action: str,
    resource_type: str,
    resource_id: str,
    old_value: Any | None = None,
    new_value: Any | None = None,
) -> AuditLog:
    """Stage an audit row on *db* (committed with the caller's transaction) and emit it on the audit stream."""
    old_json = to_json_safe(old_value) if old_value is not None else None
    new_json = to_json_safe(new_value) if new_value is not None else None
    changes = None
    if isinstance(old_json, dict) or isinstance(new_json, dict):
        changes = field_changes(
            old_json if isinstance(old_json, dict) else None, new_json if isinstance(new_json, dict) else None
        ) or None
    summary = action
    if changes:
        keys = list(changes)
        summary = f"{action}: {', '.join(keys[:_SUMMARY_FIELDS])}{'...' if len(keys) > _SUMMARY_FIELDS else ''}"

    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id),
        old_value=old_json,
        new_value=new_json,
        changes=changes,
        summary=summary[:500],
    )
    db.add(entry)
    audit_logger.info(
        summary,
        extra={"action": action, "resource_type": resource_type, "resource_id": str(resource_id), "actor_id": str(actor_id)},
    )
    return entry
