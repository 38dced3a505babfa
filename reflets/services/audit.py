"""Append-only audit trail. Writes are best-effort and never raise."""

from __future__ import annotations

import enum
import json
import logging
import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from reflets.models.audit_log import AuditAction, AuditEntry
from reflets.models.principal import ActorKind

logger = logging.getLogger(__name__)

_DETAILS_LEN = 10_000


def _sanitize_value(v: Any) -> Any:
    """Convert to a JSON-serializable value so details never fail to encode."""
    if v is None or isinstance(v, (str, int, float, bool)):
        return v
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, enum.Enum):
        return v.value
    if isinstance(v, uuid.UUID):
        return str(v)
    if isinstance(v, dict):
        return {str(k): _sanitize_value(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set, frozenset)):
        return [_sanitize_value(x) for x in v]
    return str(v)


def _encode_details(details: dict[str, Any] | None) -> str:
    encoded = json.dumps(_sanitize_value(details or {}))
    if len(encoded) > _DETAILS_LEN:
        return json.dumps({"_truncated": True, "keys": sorted(details or {})[:20]})
    return encoded


async def record_event(
    session: AsyncSession,
    action: AuditAction,
    actor_kind: ActorKind,
    actor_id: uuid.UUID | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Append one audit entry and commit it.

    Callers commit their own work first; a failed audit write is rolled
    back and logged, and the primary operation still succeeds.
    """
    try:
        session.add(
            AuditEntry(
                action=action,
                actor_kind=actor_kind,
                actor_id=actor_id,
                details=_encode_details(details),
            )
        )
        await session.commit()
    except Exception:
        logger.exception("Audit write failed for action %s", action)
        try:
            await session.rollback()
        except Exception:
            logger.warning("Rollback after failed audit write also failed")
