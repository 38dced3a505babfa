"""Periodic job — sweep expired delegation grants."""

from __future__ import annotations

import logging

from reflets.core.database import async_session_factory
from reflets.services.delegation import cleanup_expired_delegations

logger = logging.getLogger(__name__)


async def cleanup_delegations(ctx: dict) -> dict:
    """Cron job: delete expired delegation grants and report how many went."""
    async with async_session_factory() as session:
        result = await cleanup_expired_delegations(session)

    if not result.ok:
        logger.error("Delegation cleanup sweep failed: %s", result.error)
        return {"deleted": 0, "error": str(result.error)}

    deleted = result.value.deleted_count
    if deleted == 0:
        logger.info("Delegation cleanup: nothing to delete")
    return {"deleted": deleted}
