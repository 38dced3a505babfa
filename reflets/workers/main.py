"""ARQ worker entrypoint."""

from arq import cron
from arq.connections import RedisSettings

from reflets.core.config import get_settings
from reflets.workers.cleanup import cleanup_delegations


def _redis_settings() -> RedisSettings:
    """Parse REDIS_URL into ARQ RedisSettings."""
    return RedisSettings.from_dsn(get_settings().redis_url)


def _cleanup_minutes() -> set[int]:
    raw = get_settings().delegation_cleanup_minutes
    return {int(m) for m in raw.split(",") if m.strip()}


async def startup(ctx: dict) -> None:
    """Called when the worker starts."""
    from reflets.core.database import init_db
    await init_db()


async def shutdown(ctx: dict) -> None:
    """Called when the worker shuts down."""


class WorkerSettings:
    """ARQ worker configuration."""
    functions = [cleanup_delegations]
    cron_jobs = [
        cron(cleanup_delegations, minute=_cleanup_minutes(), run_at_startup=True),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = _redis_settings()
    max_jobs = 4
    job_timeout = 60


if __name__ == "__main__":
    from arq import run_worker
    run_worker(WorkerSettings)  # type: ignore[arg-type]
