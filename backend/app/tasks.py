from typing import Any

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from arq.jobs import Job

from app.core.config import settings

# Redis connection settings
redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)


async def get_redis_pool() -> ArqRedis:
    """Get or create Redis pool for arq"""
    return await create_pool(redis_settings)


async def enqueue_task(task_name: str, *args: Any, **kwargs: Any) -> Job:
    """
    Enqueue a task to the arq worker.

    Args:
        task_name: Name of the task function
        *args: Positional arguments for the task
        **kwargs: Keyword arguments for the task

    Returns:
        Job object from arq
    """
    pool = await get_redis_pool()
    try:
        job = await pool.enqueue_job(task_name, *args, **kwargs)
        return job  # type: ignore[return-value]
    finally:
        await pool.close()


async def enqueue_monthly_generation(month: str | None = None) -> Job:
    """Enqueue payout generation for ``month`` (defaults to last month)."""
    return await enqueue_task("generate_monthly_payouts_task", month)


async def enqueue_disbursement() -> Job:
    """Enqueue a disbursement run over all pending payouts."""
    return await enqueue_task("process_pending_payouts_task")


async def enqueue_stale_reconciliation() -> Job:
    return await enqueue_task("reconcile_stale_payouts_task")
