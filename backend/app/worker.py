import logging
from datetime import UTC, datetime
from typing import Any

from arq import cron

from app.core.database import SessionLocal
from app.services.disbursement_service import DisbursementOrchestrator
from app.services.notification_service import PayoutNotificationScheduler
from app.services.payout_service import PayoutAggregator
from app.tasks import redis_settings

logger = logging.getLogger(__name__)


async def generate_monthly_payouts_task(ctx: dict[str, Any], month: str | None = None) -> int:
    """Background task: generate payouts for every active restaurant.

    Runs on the first of each month for the month that just closed.
    Restaurants already generated for the month are skipped, so a rerun
    after a partial failure only fills in the missing restaurants.

    Returns:
        Number of payouts created.
    """
    db = SessionLocal()
    try:
        result = PayoutAggregator(db).generate_for_all_restaurants(month)
        if result.errors:
            logger.warning(
                "Monthly generation for %s finished with %d error(s)", result.month, len(result.errors)
            )
        logger.info(
            "Generated %d payouts for %s across %d restaurants",
            result.total_payouts,
            result.month,
            result.processed_restaurants,
        )
        return result.total_payouts
    finally:
        db.close()


async def process_pending_payouts_task(ctx: dict[str, Any]) -> int:
    """Background task: submit every pending payout to its disbursement rail.

    Returns:
        Number of payouts accepted by a rail.
    """
    db = SessionLocal()
    try:
        result = DisbursementOrchestrator(db).process(actor_id="worker")
        if result.processed > 0 or result.failed > 0:
            logger.info(
                "Disbursement run: %d submitted, %d failed", result.processed, result.failed
            )
        return result.processed
    finally:
        db.close()


async def queue_upcoming_notifications_task(ctx: dict[str, Any]) -> int:
    """Background task: queue upcoming payout notices due today.

    Runs daily.
    """
    db = SessionLocal()
    try:
        result = PayoutNotificationScheduler(db).queue_upcoming(datetime.now(UTC).date())
        if result.queued > 0:
            logger.info("Queued %d upcoming payout notices", result.queued)
        return result.queued
    finally:
        db.close()


async def reconcile_stale_payouts_task(ctx: dict[str, Any]) -> int:
    """Background task: resolve payouts stuck in processing.

    Runs hourly.
    """
    db = SessionLocal()
    try:
        result = DisbursementOrchestrator(db).reconcile_stale()
        if result.needs_review:
            logger.warning(
                "%d stale payouts need operator review: %s",
                result.needs_review,
                ", ".join(str(payout_id) for payout_id in result.review_payout_ids),
            )
        return result.completed + result.failed
    finally:
        db.close()


class WorkerSettings:
    functions = [
        generate_monthly_payouts_task,
        process_pending_payouts_task,
        queue_upcoming_notifications_task,
        reconcile_stale_payouts_task,
    ]
    cron_jobs = [
        cron(generate_monthly_payouts_task, day=1, hour=0, minute=5),  # first of the month
        cron(process_pending_payouts_task, day=1, hour=1, minute=0),
        cron(queue_upcoming_notifications_task, hour=8, minute=0),  # daily
        cron(reconcile_stale_payouts_task, minute={30}),  # hourly
    ]
    redis_settings = redis_settings
