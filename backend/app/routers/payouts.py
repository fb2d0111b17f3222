"""Operator batch endpoints for payout generation, disbursement and notices."""

from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.repositories.notification_repository import NotificationRepository
from app.schemas.notification import (
    PayoutNotificationResponse,
    UpcomingNoticeRequest,
    UpcomingNoticeResult,
)
from app.schemas.payout import (
    DisbursementResult,
    MonthlyGenerationRequest,
    MonthlyGenerationResult,
    PayoutProcessRequest,
    PayoutResolveRequest,
    PayoutResponse,
    ReconcileRequest,
    ReconcileResult,
)
from app.services.disbursement_service import DisbursementOrchestrator
from app.services.errors import PayoutNotResolvableError
from app.services.notification_service import PayoutNotificationScheduler
from app.services.payout_service import PayoutAggregator

router = APIRouter()


@router.post("/process", response_model=DisbursementResult)
async def process_payouts(
    data: PayoutProcessRequest,
    db: Session = Depends(get_db),
) -> DisbursementResult:
    """Submit pending payouts (``process``) or resubmit failed ones (``retry``).

    With ``dry_run`` the plan is returned and nothing is changed.
    """
    orchestrator = DisbursementOrchestrator(db)
    try:
        if data.action == "retry":
            return orchestrator.retry(
                payout_ids=data.payout_ids,
                restaurant_id=data.restaurant_id,
                month=data.month,
                dry_run=data.dry_run,
                actor_id="operator",
            )
        return orchestrator.process(
            restaurant_id=data.restaurant_id,
            month=data.month,
            payout_ids=data.payout_ids,
            dry_run=data.dry_run,
            actor_id="operator",
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post("/generate-monthly", response_model=MonthlyGenerationResult)
async def generate_monthly_payouts(
    data: MonthlyGenerationRequest,
    db: Session = Depends(get_db),
) -> MonthlyGenerationResult:
    """Generate a month's payouts for every active restaurant."""
    try:
        return PayoutAggregator(db).generate_for_all_restaurants(data.month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post("/reconcile", response_model=ReconcileResult)
async def reconcile_stale_payouts(
    data: ReconcileRequest,
    db: Session = Depends(get_db),
) -> ReconcileResult:
    return DisbursementOrchestrator(db).reconcile_stale(data.older_than_minutes)


@router.post("/{payout_id}/resolve", response_model=PayoutResponse)
async def resolve_payout(
    payout_id: UUID,
    data: PayoutResolveRequest,
    db: Session = Depends(get_db),
) -> PayoutResponse:
    """Settle a processing payout that reconciliation reported for review."""
    try:
        payout = DisbursementOrchestrator(db).resolve(
            payout_id,
            data.status,
            provider_transaction_id=data.provider_transaction_id,
            reason=data.reason,
            actor_id="operator",
        )
    except PayoutNotResolvableError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    if payout is None:
        raise HTTPException(status_code=404, detail="Payout not found")
    return PayoutResponse.model_validate(payout)


@router.post("/notifications/upcoming", response_model=UpcomingNoticeResult)
async def queue_upcoming_notifications(
    data: UpcomingNoticeRequest,
    restaurant_id: UUID | None = None,
    db: Session = Depends(get_db),
) -> UpcomingNoticeResult:
    today = data.today or datetime.now(UTC).date()
    result = PayoutNotificationScheduler(db).queue_upcoming(today, restaurant_id=restaurant_id)
    return UpcomingNoticeResult(
        date=result.date, queued=result.queued, already_queued=result.already_queued
    )


@router.get("/notifications", response_model=list[PayoutNotificationResponse])
async def list_notifications(
    restaurant_id: UUID | None = None,
    kind: str | None = None,
    payout_id: UUID | None = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[PayoutNotificationResponse]:
    notifications = NotificationRepository(db).get_all(
        restaurant_id=restaurant_id, kind=kind, payout_id=payout_id, skip=skip, limit=limit
    )
    return [PayoutNotificationResponse.model_validate(n) for n in notifications]
