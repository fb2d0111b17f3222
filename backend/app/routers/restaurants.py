"""Restaurant-scoped endpoints: tips, distribution, commission, bank accounts, payouts."""

from datetime import UTC, date, datetime, time
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.payout import PayoutStatus
from app.models.restaurant import Restaurant
from app.models.tip import TipStatus
from app.repositories.bank_account_repository import BankAccountRepository
from app.repositories.payout_repository import PayoutRepository
from app.repositories.restaurant_repository import RestaurantRepository
from app.repositories.tip_repository import TipRepository
from app.schemas.bank_account import BankAccountCreate, BankAccountResponse, BankAccountUpdate
from app.schemas.distribution import (
    DistributionGroupResponse,
    DistributionGroupsUpdate,
    DistributionPreview,
    DistributionSummaryItem,
    DistributionValidationResult,
)
from app.schemas.payout import (
    GroupLedgerComparison,
    MonthlyPayoutSummary,
    PayoutCalculation,
    PayoutGenerationResult,
    PayoutResponse,
)
from app.schemas.restaurant import (
    CommissionRateResponse,
    CommissionRateUpdate,
    PayoutScheduleResponse,
    PayoutScheduleUpdate,
)
from app.schemas.tip import TipCreate, TipResponse
from app.services.audit_service import AuditService
from app.services.commission import CommissionService
from app.services.distribution_service import DistributionService, validate_groups
from app.services.errors import DistributionValidationError, PayoutsAlreadyGeneratedError
from app.services.payout_service import PayoutAggregator, parse_month
from app.services.tip_service import TipService

router = APIRouter()


def _get_restaurant(restaurant_id: UUID, db: Session) -> Restaurant:
    restaurant = RestaurantRepository(db).get_by_id(restaurant_id)
    if not restaurant:
        raise HTTPException(status_code=404, detail="Restaurant not found")
    return restaurant


# Tips


@router.post("/{restaurant_id}/tips", response_model=TipResponse, status_code=201)
async def create_tip(
    restaurant_id: UUID,
    data: TipCreate,
    db: Session = Depends(get_db),
) -> TipResponse:
    """Record a tip at intake; it stays pending until its payment settles."""
    _get_restaurant(restaurant_id, db)
    try:
        tip = TipService(db).create_tip(restaurant_id, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return TipResponse.model_validate(tip)


@router.get("/{restaurant_id}/tips", response_model=list[TipResponse])
async def list_tips(
    restaurant_id: UUID,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    status: TipStatus | None = None,
    waiter_id: UUID | None = None,
    db: Session = Depends(get_db),
) -> list[TipResponse]:
    _get_restaurant(restaurant_id, db)
    tips = TipRepository(db).get_all(
        restaurant_id, skip=skip, limit=limit, status=status, waiter_id=waiter_id
    )
    return [TipResponse.model_validate(t) for t in tips]


# Distribution


@router.get("/{restaurant_id}/distribution", response_model=list[DistributionGroupResponse])
async def get_distribution_groups(
    restaurant_id: UUID,
    db: Session = Depends(get_db),
) -> list[DistributionGroupResponse]:
    _get_restaurant(restaurant_id, db)
    groups = DistributionService(db).get_groups(restaurant_id)
    return [DistributionGroupResponse.model_validate(g) for g in groups]


@router.put("/{restaurant_id}/distribution", response_model=list[DistributionGroupResponse])
async def update_distribution_groups(
    restaurant_id: UUID,
    data: DistributionGroupsUpdate,
    db: Session = Depends(get_db),
) -> list[DistributionGroupResponse]:
    """Replace the restaurant's groups; percentages must total 100%."""
    _get_restaurant(restaurant_id, db)
    service = DistributionService(db)
    old = {str(g.group_name): str(g.percentage) for g in service.get_groups(restaurant_id)}
    try:
        groups = service.update_groups(restaurant_id, data.groups)
    except DistributionValidationError as e:
        raise HTTPException(status_code=400, detail={"errors": e.errors}) from None
    AuditService(db).log_update(
        resource_type="distribution_groups",
        resource_id=restaurant_id,
        restaurant_id=restaurant_id,
        actor_type="user",
        old_data=old,
        new_data={str(g.group_name): str(g.percentage) for g in groups},
    )
    return [DistributionGroupResponse.model_validate(g) for g in groups]


@router.post(
    "/{restaurant_id}/distribution/validate", response_model=DistributionValidationResult
)
async def validate_distribution_groups(
    restaurant_id: UUID,
    data: DistributionGroupsUpdate,
    db: Session = Depends(get_db),
) -> DistributionValidationResult:
    _get_restaurant(restaurant_id, db)
    return validate_groups(data.groups)


@router.get("/{restaurant_id}/distribution/preview", response_model=DistributionPreview)
async def preview_distribution(
    restaurant_id: UUID,
    amount: Decimal = Query(gt=0),
    db: Session = Depends(get_db),
) -> DistributionPreview:
    _get_restaurant(restaurant_id, db)
    return DistributionService(db).calculate_distribution(restaurant_id, amount)


@router.get(
    "/{restaurant_id}/distribution/summary", response_model=list[DistributionSummaryItem]
)
async def get_distribution_summary(
    restaurant_id: UUID,
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
) -> list[DistributionSummaryItem]:
    """Per-group ledger totals for tips created between the dates (inclusive)."""
    _get_restaurant(restaurant_id, db)
    start = datetime.combine(start_date, time.min, tzinfo=UTC) if start_date else None
    end = datetime.combine(end_date, time.max, tzinfo=UTC) if end_date else None
    return DistributionService(db).get_summary(restaurant_id, start, end)


# Commission


@router.get("/{restaurant_id}/commission", response_model=CommissionRateResponse)
async def get_commission_rate(
    restaurant_id: UUID,
    db: Session = Depends(get_db),
) -> CommissionRateResponse:
    restaurant = _get_restaurant(restaurant_id, db)
    return CommissionRateResponse(
        restaurant_id=restaurant_id, commission_rate=CommissionService.rate_for(restaurant)
    )


@router.put("/{restaurant_id}/commission", response_model=CommissionRateResponse)
async def update_commission_rate(
    restaurant_id: UUID,
    data: CommissionRateUpdate,
    db: Session = Depends(get_db),
) -> CommissionRateResponse:
    """Change the rate applied to tips that settle from now on."""
    _get_restaurant(restaurant_id, db)
    try:
        rate = CommissionService(db).update_rate(
            restaurant_id, data.commission_rate, changed_by=data.changed_by, reason=data.reason
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return CommissionRateResponse(restaurant_id=restaurant_id, commission_rate=rate)


# Payout schedule


def _schedule_response(restaurant: Restaurant) -> PayoutScheduleResponse:
    return PayoutScheduleResponse(
        restaurant_id=restaurant.id,  # type: ignore[arg-type]
        enabled=bool(restaurant.payout_schedule_enabled),
        payout_day=restaurant.payout_schedule_day,  # type: ignore[arg-type]
        notification_days=restaurant.payout_notification_days,  # type: ignore[arg-type]
    )


@router.get("/{restaurant_id}/payout-schedule", response_model=PayoutScheduleResponse)
async def get_payout_schedule(
    restaurant_id: UUID,
    db: Session = Depends(get_db),
) -> PayoutScheduleResponse:
    return _schedule_response(_get_restaurant(restaurant_id, db))


@router.put("/{restaurant_id}/payout-schedule", response_model=PayoutScheduleResponse)
async def update_payout_schedule(
    restaurant_id: UUID,
    data: PayoutScheduleUpdate,
    db: Session = Depends(get_db),
) -> PayoutScheduleResponse:
    restaurant = _get_restaurant(restaurant_id, db)
    old = _schedule_response(restaurant).model_dump(mode="json")
    restaurant = RestaurantRepository(db).update_payout_schedule(
        restaurant,
        enabled=data.enabled,
        payout_day=data.payout_day,
        notification_days=data.notification_days,
    )
    response = _schedule_response(restaurant)
    AuditService(db).log_update(
        resource_type="restaurant",
        resource_id=restaurant_id,
        restaurant_id=restaurant_id,
        actor_type="user",
        old_data=old,
        new_data=response.model_dump(mode="json"),
    )
    return response


# Bank accounts


@router.get("/{restaurant_id}/bank-accounts", response_model=list[BankAccountResponse])
async def list_bank_accounts(
    restaurant_id: UUID,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
) -> list[BankAccountResponse]:
    _get_restaurant(restaurant_id, db)
    accounts = BankAccountRepository(db).get_all(restaurant_id, include_inactive=include_inactive)
    return [BankAccountResponse.model_validate(a) for a in accounts]


@router.post(
    "/{restaurant_id}/bank-accounts", response_model=BankAccountResponse, status_code=201
)
async def create_bank_account(
    restaurant_id: UUID,
    data: BankAccountCreate,
    db: Session = Depends(get_db),
) -> BankAccountResponse:
    _get_restaurant(restaurant_id, db)
    repo = BankAccountRepository(db)
    if repo.get_by_group(restaurant_id, data.group_name):
        raise HTTPException(
            status_code=409,
            detail=f"Bank account already exists for group {data.group_name}",
        )
    try:
        account = repo.create(restaurant_id, data)
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=409,
            detail=f"Bank account already exists for group {data.group_name}",
        ) from None
    AuditService(db).log_create(
        resource_type="bank_account",
        resource_id=account.id,  # type: ignore[arg-type]
        restaurant_id=restaurant_id,
        actor_type="user",
        data={"group_name": data.group_name, "bank_code": data.bank_code},
    )
    return BankAccountResponse.model_validate(account)


@router.patch(
    "/{restaurant_id}/bank-accounts/{account_id}", response_model=BankAccountResponse
)
async def update_bank_account(
    restaurant_id: UUID,
    account_id: UUID,
    data: BankAccountUpdate,
    db: Session = Depends(get_db),
) -> BankAccountResponse:
    repo = BankAccountRepository(db)
    account = repo.get_by_id(account_id, restaurant_id)
    if not account:
        raise HTTPException(status_code=404, detail="Bank account not found")
    account = repo.update(account, data)
    return BankAccountResponse.model_validate(account)


@router.delete("/{restaurant_id}/bank-accounts/{account_id}", status_code=204)
async def delete_bank_account(
    restaurant_id: UUID,
    account_id: UUID,
    db: Session = Depends(get_db),
) -> None:
    repo = BankAccountRepository(db)
    account = repo.get_by_id(account_id, restaurant_id)
    if not account:
        raise HTTPException(status_code=404, detail="Bank account not found")
    repo.deactivate(account)


# Payouts


@router.get("/{restaurant_id}/payouts/calculate", response_model=PayoutCalculation)
async def calculate_payouts(
    restaurant_id: UUID,
    month: str = Query(..., description="YYYY-MM"),
    db: Session = Depends(get_db),
) -> PayoutCalculation:
    """Preview a month's payouts without creating them."""
    _get_restaurant(restaurant_id, db)
    try:
        return PayoutAggregator(db).calculate(restaurant_id, month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.post("/{restaurant_id}/payouts/generate", response_model=PayoutGenerationResult)
async def generate_payouts(
    restaurant_id: UUID,
    month: str = Query(..., description="YYYY-MM"),
    db: Session = Depends(get_db),
) -> PayoutGenerationResult:
    _get_restaurant(restaurant_id, db)
    try:
        return PayoutAggregator(db).generate(restaurant_id, month)
    except PayoutsAlreadyGeneratedError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get("/{restaurant_id}/payouts", response_model=list[PayoutResponse])
async def list_payouts(
    restaurant_id: UUID,
    month: str | None = Query(default=None, description="YYYY-MM"),
    status: PayoutStatus | None = None,
    order_by: str | None = Query(default=None, description="field:direction, e.g. amount:desc"),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[PayoutResponse]:
    _get_restaurant(restaurant_id, db)
    try:
        payout_month = parse_month(month) if month else None
        payouts = PayoutRepository(db).get_all(
            restaurant_id,
            payout_month=payout_month,
            status=status,
            skip=skip,
            limit=limit,
            order_by=order_by,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return [PayoutResponse.model_validate(p) for p in payouts]


@router.get("/{restaurant_id}/payouts/summary", response_model=MonthlyPayoutSummary)
async def get_payout_summary(
    restaurant_id: UUID,
    month: str = Query(..., description="YYYY-MM"),
    db: Session = Depends(get_db),
) -> MonthlyPayoutSummary:
    _get_restaurant(restaurant_id, db)
    try:
        return PayoutAggregator(db).monthly_summary(restaurant_id, month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


@router.get(
    "/{restaurant_id}/payouts/ledger-comparison", response_model=list[GroupLedgerComparison]
)
async def compare_group_ledger(
    restaurant_id: UUID,
    month: str = Query(..., description="YYYY-MM"),
    db: Session = Depends(get_db),
) -> list[GroupLedgerComparison]:
    """Recomputed group shares against the per-tip distribution ledger."""
    _get_restaurant(restaurant_id, db)
    try:
        return PayoutAggregator(db).compare_group_ledger(restaurant_id, month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
