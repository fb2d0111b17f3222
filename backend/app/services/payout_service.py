"""Monthly payout aggregation.

Turns a restaurant's completed tips into per-recipient payout obligations:
one payout per waiter and one per distribution group, for recipients whose
net balance meets the minimum payout amount.
"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.payout import PayoutStatus, RecipientType
from app.models.shared import quantize_money
from app.models.tip import Tip, TipType
from app.repositories.distribution_group_repository import DistributionGroupRepository
from app.repositories.distribution_record_repository import DistributionRecordRepository
from app.repositories.payout_repository import PayoutRepository
from app.repositories.restaurant_repository import RestaurantRepository
from app.repositories.tip_repository import TipRepository
from app.repositories.waiter_repository import WaiterRepository
from app.schemas.payout import (
    GroupLedgerComparison,
    GroupPayoutCalculation,
    MonthlyGenerationResult,
    MonthlyPayoutSummary,
    PayoutCalculation,
    PayoutGenerationResult,
    PayoutResponse,
    WaiterPayoutCalculation,
)
from app.services.audit_service import AuditService
from app.services.errors import InvalidMonthError, PayoutsAlreadyGeneratedError

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
ZERO = Decimal("0")
MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def parse_month(month: str) -> date:
    """Parse ``YYYY-MM`` into the first day of that month."""
    match = MONTH_PATTERN.match(month or "")
    if not match:
        raise InvalidMonthError(month)
    return date(int(match.group(1)), int(match.group(2)), 1)


def format_month(month: date) -> str:
    return month.strftime("%Y-%m")


def next_month(month: date) -> date:
    if month.month == 12:
        return date(month.year + 1, 1, 1)
    return date(month.year, month.month + 1, 1)


def previous_month(today: date) -> date:
    if today.month == 1:
        return date(today.year - 1, 12, 1)
    return date(today.year, today.month - 1, 1)


def month_start_datetime(month: date) -> datetime:
    return datetime(month.year, month.month, 1, tzinfo=UTC)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass
class _Totals:
    gross: Decimal = ZERO
    commission: Decimal = ZERO
    net: Decimal = ZERO
    count: int = 0
    first_created: datetime | None = None

    def add(self, tip: Tip) -> None:
        self.gross += Decimal(str(tip.amount))
        self.commission += Decimal(str(tip.commission_amount))
        self.net += Decimal(str(tip.net_amount))
        self.count += 1
        created = _as_utc(tip.created_at)  # type: ignore[arg-type]
        if self.first_created is None or created < self.first_created:
            self.first_created = created

    def period_start(self, default: date) -> date:
        if self.first_created is None:
            return default
        return self.first_created.date().replace(day=1)


@dataclass
class _Plan:
    calculation: PayoutCalculation
    rows: list[dict[str, Any]] = field(default_factory=list)


class PayoutAggregator:
    """Calculates and generates monthly payouts for a restaurant.

    With ``PAYOUT_CARRY_FORWARD`` enabled, each recipient's window runs from
    the month after their most recent payout to the end of the requested
    month, so balances below the minimum roll into the next payout. Without
    it the window is the calendar month alone.
    """

    def __init__(self, db: Session):
        self.db = db
        self.tip_repo = TipRepository(db)
        self.payout_repo = PayoutRepository(db)
        self.group_repo = DistributionGroupRepository(db)
        self.record_repo = DistributionRecordRepository(db)
        self.restaurant_repo = RestaurantRepository(db)
        self.waiter_repo = WaiterRepository(db)
        self.audit_service = AuditService(db)

    def _window_starts(
        self, restaurant_id: UUID, recipient_type: RecipientType, month_start: date
    ) -> tuple[dict[str, datetime | None], datetime | None]:
        """Per-recipient window starts plus the start for recipients never paid."""
        if not settings.PAYOUT_CARRY_FORWARD:
            return {}, month_start_datetime(month_start)
        last_paid = self.payout_repo.last_paid_months(restaurant_id, recipient_type)
        return (
            {key: month_start_datetime(next_month(paid)) for key, paid in last_paid.items()},
            None,
        )

    def _plan(self, restaurant_id: UUID, month_start: date) -> _Plan:
        restaurant = self.restaurant_repo.get_by_id(restaurant_id)
        if not restaurant:
            raise ValueError(f"Restaurant {restaurant_id} not found")

        end = month_start_datetime(next_month(month_start))
        minimum = settings.PAYOUT_MINIMUM_AMOUNT
        rows: list[dict[str, Any]] = []

        # Waiter payouts
        starts, default_start = self._window_starts(restaurant_id, RecipientType.WAITER, month_start)
        waiter_totals: dict[UUID, _Totals] = defaultdict(_Totals)
        for tip in self.tip_repo.get_completed(restaurant_id, TipType.WAITER, end, default_start):
            start = starts.get(str(tip.waiter_id), default_start)
            if start is not None and _as_utc(tip.created_at) < start:  # type: ignore[arg-type]
                continue
            waiter_totals[tip.waiter_id].add(tip)  # type: ignore[index]

        waiters = self.waiter_repo.get_by_ids(waiter_totals.keys(), restaurant_id)
        waiter_payouts: list[WaiterPayoutCalculation] = []
        for waiter_id, totals in waiter_totals.items():
            waiter = waiters.get(waiter_id)
            net = quantize_money(totals.net)
            period_start = totals.period_start(month_start)
            meets_minimum = net >= minimum
            waiter_payouts.append(
                WaiterPayoutCalculation(
                    waiter_id=waiter_id,
                    waiter_name=waiter.name if waiter else None,  # type: ignore[arg-type]
                    phone_number=waiter.phone_number if waiter else None,  # type: ignore[arg-type]
                    total_tips=quantize_money(totals.gross),
                    commission_amount=quantize_money(totals.commission),
                    net_amount=net,
                    tip_count=totals.count,
                    period_start=period_start,
                    meets_minimum=meets_minimum,
                )
            )
            if meets_minimum:
                rows.append(
                    {
                        "restaurant_id": restaurant_id,
                        "recipient_type": RecipientType.WAITER.value,
                        "waiter_id": waiter_id,
                        "recipient_key": str(waiter_id),
                        "amount": net,
                        "tip_count": totals.count,
                        "payout_month": month_start,
                        "period_start": period_start,
                        "status": PayoutStatus.PENDING.value,
                    }
                )

        # Group payouts: recomputed from the window's aggregate and the
        # current percentages, not summed from tip_distributions.
        starts, default_start = self._window_starts(restaurant_id, RecipientType.GROUP, month_start)
        restaurant_tips = self.tip_repo.get_completed(
            restaurant_id, TipType.RESTAURANT, end, default_start
        )
        group_payouts: list[GroupPayoutCalculation] = []
        for group in self.group_repo.get_all(restaurant_id):
            start = starts.get(str(group.group_name), default_start)
            totals = _Totals()
            for tip in restaurant_tips:
                if start is None or _as_utc(tip.created_at) >= start:  # type: ignore[arg-type]
                    totals.add(tip)
            pct = Decimal(str(group.percentage))
            net = quantize_money(totals.net * pct / HUNDRED)
            period_start = totals.period_start(month_start)
            meets_minimum = net >= minimum
            group_payouts.append(
                GroupPayoutCalculation(
                    group_name=group.group_name,  # type: ignore[arg-type]
                    percentage=pct,
                    total_tips=quantize_money(totals.gross * pct / HUNDRED),
                    commission_amount=quantize_money(totals.commission * pct / HUNDRED),
                    net_amount=net,
                    tip_count=totals.count,
                    period_start=period_start,
                    recipient_account=group.recipient_account,  # type: ignore[arg-type]
                    meets_minimum=meets_minimum,
                )
            )
            if meets_minimum:
                rows.append(
                    {
                        "restaurant_id": restaurant_id,
                        "recipient_type": RecipientType.GROUP.value,
                        "group_name": group.group_name,
                        "recipient_key": group.group_name,
                        "amount": net,
                        "tip_count": totals.count,
                        "payout_month": month_start,
                        "period_start": period_start,
                        "status": PayoutStatus.PENDING.value,
                    }
                )

        calculation = PayoutCalculation(
            restaurant_id=restaurant_id,
            month=format_month(month_start),
            waiter_payouts=waiter_payouts,
            group_payouts=group_payouts,
            total_amount=quantize_money(sum((row["amount"] for row in rows), ZERO)),
            commission_deducted=quantize_money(
                sum((w.commission_amount for w in waiter_payouts), ZERO)
                + sum((g.commission_amount for g in group_payouts), ZERO)
            ),
        )
        return _Plan(calculation=calculation, rows=rows)

    def calculate(self, restaurant_id: UUID, month: str) -> PayoutCalculation:
        """Preview a month's payouts without writing anything."""
        return self._plan(restaurant_id, parse_month(month)).calculation

    def _guard_not_generated(self, restaurant_id: UUID, month_start: date) -> None:
        if self.payout_repo.exists_for_month(restaurant_id, month_start):
            raise PayoutsAlreadyGeneratedError(restaurant_id, format_month(month_start))
        if settings.PAYOUT_CARRY_FORWARD:
            latest = self.payout_repo.latest_month(restaurant_id)
            if latest is not None and latest > month_start:
                raise PayoutsAlreadyGeneratedError(
                    restaurant_id, format_month(month_start), format_month(latest)
                )

    def generate(self, restaurant_id: UUID, month: str) -> PayoutGenerationResult:
        """Create the month's pending payouts; refuses if any already exist."""
        month_start = parse_month(month)
        self._guard_not_generated(restaurant_id, month_start)

        plan = self._plan(restaurant_id, month_start)
        created, errors = self.payout_repo.create_batch(plan.rows)
        for payout in created:
            self.audit_service.log_create(
                resource_type="payout",
                resource_id=payout.id,  # type: ignore[arg-type]
                restaurant_id=restaurant_id,
                data={
                    "recipient_type": payout.recipient_type,
                    "recipient_key": payout.recipient_key,
                    "amount": str(payout.amount),
                    "payout_month": format_month(month_start),
                },
            )

        total = quantize_money(sum((Decimal(str(p.amount)) for p in created), ZERO))
        if errors:
            logger.error(
                "Partial payout generation for restaurant %s month %s: %d created, %d failed",
                restaurant_id,
                format_month(month_start),
                len(created),
                len(errors),
            )
        else:
            logger.info(
                "Generated %d payouts totalling %s for restaurant %s month %s",
                len(created),
                total,
                restaurant_id,
                format_month(month_start),
            )
        return PayoutGenerationResult(
            success=not errors,
            restaurant_id=restaurant_id,
            month=format_month(month_start),
            payouts_created=len(created),
            total_amount=total,
            errors=errors,
            payouts=[PayoutResponse.model_validate(p) for p in created],
        )

    def generate_for_all_restaurants(self, month: str | None = None) -> MonthlyGenerationResult:
        """Generate a month (default: the previous one) for every active restaurant."""
        if month is None:
            month = format_month(previous_month(datetime.now(UTC).date()))
        month_start = parse_month(month)

        result = MonthlyGenerationResult(
            success=True,
            month=month,
            processed_restaurants=0,
            skipped_restaurants=0,
            total_payouts=0,
            total_amount=ZERO,
        )
        for restaurant in self.restaurant_repo.get_active():
            restaurant_id: UUID = restaurant.id  # type: ignore[assignment]
            if self.payout_repo.exists_for_month(restaurant_id, month_start):
                result.skipped_restaurants += 1
                continue
            try:
                generated = self.generate(restaurant_id, month)
            except PayoutsAlreadyGeneratedError:
                result.skipped_restaurants += 1
                continue
            except ValueError as exc:
                result.errors.append(f"Restaurant {restaurant_id}: {exc}")
                continue
            result.processed_restaurants += 1
            result.total_payouts += generated.payouts_created
            result.total_amount += generated.total_amount
            result.errors.extend(f"Restaurant {restaurant_id}: {e}" for e in generated.errors)

        result.success = not result.errors
        logger.info(
            "Monthly payouts for %s: %d restaurants processed, %d skipped, %d payouts",
            month,
            result.processed_restaurants,
            result.skipped_restaurants,
            result.total_payouts,
        )
        return result

    def monthly_summary(self, restaurant_id: UUID, month: str) -> MonthlyPayoutSummary:
        month_start = parse_month(month)
        payouts = self.payout_repo.get_all(restaurant_id, payout_month=month_start, limit=10_000)
        by_status: dict[str, int] = defaultdict(int)
        for payout in payouts:
            by_status[str(payout.status)] += 1
        return MonthlyPayoutSummary(
            month=month,
            total_payouts=len(payouts),
            total_amount=quantize_money(sum((Decimal(str(p.amount)) for p in payouts), ZERO)),
            waiter_payouts=sum(1 for p in payouts if p.recipient_type == RecipientType.WAITER.value),
            group_payouts=sum(1 for p in payouts if p.recipient_type == RecipientType.GROUP.value),
            pending_payouts=by_status[PayoutStatus.PENDING.value],
            processing_payouts=by_status[PayoutStatus.PROCESSING.value],
            completed_payouts=by_status[PayoutStatus.COMPLETED.value],
            failed_payouts=by_status[PayoutStatus.FAILED.value],
        )

    def compare_group_ledger(self, restaurant_id: UUID, month: str) -> list[GroupLedgerComparison]:
        """Compare recomputed group shares with the tip_distributions ledger.

        Both sides cover the calendar month only. They diverge when group
        percentages change during the month.
        """
        month_start = parse_month(month)
        start = month_start_datetime(month_start)
        end = month_start_datetime(next_month(month_start))

        total_net = ZERO
        for tip in self.tip_repo.get_completed(restaurant_id, TipType.RESTAURANT, end, start):
            total_net += Decimal(str(tip.net_amount))
        recomputed = {
            str(g.group_name): quantize_money(total_net * Decimal(str(g.percentage)) / HUNDRED)
            for g in self.group_repo.get_all(restaurant_id)
        }
        ledger = {
            name: quantize_money(total)
            for name, _count, total in self.record_repo.sum_by_group(restaurant_id, start, end)
        }

        comparisons = []
        for name in sorted(set(recomputed) | set(ledger)):
            recomputed_amount = recomputed.get(name, ZERO)
            ledger_amount = ledger.get(name, ZERO)
            comparisons.append(
                GroupLedgerComparison(
                    group_name=name,
                    recomputed_amount=recomputed_amount,
                    ledger_amount=ledger_amount,
                    difference=quantize_money(recomputed_amount - ledger_amount),
                )
            )
        return comparisons
