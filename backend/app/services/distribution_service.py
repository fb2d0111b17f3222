"""Distribution engine: splits restaurant-wide tips across configured groups."""

import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.distribution_group import DistributionGroup
from app.models.distribution_record import DistributionRecord
from app.models.shared import quantize_money
from app.models.tip import Tip, TipStatus, TipType
from app.repositories.distribution_group_repository import DistributionGroupRepository
from app.repositories.distribution_record_repository import DistributionRecordRepository
from app.schemas.distribution import (
    DistributionGroupConfig,
    DistributionPreview,
    DistributionShare,
    DistributionSummaryItem,
    DistributionValidationResult,
)
from app.services.errors import DistributionValidationError

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
PERCENTAGE_TOLERANCE = Decimal("0.01")
MAX_GROUP_NAME_LENGTH = 50

DEFAULT_GROUPS: tuple[tuple[str, Decimal], ...] = (
    ("Waiters", Decimal("60")),
    ("Kitchen Staff", Decimal("20")),
    ("Cleaners", Decimal("10")),
    ("Management", Decimal("10")),
)


def default_groups() -> list[DistributionGroupConfig]:
    return [DistributionGroupConfig(group_name=name, percentage=pct) for name, pct in DEFAULT_GROUPS]


def validate_groups(groups: list[DistributionGroupConfig]) -> DistributionValidationResult:
    """Check a complete group set; every problem is reported, not just the first."""
    errors: list[str] = []
    if not groups:
        return DistributionValidationResult(
            is_valid=False,
            errors=["At least one distribution group is required"],
            total_percentage=Decimal("0"),
        )

    total = Decimal("0")
    for index, group in enumerate(groups, start=1):
        name = (group.group_name or "").strip()
        if not name:
            errors.append(f"Group {index}: Group name is required")
        elif len(name) > MAX_GROUP_NAME_LENGTH:
            errors.append(
                f"Group {index}: Group name must be {MAX_GROUP_NAME_LENGTH} characters or less"
            )

        pct = group.percentage
        if pct < 0:
            errors.append(f"Group {index}: Percentage cannot be negative")
        elif pct > HUNDRED:
            errors.append(f"Group {index}: Percentage cannot exceed 100%")
        elif pct != pct.quantize(Decimal("0.01")):
            errors.append(f"Group {index}: Percentage can have at most 2 decimal places")
        total += pct

    seen: set[str] = set()
    duplicates: list[str] = []
    for group in groups:
        key = (group.group_name or "").strip().lower()
        if key in seen and key not in duplicates:
            duplicates.append(key)
        seen.add(key)
    if duplicates:
        errors.append(f"Duplicate group names found: {', '.join(duplicates)}")

    total = quantize_money(total)
    if abs(total - HUNDRED) > PERCENTAGE_TOLERANCE:
        errors.append(f"Total percentage must equal 100% (currently {total}%)")

    return DistributionValidationResult(
        is_valid=not errors, errors=errors, total_percentage=total
    )


class DistributionService:
    """Configure distribution groups and split settled restaurant-wide tips."""

    def __init__(self, db: Session):
        self.db = db
        self.group_repo = DistributionGroupRepository(db)
        self.record_repo = DistributionRecordRepository(db)

    def get_groups(self, restaurant_id: UUID) -> list[DistributionGroup]:
        return self.group_repo.get_all(restaurant_id)

    def update_groups(
        self, restaurant_id: UUID, groups: list[DistributionGroupConfig]
    ) -> list[DistributionGroup]:
        """Validate and replace a restaurant's groups; nothing is written on error."""
        validation = validate_groups(groups)
        if not validation.is_valid:
            raise DistributionValidationError(validation.errors)
        return self.group_repo.replace_all(
            restaurant_id,
            [
                (g.group_name.strip(), g.percentage, g.recipient_account)
                for g in groups
            ],
        )

    def calculate_distribution(self, restaurant_id: UUID, amount: Decimal) -> DistributionPreview:
        """Preview how a net amount would be split with the current groups."""
        shares = [
            DistributionShare(
                group_name=g.group_name,  # type: ignore[arg-type]
                percentage=Decimal(str(g.percentage)),
                amount=quantize_money(amount * Decimal(str(g.percentage)) / HUNDRED),
            )
            for g in self.group_repo.get_all(restaurant_id)
        ]
        return DistributionPreview(
            distributions=shares,
            total_distributed=quantize_money(sum((s.amount for s in shares), Decimal("0"))),
        )

    def distribute(self, tip: Tip) -> list[DistributionRecord]:
        """Write one DistributionRecord per group for a completed restaurant-wide tip.

        Safe to call repeatedly: records already present for the tip are kept
        and returned as they are.
        """
        if tip.tip_type != TipType.RESTAURANT.value or tip.waiter_id is not None:
            return []
        if tip.payment_status != TipStatus.COMPLETED.value:
            raise ValueError(f"Tip {tip.id} is not completed")

        restaurant_id: UUID = tip.restaurant_id  # type: ignore[assignment]
        existing = self.record_repo.get_by_tip(tip.id, restaurant_id)  # type: ignore[arg-type]
        if existing:
            logger.info("Tip %s already has distributions, skipping", tip.id)
            return existing

        groups = self.group_repo.get_all(restaurant_id)
        if not groups:
            raise ValueError(f"Restaurant {restaurant_id} has no distribution groups")

        net = Decimal(str(tip.net_amount))
        for group in groups:
            pct = Decimal(str(group.percentage))
            self.record_repo.insert_if_absent(
                restaurant_id=restaurant_id,
                tip_id=tip.id,  # type: ignore[arg-type]
                group_name=group.group_name,  # type: ignore[arg-type]
                percentage=pct,
                amount=quantize_money(net * pct / HUNDRED),
            )
        self.record_repo.commit()
        return self.record_repo.get_by_tip(tip.id, restaurant_id)  # type: ignore[arg-type]

    def get_summary(
        self,
        restaurant_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[DistributionSummaryItem]:
        return [
            DistributionSummaryItem(group_name=name, tip_count=count, total_amount=quantize_money(total))
            for name, count, total in self.record_repo.sum_by_group(restaurant_id, start, end)
        ]
