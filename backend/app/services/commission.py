"""Commission calculation and per-restaurant commission rate management."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.restaurant import Restaurant
from app.models.shared import quantize_money
from app.repositories.restaurant_repository import RestaurantRepository
from app.services.audit_service import AuditService

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class CommissionBreakdown:
    commission: Decimal
    net: Decimal


def compute_commission(gross: Decimal, rate_percent: Decimal) -> CommissionBreakdown:
    """Split a gross tip into platform commission and recipient net.

    Both halves are rounded to cents half up; ``net`` is derived from the
    rounded commission so the two always add back to ``gross``.
    """
    commission = quantize_money(gross * rate_percent / HUNDRED)
    net = quantize_money(gross - commission)
    return CommissionBreakdown(commission=commission, net=net)


class CommissionService:
    """Read and change a restaurant's commission rate."""

    def __init__(self, db: Session):
        self.db = db
        self.restaurant_repo = RestaurantRepository(db)
        self.audit_service = AuditService(db)

    @staticmethod
    def rate_for(restaurant: Restaurant) -> Decimal:
        if restaurant.commission_rate is None:
            return settings.DEFAULT_COMMISSION_RATE
        return Decimal(str(restaurant.commission_rate))

    def get_rate(self, restaurant_id: UUID) -> Decimal:
        restaurant = self.restaurant_repo.get_by_id(restaurant_id)
        if not restaurant:
            raise ValueError(f"Restaurant {restaurant_id} not found")
        return self.rate_for(restaurant)

    def update_rate(
        self,
        restaurant_id: UUID,
        new_rate: Decimal,
        changed_by: str | None = None,
        reason: str | None = None,
    ) -> Decimal:
        """Change the rate applied to tips settled from now on."""
        if new_rate < 0 or new_rate > settings.MAX_COMMISSION_RATE:
            raise ValueError(
                f"Commission rate must be between 0 and {settings.MAX_COMMISSION_RATE}"
            )
        if new_rate.as_tuple().exponent < -2:  # type: ignore[operator]
            raise ValueError("Commission rate can have at most 2 decimal places")

        restaurant = self.restaurant_repo.get_by_id(restaurant_id)
        if not restaurant:
            raise ValueError(f"Restaurant {restaurant_id} not found")

        old_rate = self.rate_for(restaurant)
        self.restaurant_repo.set_commission_rate(restaurant, new_rate)
        self.audit_service.log_event(
            resource_type="restaurant",
            resource_id=restaurant.id,  # type: ignore[arg-type]
            restaurant_id=restaurant.id,  # type: ignore[arg-type]
            action="commission_rate_changed",
            changes={"commission_rate": {"old": str(old_rate), "new": str(new_rate)}},
            actor_type="user" if changed_by else "system",
            actor_id=changed_by,
            metadata={"reason": reason} if reason else None,
        )
        logger.info(
            "Commission rate for restaurant %s changed from %s to %s",
            restaurant_id,
            old_rate,
            new_rate,
        )
        return new_rate
