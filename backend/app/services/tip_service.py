"""Tip intake."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.tip import Tip, TipStatus, TipType
from app.repositories.restaurant_repository import RestaurantRepository
from app.repositories.tip_repository import TipRepository
from app.repositories.waiter_repository import WaiterRepository
from app.schemas.tip import TipCreate
from app.services.commission import CommissionService, compute_commission

logger = logging.getLogger(__name__)


class TipService:
    def __init__(self, db: Session):
        self.db = db
        self.tip_repo = TipRepository(db)
        self.restaurant_repo = RestaurantRepository(db)
        self.waiter_repo = WaiterRepository(db)

    def create_tip(self, restaurant_id: UUID, data: TipCreate) -> Tip:
        """Record a pending tip before its payment settles.

        Commission is computed at the intake rate for display; settlement
        recomputes it with the rate in force when the payment confirms.
        """
        restaurant = self.restaurant_repo.get_by_id(restaurant_id)
        if not restaurant:
            raise ValueError(f"Restaurant {restaurant_id} not found")
        if not restaurant.is_active:
            raise ValueError(f"Restaurant {restaurant_id} is not accepting tips")

        if data.waiter_id is not None:
            waiter = self.waiter_repo.get_by_id(data.waiter_id, restaurant_id)
            if not waiter or not waiter.is_active:
                raise ValueError(f"Waiter {data.waiter_id} not found")
            tip_type = TipType.WAITER
        else:
            tip_type = TipType.RESTAURANT

        if data.correlation_id and self.tip_repo.get_by_correlation_id(data.correlation_id):
            raise ValueError(f"Tip with correlation id {data.correlation_id} already exists")

        breakdown = compute_commission(data.amount, CommissionService.rate_for(restaurant))
        tip = self.tip_repo.create(
            restaurant_id=restaurant_id,
            waiter_id=data.waiter_id,
            table_id=data.table_id,
            amount=data.amount,
            commission_amount=breakdown.commission,
            net_amount=breakdown.net,
            tip_type=tip_type.value,
            payment_method=data.payment_method.value,
            payer_phone=data.payer_phone,
            payment_status=TipStatus.PENDING.value,
            correlation_id=data.correlation_id,
            settlement_metadata={},
        )
        logger.info("Recorded %s tip %s for restaurant %s", tip_type.value, tip.id, restaurant_id)
        return tip
