"""Restaurant repository for data access."""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.restaurant import Restaurant


class RestaurantRepository:
    """Repository for Restaurant model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, restaurant_id: UUID) -> Restaurant | None:
        return self.db.query(Restaurant).filter(Restaurant.id == restaurant_id).first()

    def get_active(self) -> list[Restaurant]:
        """Get all active restaurants, oldest first."""
        return (
            self.db.query(Restaurant)
            .filter(Restaurant.is_active == True)  # noqa: E712
            .order_by(Restaurant.created_at.asc())
            .all()
        )

    def create(self, name: str, **fields: object) -> Restaurant:
        restaurant = Restaurant(name=name, **fields)
        self.db.add(restaurant)
        self.db.commit()
        self.db.refresh(restaurant)
        return restaurant

    def set_commission_rate(self, restaurant: Restaurant, rate: Decimal) -> Restaurant:
        restaurant.commission_rate = rate  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(restaurant)
        return restaurant

    def update_payout_schedule(
        self,
        restaurant: Restaurant,
        enabled: bool | None = None,
        payout_day: int | None = None,
        notification_days: int | None = None,
    ) -> Restaurant:
        if enabled is not None:
            restaurant.payout_schedule_enabled = enabled  # type: ignore[assignment]
        if payout_day is not None:
            restaurant.payout_schedule_day = payout_day  # type: ignore[assignment]
        if notification_days is not None:
            restaurant.payout_notification_days = notification_days  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(restaurant)
        return restaurant
