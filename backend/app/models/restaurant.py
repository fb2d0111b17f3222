"""Restaurant model - the tenant that owns tips, groups and payouts."""

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid

DEFAULT_RESTAURANT_COMMISSION_RATE = 10


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone_number = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Platform commission as a percentage of each tip's gross amount
    commission_rate = Column(
        Numeric(5, 2), nullable=False, default=DEFAULT_RESTAURANT_COMMISSION_RATE
    )

    # Payout schedule
    payout_schedule_enabled = Column(Boolean, nullable=False, default=True)
    payout_schedule_day = Column(Integer, nullable=True)
    payout_notification_days = Column(Integer, nullable=False, default=3)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
