"""Tip model - a single gratuity and its settlement lifecycle."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, String, func

from app.core.database import Base
from app.models.shared import Money, UUIDType, generate_uuid, utc_now


class TipStatus(str, Enum):
    """Tip payment status.

    ``pending`` and ``processing`` are the only states a tip can leave.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"


OPEN_TIP_STATUSES = (TipStatus.PENDING.value, TipStatus.PROCESSING.value)


class TipType(str, Enum):
    WAITER = "waiter"
    RESTAURANT = "restaurant"


class PaymentMethod(str, Enum):
    MOBILE_MONEY = "mobile_money"
    CARD = "card"


class Tip(Base):
    """Tip model - owned by its restaurant, mutated only by settlement."""

    __tablename__ = "tips"
    __table_args__ = (
        Index("ix_tips_restaurant_status_created", "restaurant_id", "payment_status", "created_at"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    restaurant_id = Column(
        UUIDType, ForeignKey("restaurants.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    waiter_id = Column(
        UUIDType, ForeignKey("waiters.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    table_id = Column(String(100), nullable=True)

    # Amounts
    amount = Column(Money(), nullable=False)
    commission_amount = Column(Money(), nullable=False, default=0)
    net_amount = Column(Money(), nullable=False, default=0)

    tip_type = Column(String(20), nullable=False, default=TipType.WAITER.value)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.MOBILE_MONEY.value)
    payer_phone = Column(String(20), nullable=True)
    payment_status = Column(String(20), nullable=False, default=TipStatus.PENDING.value)

    # Provider checkout/reference id used to correlate settlement callbacks
    correlation_id = Column(String(255), nullable=True, unique=True, index=True)
    receipt_id = Column(String(255), nullable=True)
    settlement_metadata = Column(JSON, nullable=True, default=dict)

    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), onupdate=utc_now
    )
    settled_at = Column(DateTime(timezone=True), nullable=True)
