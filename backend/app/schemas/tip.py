"""Tip schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.tip import PaymentMethod


class TipCreate(BaseModel):
    """Schema for recording a tip at intake (before the payment settles)."""

    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    waiter_id: UUID | None = None
    table_id: str | None = Field(default=None, max_length=100)
    payment_method: PaymentMethod = PaymentMethod.MOBILE_MONEY
    payer_phone: str | None = Field(default=None, max_length=20)
    correlation_id: str | None = Field(default=None, max_length=255)


class TipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    restaurant_id: UUID
    waiter_id: UUID | None = None
    table_id: str | None = None
    amount: Decimal
    commission_amount: Decimal
    net_amount: Decimal
    tip_type: str
    payment_method: str
    payment_status: str
    correlation_id: str | None = None
    receipt_id: str | None = None
    settlement_metadata: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime
    settled_at: datetime | None = None
