"""Restaurant settings schemas (commission and payout schedule)."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class CommissionRateUpdate(BaseModel):
    commission_rate: Decimal
    reason: str | None = Field(default=None, max_length=500)
    changed_by: str | None = Field(default=None, max_length=255)


class CommissionRateResponse(BaseModel):
    restaurant_id: UUID
    commission_rate: Decimal


class PayoutScheduleUpdate(BaseModel):
    enabled: bool | None = None
    payout_day: int | None = Field(default=None, ge=1, le=28)
    notification_days: int | None = Field(default=None, ge=0, le=7)


class PayoutScheduleResponse(BaseModel):
    restaurant_id: UUID
    enabled: bool
    payout_day: int | None = None
    notification_days: int
