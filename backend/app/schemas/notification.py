"""Schemas for payout notification intents."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class PayoutNotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    restaurant_id: UUID
    payout_id: UUID | None = None
    tip_id: UUID | None = None
    kind: str
    recipient: str | None = None
    recipient_name: str | None = None
    subject: str
    message: str
    status: str
    created_at: datetime | None = None


class UpcomingNoticeRequest(BaseModel):
    today: date | None = None


class UpcomingNoticeResult(BaseModel):
    date: date
    queued: int
    already_queued: int
