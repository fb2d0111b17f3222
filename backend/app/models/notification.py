"""PayoutNotification model - notification intents for the messaging collaborator."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class NotificationKind(str, Enum):
    UPCOMING = "upcoming"
    PROCESSED = "processed"
    FAILED = "failed"
    TIP_CONFIRMED = "tip_confirmed"


class PayoutNotification(Base):
    """A queued notice; delivery happens outside this service."""

    __tablename__ = "payout_notifications"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    restaurant_id = Column(
        UUIDType,
        ForeignKey("restaurants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    payout_id = Column(UUIDType, nullable=True, index=True)
    tip_id = Column(UUIDType, nullable=True, index=True)
    kind = Column(String(20), nullable=False, index=True)
    recipient = Column(String(255), nullable=True)
    recipient_name = Column(String(255), nullable=True)
    subject = Column(String(255), nullable=False)
    message = Column(String(1000), nullable=False)
    dedupe_key = Column(String(255), nullable=False, unique=True)
    status = Column(String(20), nullable=False, default="queued")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
