"""WebhookLog model for recording every inbound provider callback."""

from sqlalchemy import Column, DateTime, Index, String, Text, func
from sqlalchemy.types import JSON

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class WebhookLog(Base):
    """Append-only; one row per callback delivery, whatever its outcome."""

    __tablename__ = "webhook_logs"
    __table_args__ = (
        Index("ix_webhook_logs_correlation_id", "correlation_id"),
        Index("ix_webhook_logs_provider", "provider"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    provider = Column(String(50), nullable=False)
    event_type = Column(String(100), nullable=False)
    correlation_id = Column(String(255), nullable=True)
    restaurant_id = Column(UUIDType, nullable=True, index=True)
    payload = Column(JSON, nullable=False)
    outcome = Column(String(50), nullable=False)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
