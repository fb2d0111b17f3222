"""WebhookLog repository for data access."""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.webhook_log import WebhookLog


class WebhookLogRepository:
    """Repository for WebhookLog model."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        provider: str,
        event_type: str,
        payload: dict[str, Any],
        outcome: str,
        correlation_id: str | None = None,
        restaurant_id: UUID | None = None,
        error: str | None = None,
    ) -> WebhookLog:
        log = WebhookLog(
            provider=provider,
            event_type=event_type,
            payload=payload,
            outcome=outcome,
            correlation_id=correlation_id,
            restaurant_id=restaurant_id,
            error=error,
        )
        self.db.add(log)
        self.db.commit()
        self.db.refresh(log)
        return log

    def get_by_correlation_id(self, correlation_id: str) -> list[WebhookLog]:
        return (
            self.db.query(WebhookLog)
            .filter(WebhookLog.correlation_id == correlation_id)
            .order_by(WebhookLog.created_at.asc())
            .all()
        )
