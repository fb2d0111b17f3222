"""Inbound provider callback intake.

Providers retry on anything but a success response, so every callback is
acknowledged; what actually happened is recorded in ``webhook_logs``.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.repositories.webhook_log_repository import WebhookLogRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallbackResult:
    """What a callback handler did with one delivery."""

    outcome: str
    correlation_id: str | None = None
    restaurant_id: UUID | None = None


CallbackHandler = Callable[[dict[str, Any]], CallbackResult]


class WebhookService:
    def __init__(self, db: Session):
        self.db = db
        self.log_repo = WebhookLogRepository(db)

    def process(
        self,
        provider: str,
        event_type: str,
        payload: dict[str, Any],
        handler: CallbackHandler,
    ) -> CallbackResult:
        """Run ``handler`` on a raw payload and log the delivery.

        Validation and processing errors are logged, never raised.
        """
        error: str | None = None
        try:
            result = handler(payload)
        except ValidationError as exc:
            logger.warning("Rejected %s %s callback: %s", provider, event_type, exc)
            result = CallbackResult(outcome="invalid_payload")
            error = str(exc)
        except Exception as exc:
            logger.exception("Failed to process %s %s callback", provider, event_type)
            self.db.rollback()
            result = CallbackResult(outcome="error")
            error = str(exc)

        self.log_repo.create(
            provider=provider,
            event_type=event_type,
            payload=payload,
            outcome=result.outcome,
            correlation_id=result.correlation_id,
            restaurant_id=result.restaurant_id,
            error=error,
        )
        return result
