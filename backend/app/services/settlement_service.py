"""Settlement reconciliation: provider callbacks to authoritative tip state."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.shared import utc_now
from app.models.tip import OPEN_TIP_STATUSES, Tip, TipStatus, TipType
from app.repositories.restaurant_repository import RestaurantRepository
from app.repositories.tip_repository import TipRepository
from app.schemas.webhooks import MpesaStkCallback, MpesaStkTimeout, SettlementCallback
from app.services.audit_service import AuditService
from app.services.commission import CommissionService, compute_commission
from app.services.distribution_service import DistributionService
from app.services.notification_service import PayoutNotificationScheduler
from app.services.webhook_service import CallbackResult

logger = logging.getLogger(__name__)

# M-Pesa STK push result codes with a dedicated terminal status
MPESA_RESULT_SUCCESS = 0
MPESA_RESULT_CANCELLED = 1032
MPESA_RESULT_TIMEOUT = 1037


@dataclass(frozen=True)
class SettlementSucceeded:
    correlation_id: str
    settled_amount: Decimal | None = None
    receipt_id: str | None = None
    transaction_date: str | None = None
    payer_phone: str | None = None


@dataclass(frozen=True)
class SettlementFailed:
    correlation_id: str
    result_code: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class SettlementCancelled:
    correlation_id: str
    result_code: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class SettlementTimedOut:
    correlation_id: str
    result_code: str | None = None
    description: str | None = None


SettlementEvent = SettlementSucceeded | SettlementFailed | SettlementCancelled | SettlementTimedOut

_TERMINAL_STATUS_FOR: dict[type, TipStatus] = {
    SettlementFailed: TipStatus.FAILED,
    SettlementCancelled: TipStatus.CANCELLED,
    SettlementTimedOut: TipStatus.TIMEOUT,
}


def from_settlement_callback(payload: SettlementCallback) -> SettlementEvent:
    if payload.result_status == "success":
        return SettlementSucceeded(
            correlation_id=payload.correlation_id,
            settled_amount=payload.settled_amount,
            receipt_id=payload.receipt_id,
        )
    variant = {
        "failed": SettlementFailed,
        "cancelled": SettlementCancelled,
        "timeout": SettlementTimedOut,
    }[payload.result_status]
    return variant(
        correlation_id=payload.correlation_id,
        result_code=payload.result_code,
        description=payload.description,
    )


def from_stk_callback(payload: MpesaStkCallback) -> SettlementEvent:
    callback = payload.Body.stkCallback
    correlation_id = callback.CheckoutRequestID
    if callback.ResultCode == MPESA_RESULT_SUCCESS:
        items: dict[str, Any] = {}
        if callback.CallbackMetadata is not None:
            items = {item.Name: item.Value for item in callback.CallbackMetadata.Item}
        amount = items.get("Amount")
        receipt = items.get("MpesaReceiptNumber")
        transaction_date = items.get("TransactionDate")
        phone = items.get("PhoneNumber")
        return SettlementSucceeded(
            correlation_id=correlation_id,
            settled_amount=Decimal(str(amount)) if amount is not None else None,
            receipt_id=str(receipt) if receipt is not None else None,
            transaction_date=str(transaction_date) if transaction_date is not None else None,
            payer_phone=str(phone) if phone is not None else None,
        )

    code = str(callback.ResultCode)
    if callback.ResultCode == MPESA_RESULT_CANCELLED:
        return SettlementCancelled(correlation_id, code, callback.ResultDesc)
    if callback.ResultCode == MPESA_RESULT_TIMEOUT:
        return SettlementTimedOut(correlation_id, code, callback.ResultDesc)
    return SettlementFailed(correlation_id, code, callback.ResultDesc)


def from_stk_timeout(payload: MpesaStkTimeout) -> SettlementEvent:
    return SettlementTimedOut(
        correlation_id=payload.CheckoutRequestID,
        result_code="timeout",
        description="Payment request timed out",
    )


class SettlementOutcome(str, Enum):
    NOT_FOUND = "not_found"
    ALREADY_SETTLED = "already_settled"
    COMPLETED = "completed"
    AMOUNT_MISMATCH = "amount_mismatch"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"


@dataclass
class SettlementResult:
    outcome: SettlementOutcome
    tip_id: UUID | None = None
    restaurant_id: UUID | None = None
    distribution_error: str | None = None

    def as_callback_result(self, correlation_id: str) -> CallbackResult:
        return CallbackResult(
            outcome=self.outcome.value,
            correlation_id=correlation_id,
            restaurant_id=self.restaurant_id,
        )


class SettlementReconciler:
    """Applies one settlement event to its tip.

    Every tip transition is a single conditional update guarded on the tip
    still being open, so concurrent deliveries of the same callback produce
    exactly one transition.
    """

    def __init__(self, db: Session):
        self.db = db
        self.tip_repo = TipRepository(db)
        self.restaurant_repo = RestaurantRepository(db)
        self.distribution_service = DistributionService(db)
        self.notifications = PayoutNotificationScheduler(db)
        self.audit_service = AuditService(db)

    def reconcile(self, event: SettlementEvent) -> SettlementResult:
        tip = self.tip_repo.get_by_correlation_id(event.correlation_id)
        if tip is None:
            logger.warning("No tip found for settlement correlation id %s", event.correlation_id)
            return SettlementResult(outcome=SettlementOutcome.NOT_FOUND)

        result = SettlementResult(
            outcome=SettlementOutcome.ALREADY_SETTLED,
            tip_id=tip.id,  # type: ignore[arg-type]
            restaurant_id=tip.restaurant_id,  # type: ignore[arg-type]
        )
        if tip.payment_status not in OPEN_TIP_STATUSES:
            logger.info("Tip %s already %s, ignoring callback", tip.id, tip.payment_status)
            return result

        if isinstance(event, SettlementSucceeded):
            return self._settle_success(tip, event, result)
        return self._settle_terminal(tip, event, result)

    def _metadata(self, tip: Tip, **extra: Any) -> dict[str, Any]:
        metadata = dict(tip.settlement_metadata or {})
        metadata.update({k: v for k, v in extra.items() if v is not None})
        return metadata

    def _transition(
        self, tip: Tip, to_status: TipStatus, **values: Any
    ) -> bool:
        old_status = str(tip.payment_status)
        moved = self.tip_repo.transition(
            tip.id,  # type: ignore[arg-type]
            tip.restaurant_id,  # type: ignore[arg-type]
            OPEN_TIP_STATUSES,
            to_status,
            **values,
        )
        if not moved:
            logger.info("Tip %s settled concurrently, ignoring callback", tip.id)
            return False
        self.db.refresh(tip)
        self.audit_service.log_status_change(
            resource_type="tip",
            resource_id=tip.id,  # type: ignore[arg-type]
            restaurant_id=tip.restaurant_id,  # type: ignore[arg-type]
            old_status=old_status,
            new_status=to_status.value,
            actor_type="webhook",
        )
        return True

    def _settle_success(
        self, tip: Tip, event: SettlementSucceeded, result: SettlementResult
    ) -> SettlementResult:
        gross = Decimal(str(tip.amount))

        if event.settled_amount is not None:
            settled = Decimal(str(event.settled_amount))
            if abs(settled - gross) > settings.SETTLEMENT_AMOUNT_TOLERANCE:
                logger.warning(
                    "Settled amount %s does not match tip %s amount %s",
                    settled,
                    tip.id,
                    gross,
                )
                moved = self._transition(
                    tip,
                    TipStatus.FAILED,
                    settlement_metadata=self._metadata(
                        tip,
                        error="amount_mismatch",
                        expected_amount=str(gross),
                        received_amount=str(settled),
                        receipt_id=event.receipt_id,
                    ),
                )
                if moved:
                    result.outcome = SettlementOutcome.AMOUNT_MISMATCH
                return result

        restaurant = self.restaurant_repo.get_by_id(tip.restaurant_id)  # type: ignore[arg-type]
        rate = (
            CommissionService.rate_for(restaurant)
            if restaurant is not None
            else settings.DEFAULT_COMMISSION_RATE
        )
        breakdown = compute_commission(gross, rate)
        settled_at: datetime = utc_now()

        moved = self._transition(
            tip,
            TipStatus.COMPLETED,
            commission_amount=breakdown.commission,
            net_amount=breakdown.net,
            receipt_id=event.receipt_id,
            settled_at=settled_at,
            settlement_metadata=self._metadata(
                tip,
                amount_verified=event.settled_amount is not None,
                commission_rate=str(rate),
                receipt_id=event.receipt_id,
                transaction_date=event.transaction_date,
                payer_phone=event.payer_phone,
            ),
        )
        if not moved:
            return result
        result.outcome = SettlementOutcome.COMPLETED

        if tip.tip_type == TipType.RESTAURANT.value:
            result.distribution_error = self._distribute(tip)

        self.notifications.notify_tip_confirmed(tip)
        return result

    def _distribute(self, tip: Tip) -> str | None:
        """Split a completed restaurant-wide tip; failures never undo the settlement."""
        try:
            self.distribution_service.distribute(tip)
        except Exception as exc:
            logger.exception("Distribution failed for tip %s", tip.id)
            self.db.rollback()
            self.audit_service.log_event(
                resource_type="tip",
                resource_id=tip.id,  # type: ignore[arg-type]
                restaurant_id=tip.restaurant_id,  # type: ignore[arg-type]
                action="distribution_failed",
                changes={"error": str(exc)},
                actor_type="system",
            )
            return str(exc)
        return None

    def _settle_terminal(
        self, tip: Tip, event: SettlementEvent, result: SettlementResult
    ) -> SettlementResult:
        to_status = _TERMINAL_STATUS_FOR[type(event)]
        moved = self._transition(
            tip,
            to_status,
            settlement_metadata=self._metadata(
                tip,
                result_code=getattr(event, "result_code", None),
                result_description=getattr(event, "description", None),
            ),
        )
        if moved:
            result.outcome = SettlementOutcome(to_status.value)
        return result

    # Callback handlers for WebhookService.process

    def handle_settlement_callback(self, payload: dict[str, Any]) -> CallbackResult:
        event = from_settlement_callback(SettlementCallback.model_validate(payload))
        return self.reconcile(event).as_callback_result(event.correlation_id)

    def handle_stk_callback(self, payload: dict[str, Any]) -> CallbackResult:
        event = from_stk_callback(MpesaStkCallback.model_validate(payload))
        return self.reconcile(event).as_callback_result(event.correlation_id)

    def handle_stk_timeout(self, payload: dict[str, Any]) -> CallbackResult:
        event = from_stk_timeout(MpesaStkTimeout.model_validate(payload))
        return self.reconcile(event).as_callback_result(event.correlation_id)
