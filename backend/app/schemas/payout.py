"""Payout calculation, generation and disbursement schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PayoutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    restaurant_id: UUID
    recipient_type: str
    waiter_id: UUID | None = None
    group_name: str | None = None
    amount: Decimal
    tip_count: int
    payout_month: date
    period_start: date | None = None
    status: str
    rail: str | None = None
    submission_reference: str | None = None
    transaction_reference: str | None = None
    provider_transaction_id: str | None = None
    attempts: int
    failure_kind: str | None = None
    failure_code: str | None = None
    failure_reason: str | None = None
    submitted_at: datetime | None = None
    processed_at: datetime | None = None
    created_at: datetime | None = None


class WaiterPayoutCalculation(BaseModel):
    waiter_id: UUID
    waiter_name: str | None = None
    phone_number: str | None = None
    total_tips: Decimal
    commission_amount: Decimal
    net_amount: Decimal
    tip_count: int
    period_start: date
    meets_minimum: bool


class GroupPayoutCalculation(BaseModel):
    group_name: str
    percentage: Decimal
    total_tips: Decimal
    commission_amount: Decimal
    net_amount: Decimal
    tip_count: int
    period_start: date
    recipient_account: str | None = None
    meets_minimum: bool


class PayoutCalculation(BaseModel):
    restaurant_id: UUID
    month: str
    waiter_payouts: list[WaiterPayoutCalculation]
    group_payouts: list[GroupPayoutCalculation]
    total_amount: Decimal
    commission_deducted: Decimal


class PayoutGenerationResult(BaseModel):
    success: bool
    restaurant_id: UUID
    month: str
    payouts_created: int
    total_amount: Decimal
    errors: list[str] = Field(default_factory=list)
    payouts: list[PayoutResponse] = Field(default_factory=list)


class MonthlyGenerationRequest(BaseModel):
    month: str | None = Field(default=None, description="YYYY-MM; defaults to the previous month")


class MonthlyGenerationResult(BaseModel):
    success: bool
    month: str
    processed_restaurants: int
    skipped_restaurants: int
    total_payouts: int
    total_amount: Decimal
    errors: list[str] = Field(default_factory=list)


class MonthlyPayoutSummary(BaseModel):
    month: str
    total_payouts: int
    total_amount: Decimal
    waiter_payouts: int
    group_payouts: int
    pending_payouts: int
    processing_payouts: int
    completed_payouts: int
    failed_payouts: int


class GroupLedgerComparison(BaseModel):
    group_name: str
    recomputed_amount: Decimal
    ledger_amount: Decimal
    difference: Decimal


class PayoutProcessRequest(BaseModel):
    restaurant_id: UUID | None = None
    month: str | None = Field(default=None, description="YYYY-MM; limits selection to one month")
    payout_ids: list[UUID] | None = None
    dry_run: bool = False
    action: Literal["process", "retry"] = "process"


class DisbursementItemResult(BaseModel):
    payout_id: UUID
    recipient_type: str
    rail: str | None = None
    destination: str | None = None
    amount: Decimal
    status: Literal["planned", "submitted", "failed", "skipped"]
    transaction_reference: str | None = None
    error: str | None = None


class DisbursementResult(BaseModel):
    dry_run: bool
    total_payouts: int
    processed: int
    failed: int
    skipped: int
    total_amount: Decimal
    results: list[DisbursementItemResult]


class ReconcileRequest(BaseModel):
    older_than_minutes: int | None = Field(default=None, ge=0)


class ReconcileResult(BaseModel):
    checked: int
    completed: int
    failed: int
    still_processing: int
    needs_review: int = 0
    review_payout_ids: list[UUID] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class PayoutResolveRequest(BaseModel):
    """Operator verdict for a payout reconciliation could not settle."""

    status: Literal["completed", "failed"]
    provider_transaction_id: str | None = Field(default=None, max_length=100)
    reason: str | None = Field(default=None, max_length=500)


class CallbackOutcome(BaseModel):
    outcome: str
    payout_id: UUID | None = None
    detail: dict[str, Any] | None = None
