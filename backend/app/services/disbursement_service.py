"""Disbursement orchestration: pending payouts to the rails and back.

State machine per payout: ``pending -> processing -> completed | failed``.
A payout is claimed with a conditional ``pending -> processing`` update
before any rail is called, which is what keeps two overlapping batches from
submitting the same obligation twice.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.payout import (
    TERMINAL_PAYOUT_STATUSES,
    DisbursementRailName,
    FailureKind,
    Payout,
    PayoutStatus,
    RecipientType,
)
from app.models.shared import quantize_money, utc_now
from app.repositories.bank_account_repository import BankAccountRepository
from app.repositories.payout_repository import PayoutRepository
from app.repositories.waiter_repository import WaiterRepository
from app.schemas.payout import (
    DisbursementItemResult,
    DisbursementResult,
    ReconcileResult,
)
from app.schemas.webhooks import B2CResult, BankTransferCallback, MpesaB2CResult
from app.services.audit_service import AuditService
from app.services.disbursement_rails import (
    DisbursementInstruction,
    DisbursementRail,
    RailStatus,
    RailSubmission,
    get_disbursement_rail,
    whole_units,
)
from app.services.errors import PayoutNotResolvableError, RailSubmissionError
from app.services.notification_service import PayoutNotificationScheduler
from app.services.payout_service import parse_month
from app.services.webhook_service import CallbackResult

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class _PlannedPayout:
    payout_id: UUID
    restaurant_id: UUID
    recipient_type: str
    rail: DisbursementRailName
    amount: Decimal
    reference: str
    attempt: int
    instruction: DisbursementInstruction | None
    error: str | None = None


def payout_reference(payout_id: UUID, attempt: int) -> str:
    """Reference sent to the rail for one submission attempt."""
    return f"PAYOUT-{payout_id}-{attempt}"


def parse_payout_reference(reference: str) -> tuple[UUID, int | None] | None:
    """Split a reference into payout id and attempt; None if it is not ours.

    References written before attempts were numbered carry no attempt.
    """
    if not reference.startswith("PAYOUT-"):
        return None
    body = reference[len("PAYOUT-") :]
    head, _, tail = body.rpartition("-")
    try:
        if head and tail.isdigit() and len(tail) < 8:
            return UUID(head), int(tail)
        return UUID(body), None
    except ValueError:
        return None


class DisbursementOrchestrator:
    """Process, retry and settle payouts across the disbursement rails."""

    def __init__(
        self,
        db: Session,
        rails: dict[DisbursementRailName, DisbursementRail] | None = None,
    ):
        self.db = db
        self.payout_repo = PayoutRepository(db)
        self.waiter_repo = WaiterRepository(db)
        self.bank_account_repo = BankAccountRepository(db)
        self.audit_service = AuditService(db)
        self.notifications = PayoutNotificationScheduler(db)
        self._rails: dict[DisbursementRailName, DisbursementRail] = dict(rails or {})

    def rail_for(self, name: DisbursementRailName) -> DisbursementRail:
        if name not in self._rails:
            self._rails[name] = get_disbursement_rail(name)
        return self._rails[name]

    # Planning

    def _plan(self, payout: Payout) -> _PlannedPayout:
        """Route a payout to its rail and resolve the destination."""
        payout_id: UUID = payout.id  # type: ignore[assignment]
        restaurant_id: UUID = payout.restaurant_id  # type: ignore[assignment]
        attempt = int(payout.attempts or 0) + 1
        reference = payout_reference(payout_id, attempt)

        if payout.recipient_type == RecipientType.WAITER.value:
            amount = whole_units(payout.amount)  # type: ignore[arg-type]
            planned = _PlannedPayout(
                payout_id=payout_id,
                restaurant_id=restaurant_id,
                recipient_type=str(payout.recipient_type),
                rail=DisbursementRailName.MOBILE_MONEY,
                amount=amount,
                reference=reference,
                attempt=attempt,
                instruction=None,
            )
            waiter = (
                self.waiter_repo.get_by_id(payout.waiter_id, restaurant_id)  # type: ignore[arg-type]
                if payout.waiter_id
                else None
            )
            if waiter is None:
                planned.error = "Waiter not found"
            elif not waiter.phone_number:
                planned.error = f"Waiter {waiter.name} has no phone number"
            else:
                planned.instruction = DisbursementInstruction(
                    reference=reference,
                    amount=amount,
                    destination=str(waiter.phone_number),
                    account_name=str(waiter.name),
                    remarks=f"Tip payout {payout.payout_month:%Y-%m}",
                )
            return planned

        amount = quantize_money(payout.amount)  # type: ignore[arg-type]
        planned = _PlannedPayout(
            payout_id=payout_id,
            restaurant_id=restaurant_id,
            recipient_type=str(payout.recipient_type),
            rail=DisbursementRailName.BANK_TRANSFER,
            amount=amount,
            reference=reference,
            attempt=attempt,
            instruction=None,
        )
        account = self.bank_account_repo.get_payout_destination(
            restaurant_id, str(payout.group_name)
        )
        if account is None:
            planned.error = f"No verified bank account for group {payout.group_name}"
        else:
            planned.instruction = DisbursementInstruction(
                reference=reference,
                amount=amount,
                destination=str(account.account_number),
                account_name=str(account.account_name),
                bank_code=str(account.bank_code),
                remarks=f"Tip payout {payout.group_name} {payout.payout_month:%Y-%m}",
            )
        return planned

    @staticmethod
    def _masked(instruction: DisbursementInstruction | None) -> str | None:
        if instruction is None:
            return None
        return "****" + instruction.destination[-4:]

    def _item(
        self, planned: _PlannedPayout, status: str, **fields: Any
    ) -> DisbursementItemResult:
        return DisbursementItemResult(
            payout_id=planned.payout_id,
            recipient_type=planned.recipient_type,
            rail=planned.rail.value,
            destination=self._masked(planned.instruction),
            amount=planned.amount,
            status=status,  # type: ignore[arg-type]
            **fields,
        )

    # Batch processing

    def _select(
        self,
        status: PayoutStatus,
        restaurant_id: UUID | None,
        month: str | None,
        payout_ids: list[UUID] | None,
    ) -> tuple[list[Payout], list[DisbursementItemResult]]:
        """Target payouts in ``status`` plus skipped results for explicit ids in another."""
        if payout_ids:
            selected, skipped = [], []
            for payout in self.payout_repo.get_by_ids(payout_ids, restaurant_id):
                if payout.status == status.value:
                    selected.append(payout)
                else:
                    skipped.append(
                        DisbursementItemResult(
                            payout_id=payout.id,  # type: ignore[arg-type]
                            recipient_type=str(payout.recipient_type),
                            rail=payout.rail,  # type: ignore[arg-type]
                            amount=quantize_money(payout.amount),  # type: ignore[arg-type]
                            status="skipped",
                            error=f"Payout is {payout.status}",
                        )
                    )
            return selected, skipped
        month_start = parse_month(month) if month else None
        return (
            self.payout_repo.get_for_processing(status, restaurant_id, month_start),
            [],
        )

    def process(
        self,
        restaurant_id: UUID | None = None,
        month: str | None = None,
        payout_ids: list[UUID] | None = None,
        dry_run: bool = False,
        actor_id: str | None = None,
    ) -> DisbursementResult:
        """Submit pending payouts to their rails.

        Accepted submissions stay ``processing`` until the rail calls back.
        Rejected submissions and payouts without a destination are failed
        with ``failure_kind=submission`` so they can be retried.
        """
        payouts, skipped = self._select(PayoutStatus.PENDING, restaurant_id, month, payout_ids)
        return self._run([self._plan(p) for p in payouts], skipped, dry_run, actor_id)

    def retry(
        self,
        payout_ids: list[UUID] | None = None,
        restaurant_id: UUID | None = None,
        month: str | None = None,
        dry_run: bool = False,
        actor_id: str | None = None,
    ) -> DisbursementResult:
        """Reset failed payouts to pending and process them again."""
        payouts, skipped = self._select(PayoutStatus.FAILED, restaurant_id, month, payout_ids)
        if dry_run:
            return self._run([self._plan(p) for p in payouts], skipped, True, actor_id)

        reset: list[Payout] = []
        for payout in payouts:
            if not self.payout_repo.reset_failed(payout.id):  # type: ignore[arg-type]
                continue
            self.audit_service.log_status_change(
                resource_type="payout",
                resource_id=payout.id,  # type: ignore[arg-type]
                restaurant_id=payout.restaurant_id,  # type: ignore[arg-type]
                old_status=PayoutStatus.FAILED.value,
                new_status=PayoutStatus.PENDING.value,
                actor_type="operator",
                actor_id=actor_id,
                metadata={"action": "retry"},
            )
            reset.append(self.payout_repo.refresh(payout))
        return self._run([self._plan(p) for p in reset], skipped, False, actor_id)

    def _run(
        self,
        plans: list[_PlannedPayout],
        skipped: list[DisbursementItemResult],
        dry_run: bool,
        actor_id: str | None,
    ) -> DisbursementResult:
        results: list[DisbursementItemResult] = list(skipped)

        if dry_run:
            for planned in plans:
                if planned.error:
                    results.append(self._item(planned, "failed", error=planned.error))
                else:
                    results.append(self._item(planned, "planned"))
            return self._summarise(results, dry_run=True)

        to_submit: list[_PlannedPayout] = []
        for planned in plans:
            claimed = self.payout_repo.claim_for_processing(
                planned.payout_id,
                planned.rail.value,
                planned.reference,
                expected_attempts=planned.attempt - 1,
            )
            if not claimed:
                results.append(self._item(planned, "skipped", error="Claimed by another run"))
                continue
            self.audit_service.log_status_change(
                resource_type="payout",
                resource_id=planned.payout_id,
                restaurant_id=planned.restaurant_id,
                old_status=PayoutStatus.PENDING.value,
                new_status=PayoutStatus.PROCESSING.value,
                actor_type="operator" if actor_id else "system",
                actor_id=actor_id,
                metadata={"rail": planned.rail.value, "attempt": planned.attempt},
            )
            if planned.error:
                self._fail(planned.payout_id, FailureKind.SUBMISSION, "missing_destination", planned.error)
                results.append(self._item(planned, "failed", error=planned.error))
                continue
            to_submit.append(planned)

        for planned, outcome in self._submit_all(to_submit):
            if isinstance(outcome, RailSubmission):
                self.payout_repo.record_submission(planned.payout_id, outcome.transaction_reference)
                results.append(
                    self._item(
                        planned, "submitted", transaction_reference=outcome.transaction_reference
                    )
                )
            else:
                code = outcome.code if isinstance(outcome, RailSubmissionError) else "error"
                self._fail(planned.payout_id, FailureKind.SUBMISSION, code, str(outcome))
                results.append(self._item(planned, "failed", error=str(outcome)))

        summary = self._summarise(results, dry_run=False)
        logger.info(
            "Disbursement batch: %d submitted, %d failed, %d skipped, total %s",
            summary.processed,
            summary.failed,
            summary.skipped,
            summary.total_amount,
        )
        return summary

    def _submit_all(
        self, plans: list[_PlannedPayout]
    ) -> list[tuple[_PlannedPayout, RailSubmission | Exception]]:
        """Call the rails concurrently; database writes stay with the caller."""
        if not plans:
            return []

        def submit(planned: _PlannedPayout) -> RailSubmission | Exception:
            try:
                return self.rail_for(planned.rail).submit(planned.instruction)  # type: ignore[arg-type]
            except RailSubmissionError as exc:
                logger.warning("Rail rejected payout %s: %s", planned.payout_id, exc)
                return exc
            except Exception as exc:
                logger.exception("Unexpected error submitting payout %s", planned.payout_id)
                return exc

        # Instantiate rails up front so worker threads only read the mapping.
        for planned in plans:
            self.rail_for(planned.rail)

        workers = max(1, min(settings.DISBURSEMENT_MAX_WORKERS, len(plans)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(submit, plans))
        return list(zip(plans, outcomes, strict=True))

    @staticmethod
    def _summarise(results: list[DisbursementItemResult], dry_run: bool) -> DisbursementResult:
        ok_status = "planned" if dry_run else "submitted"
        processed = [r for r in results if r.status == ok_status]
        return DisbursementResult(
            dry_run=dry_run,
            total_payouts=len(results),
            processed=len(processed),
            failed=sum(1 for r in results if r.status == "failed"),
            skipped=sum(1 for r in results if r.status == "skipped"),
            total_amount=quantize_money(sum((r.amount for r in processed), ZERO)),
            results=results,
        )

    # Terminal transitions

    def _fail(
        self,
        payout_id: UUID,
        failure_kind: FailureKind,
        failure_code: str | None,
        failure_reason: str | None,
        actor_id: str | None = None,
    ) -> bool:
        moved = self.payout_repo.mark_failed(
            payout_id, failure_kind.value, failure_code, failure_reason
        )
        if moved:
            self._after_terminal(payout_id, PayoutStatus.FAILED, failure_kind.value, actor_id)
        return moved

    def _complete(
        self, payout_id: UUID, provider_transaction_id: str | None, actor_id: str | None = None
    ) -> bool:
        moved = self.payout_repo.mark_completed(payout_id, provider_transaction_id)
        if moved:
            self._after_terminal(payout_id, PayoutStatus.COMPLETED, None, actor_id)
        return moved

    def _after_terminal(
        self,
        payout_id: UUID,
        new_status: PayoutStatus,
        failure_kind: str | None,
        actor_id: str | None = None,
    ) -> None:
        payout = self.payout_repo.get_by_id(payout_id)
        if payout is None:
            return
        self.payout_repo.refresh(payout)
        self.audit_service.log_status_change(
            resource_type="payout",
            resource_id=payout_id,
            restaurant_id=payout.restaurant_id,  # type: ignore[arg-type]
            old_status=PayoutStatus.PROCESSING.value,
            new_status=new_status.value,
            actor_type="operator" if actor_id else "system",
            actor_id=actor_id,
            metadata={
                "failure_kind": failure_kind,
                "failure_code": payout.failure_code,
                "provider_transaction_id": payout.provider_transaction_id,
                "attempt": payout.attempts,
            },
        )
        self.notifications.notify_status(payout)

    def apply_status(self, payout: Payout, status: RailStatus) -> str:
        """Apply a rail-reported result to a processing payout.

        Returns the outcome: completed, failed, pending, needs_review or
        already_settled. A rail with no record of the payout fails it as a
        submission failure only when no submission was ever recorded;
        anything else the rail cannot answer is left for an operator.
        """
        if status.state == "pending":
            return "pending"
        if payout.status in TERMINAL_PAYOUT_STATUSES:
            return "already_settled"
        payout_id: UUID = payout.id  # type: ignore[assignment]
        if status.state == "completed":
            outcome = "completed"
            moved = self._complete(payout_id, status.provider_transaction_id)
        elif status.state == "failed":
            outcome = "failed"
            moved = self._fail(
                payout_id, FailureKind.SETTLEMENT, status.failure_code, status.failure_reason
            )
        elif status.state == "not_found" and payout.submitted_at is None:
            outcome = "failed"
            moved = self._fail(
                payout_id,
                FailureKind.SUBMISSION,
                "not_submitted",
                "Claimed for processing but never accepted by the rail",
            )
        else:
            logger.warning(
                "Payout %s needs review: rail %s reported %s for %s",
                payout_id,
                payout.rail,
                status.state,
                payout.transaction_reference or payout.submission_reference,
            )
            return "needs_review"
        if not moved:
            return "already_settled"
        return outcome

    # Rail callbacks

    def _apply_callback(self, reference: str, status: RailStatus) -> CallbackResult:
        payout = self.payout_repo.get_by_transaction_reference(reference)
        if payout is None or payout.status == PayoutStatus.PENDING.value:
            return self._uncorrelated(reference, status)
        outcome = self.apply_status(payout, status)
        if outcome == "already_settled":
            logger.info("Payout %s already %s, ignoring callback", payout.id, payout.status)
        return CallbackResult(
            outcome=outcome,
            correlation_id=reference,
            restaurant_id=payout.restaurant_id,  # type: ignore[arg-type]
        )

    def _uncorrelated(self, reference: str, status: RailStatus) -> CallbackResult:
        """A reference that is not the live submission of any payout.

        References of superseded attempts are recognised and ignored. A
        superseded attempt reporting success is logged as an error and audited
        because the payout may have been paid twice.
        """
        parsed = parse_payout_reference(reference)
        payout = self.payout_repo.get_by_id(parsed[0]) if parsed else None
        if payout is None:
            logger.warning("No payout found for disbursement reference %s", reference)
            return CallbackResult(outcome="not_found", correlation_id=reference)

        if status.state == "completed":
            logger.error(
                "Payout %s: superseded reference %s reports success while attempt %s is %s",
                payout.id,
                reference,
                payout.attempts,
                payout.status,
            )
            self.audit_service.log_event(
                resource_type="payout",
                resource_id=payout.id,  # type: ignore[arg-type]
                restaurant_id=payout.restaurant_id,  # type: ignore[arg-type]
                action="superseded_attempt_completed",
                metadata={
                    "reference": reference,
                    "provider_transaction_id": status.provider_transaction_id,
                    "current_attempt": payout.attempts,
                },
            )
        else:
            logger.info(
                "Ignoring %s result for superseded reference %s of payout %s",
                status.state,
                reference,
                payout.id,
            )
        return CallbackResult(
            outcome="stale_attempt",
            correlation_id=reference,
            restaurant_id=payout.restaurant_id,  # type: ignore[arg-type]
        )

    def handle_mobile_money_result(self, payload: dict[str, Any]) -> CallbackResult:
        """Settle a payout from a B2C result or a transaction status answer.

        Status answers arrive on the same result URL under a conversation id
        of their own; they are correlated through the ``Occasion`` we sent,
        which is the payout's current submission reference.
        """
        result = MpesaB2CResult.model_validate(payload).Result
        params = result.parameters()
        occasion = result.ReferenceData.as_dict().get("Occasion") if result.ReferenceData else None
        if occasion and "TransactionStatus" in params:
            return self._apply_callback(str(occasion), self._transaction_status(result, params))

        if result.ResultCode == 0:
            receipt = result.TransactionID or params.get("TransactionReceipt")
            status = RailStatus(state="completed", provider_transaction_id=receipt)
        else:
            status = RailStatus(
                state="failed",
                failure_code=str(result.ResultCode),
                failure_reason=result.ResultDesc,
            )
        return self._apply_callback(result.ConversationID, status)

    @staticmethod
    def _transaction_status(result: B2CResult, params: dict[str, Any]) -> RailStatus:
        state = str(params.get("TransactionStatus") or "").lower()
        if result.ResultCode == 0 and state == "completed":
            return RailStatus(
                state="completed",
                provider_transaction_id=params.get("ReceiptNo") or result.TransactionID,
            )
        if state in ("failed", "cancelled", "declined", "expired", "reversed"):
            return RailStatus(
                state="failed",
                failure_code=f"status_{state}",
                failure_reason=params.get("ReasonType") or result.ResultDesc,
            )
        return RailStatus(state="pending")

    def handle_mobile_money_timeout(self, payload: dict[str, Any]) -> CallbackResult:
        result = MpesaB2CResult.model_validate(payload).Result
        status = RailStatus(
            state="failed",
            failure_code="timeout",
            failure_reason=result.ResultDesc or "B2C request timed out in the provider queue",
        )
        return self._apply_callback(result.ConversationID, status)

    def handle_bank_transfer_callback(self, payload: dict[str, Any]) -> CallbackResult:
        callback = BankTransferCallback.model_validate(payload)
        if callback.status in ("completed", "success"):
            status = RailStatus(
                state="completed", provider_transaction_id=callback.provider_transfer_id
            )
        else:
            status = RailStatus(
                state="failed",
                failure_code=callback.failure_code or callback.status,
                failure_reason=callback.failure_reason,
            )
        return self._apply_callback(callback.reference, status)

    # Stale reconciliation

    def reconcile_stale(self, older_than_minutes: int | None = None) -> ReconcileResult:
        """Query the rails for payouts stuck in processing.

        A payout is stale when neither a submission nor the claim has touched
        it within the window. M-Pesa answers status queries asynchronously,
        so those payouts stay processing until the answer is delivered.
        """
        minutes = (
            settings.DISBURSEMENT_STALE_AFTER_MINUTES
            if older_than_minutes is None
            else older_than_minutes
        )
        cutoff = utc_now() - timedelta(minutes=minutes)
        result = ReconcileResult(checked=0, completed=0, failed=0, still_processing=0)

        for payout in self.payout_repo.get_stale_processing(cutoff):
            result.checked += 1
            if payout.rail:
                try:
                    status = self.rail_for(DisbursementRailName(payout.rail)).query_status(
                        payout.transaction_reference,  # type: ignore[arg-type]
                        reference=payout.submission_reference,  # type: ignore[arg-type]
                    )
                except RailSubmissionError as exc:
                    result.errors.append(f"Payout {payout.id}: {exc}")
                    result.still_processing += 1
                    continue
            else:
                status = RailStatus(state="unknown")
            outcome = self.apply_status(payout, status)
            if outcome == "completed":
                result.completed += 1
            elif outcome == "failed":
                result.failed += 1
            elif outcome == "needs_review":
                result.needs_review += 1
                result.review_payout_ids.append(payout.id)  # type: ignore[arg-type]
            else:
                result.still_processing += 1

        logger.info(
            "Reconciled %d stale payouts: %d completed, %d failed, %d still processing, "
            "%d need review",
            result.checked,
            result.completed,
            result.failed,
            result.still_processing,
            result.needs_review,
        )
        return result

    # Operator resolution

    def resolve(
        self,
        payout_id: UUID,
        status: str,
        provider_transaction_id: str | None = None,
        reason: str | None = None,
        actor_id: str | None = None,
    ) -> Payout | None:
        """Settle a processing payout after an operator checked it with the provider.

        Returns None when the payout does not exist. Raises
        ``PayoutNotResolvableError`` when it is not processing.
        """
        payout = self.payout_repo.get_by_id(payout_id)
        if payout is None:
            return None
        if payout.status != PayoutStatus.PROCESSING.value:
            raise PayoutNotResolvableError(payout_id, str(payout.status))

        if status == "completed":
            moved = self._complete(
                payout_id, provider_transaction_id, actor_id=actor_id or "operator"
            )
        else:
            moved = self._fail(
                payout_id,
                FailureKind.SETTLEMENT,
                "operator_resolved",
                reason or "Marked failed by an operator",
                actor_id=actor_id or "operator",
            )
        payout = self.payout_repo.refresh(payout)
        if not moved:
            raise PayoutNotResolvableError(payout_id, str(payout.status))
        logger.info("Payout %s resolved as %s by %s", payout_id, status, actor_id or "operator")
        return payout
