"""Payout repository for data access."""

from collections.abc import Sequence
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.sorting import SortOptions
from app.models.payout import Payout, PayoutStatus, RecipientType
from app.models.shared import utc_now


class PayoutRepository:
    """Repository for Payout model.

    Status changes go through conditional updates so that concurrent
    processors and duplicate callbacks cannot move a payout twice.
    """

    SORT = SortOptions(
        fields={
            "payout_month": Payout.payout_month,
            "amount": Payout.amount,
            "status": Payout.status,
            "created_at": Payout.created_at,
            "processed_at": Payout.processed_at,
        },
        default="payout_month:desc",
        tiebreak=Payout.created_at.asc(),
    )

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, payout_id: UUID, restaurant_id: UUID | None = None) -> Payout | None:
        query = self.db.query(Payout).filter(Payout.id == payout_id)
        if restaurant_id is not None:
            query = query.filter(Payout.restaurant_id == restaurant_id)
        return query.first()

    def get_all(
        self,
        restaurant_id: UUID,
        payout_month: date | None = None,
        status: PayoutStatus | None = None,
        skip: int = 0,
        limit: int = 100,
        order_by: str | None = None,
    ) -> list[Payout]:
        query = self.db.query(Payout).filter(Payout.restaurant_id == restaurant_id)
        if payout_month is not None:
            query = query.filter(Payout.payout_month == payout_month)
        if status is not None:
            query = query.filter(Payout.status == status.value)
        return self.SORT.apply(query, order_by).offset(skip).limit(limit).all()

    def get_for_processing(
        self,
        status: PayoutStatus,
        restaurant_id: UUID | None = None,
        payout_month: date | None = None,
        payout_ids: Sequence[UUID] | None = None,
    ) -> list[Payout]:
        """Select payouts for an operator batch."""
        query = self.db.query(Payout).filter(Payout.status == status.value)
        if restaurant_id is not None:
            query = query.filter(Payout.restaurant_id == restaurant_id)
        if payout_month is not None:
            query = query.filter(Payout.payout_month == payout_month)
        if payout_ids:
            query = query.filter(Payout.id.in_(list(payout_ids)))
        return query.order_by(Payout.created_at.asc()).all()

    def get_by_ids(
        self, payout_ids: Sequence[UUID], restaurant_id: UUID | None = None
    ) -> list[Payout]:
        query = self.db.query(Payout).filter(Payout.id.in_(list(payout_ids)))
        if restaurant_id is not None:
            query = query.filter(Payout.restaurant_id == restaurant_id)
        return query.order_by(Payout.created_at.asc()).all()

    def get_by_transaction_reference(self, reference: str) -> Payout | None:
        """Correlate a rail callback by the rail's own id or by our reference."""
        return (
            self.db.query(Payout)
            .filter(
                (Payout.transaction_reference == reference)
                | (Payout.submission_reference == reference)
            )
            .first()
        )

    def get_stale_processing(self, idle_since: datetime) -> list[Payout]:
        """Processing payouts with no activity since ``idle_since``.

        Activity is the submission time, or the claim time for payouts that
        were claimed but never recorded a submission.
        """
        last_activity = func.coalesce(Payout.submitted_at, Payout.updated_at)
        return (
            self.db.query(Payout)
            .filter(
                Payout.status == PayoutStatus.PROCESSING.value,
                last_activity < idle_since,
            )
            .order_by(last_activity.asc())
            .all()
        )

    def get_pending(self) -> list[Payout]:
        return (
            self.db.query(Payout)
            .filter(Payout.status == PayoutStatus.PENDING.value)
            .order_by(Payout.restaurant_id.asc(), Payout.created_at.asc())
            .all()
        )

    def exists_for_month(self, restaurant_id: UUID, payout_month: date) -> bool:
        return (
            self.db.query(Payout.id)
            .filter(Payout.restaurant_id == restaurant_id, Payout.payout_month == payout_month)
            .first()
            is not None
        )

    def latest_month(self, restaurant_id: UUID) -> date | None:
        return (
            self.db.query(func.max(Payout.payout_month))
            .filter(Payout.restaurant_id == restaurant_id)
            .scalar()
        )

    def last_paid_months(
        self, restaurant_id: UUID, recipient_type: RecipientType
    ) -> dict[str, date]:
        """Most recent payout month per recipient key."""
        rows = (
            self.db.query(Payout.recipient_key, func.max(Payout.payout_month))
            .filter(
                Payout.restaurant_id == restaurant_id,
                Payout.recipient_type == recipient_type.value,
            )
            .group_by(Payout.recipient_key)
            .all()
        )
        return {key: month for key, month in rows}

    def create_batch(self, rows: Sequence[dict[str, Any]]) -> tuple[list[Payout], list[str]]:
        """Insert a month's payouts in one transaction.

        If the batch insert fails, falls back to inserting row by row and
        returns the rows that made it plus one error per rejected row.
        """
        payouts = [Payout(**row) for row in rows]
        try:
            self.db.add_all(payouts)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
        else:
            for payout in payouts:
                self.db.refresh(payout)
            return payouts, []

        created: list[Payout] = []
        errors: list[str] = []
        for row in rows:
            payout = Payout(**row)
            try:
                self.db.add(payout)
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                errors.append(f"{row['recipient_type']} {row['recipient_key']}: {exc.orig}")
                continue
            self.db.refresh(payout)
            created.append(payout)
        return created, errors

    def _conditional_update(
        self,
        payout_id: UUID,
        from_statuses: Sequence[str],
        *conditions: Any,
        **values: Any,
    ) -> bool:
        values["updated_at"] = utc_now()
        result = self.db.execute(
            update(Payout)
            .where(Payout.id == payout_id, Payout.status.in_(list(from_statuses)), *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1  # type: ignore[attr-defined]

    def claim_for_processing(
        self,
        payout_id: UUID,
        rail: str,
        submission_reference: str,
        expected_attempts: int | None = None,
    ) -> bool:
        """Take ownership of a pending payout before any external call.

        With ``expected_attempts`` the claim also fails if another run has
        started an attempt since the reference was built.
        """
        conditions = []
        if expected_attempts is not None:
            conditions.append(Payout.attempts == expected_attempts)
        return self._conditional_update(
            payout_id,
            [PayoutStatus.PENDING.value],
            *conditions,
            status=PayoutStatus.PROCESSING.value,
            rail=rail,
            submission_reference=submission_reference,
            transaction_reference=None,
            submitted_at=None,
            attempts=Payout.attempts + 1,
            failure_kind=None,
            failure_code=None,
            failure_reason=None,
        )

    def record_submission(self, payout_id: UUID, transaction_reference: str | None) -> bool:
        return self._conditional_update(
            payout_id,
            [PayoutStatus.PROCESSING.value],
            transaction_reference=transaction_reference,
            submitted_at=utc_now(),
        )

    def mark_completed(self, payout_id: UUID, provider_transaction_id: str | None) -> bool:
        return self._conditional_update(
            payout_id,
            [PayoutStatus.PROCESSING.value],
            status=PayoutStatus.COMPLETED.value,
            provider_transaction_id=provider_transaction_id,
            processed_at=utc_now(),
        )

    def mark_failed(
        self,
        payout_id: UUID,
        failure_kind: str,
        failure_code: str | None,
        failure_reason: str | None,
    ) -> bool:
        return self._conditional_update(
            payout_id,
            [PayoutStatus.PROCESSING.value],
            status=PayoutStatus.FAILED.value,
            failure_kind=failure_kind,
            failure_code=failure_code,
            failure_reason=failure_reason,
            processed_at=utc_now(),
        )

    def reset_failed(self, payout_id: UUID) -> bool:
        """Return a failed payout to pending for an explicit retry."""
        return self._conditional_update(
            payout_id,
            [PayoutStatus.FAILED.value],
            status=PayoutStatus.PENDING.value,
            transaction_reference=None,
            processed_at=None,
        )

    def refresh(self, payout: Payout) -> Payout:
        self.db.refresh(payout)
        return payout
