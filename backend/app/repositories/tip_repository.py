"""Tip repository for data access."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.shared import utc_now
from app.models.tip import Tip, TipStatus, TipType


class TipRepository:
    """Repository for Tip model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, tip_id: UUID, restaurant_id: UUID) -> Tip | None:
        return (
            self.db.query(Tip)
            .filter(Tip.id == tip_id, Tip.restaurant_id == restaurant_id)
            .first()
        )

    def get_by_correlation_id(self, correlation_id: str) -> Tip | None:
        """Look up the tip a provider callback refers to.

        Callbacks carry no tenant id, so this is the one unscoped lookup; the
        returned tip's ``restaurant_id`` scopes every write that follows.
        """
        return self.db.query(Tip).filter(Tip.correlation_id == correlation_id).first()

    def get_all(
        self,
        restaurant_id: UUID,
        skip: int = 0,
        limit: int = 100,
        status: TipStatus | None = None,
        waiter_id: UUID | None = None,
    ) -> list[Tip]:
        query = self.db.query(Tip).filter(Tip.restaurant_id == restaurant_id)
        if status:
            query = query.filter(Tip.payment_status == status.value)
        if waiter_id:
            query = query.filter(Tip.waiter_id == waiter_id)
        return query.order_by(Tip.created_at.desc()).offset(skip).limit(limit).all()

    def create(self, **fields: Any) -> Tip:
        tip = Tip(**fields)
        self.db.add(tip)
        self.db.commit()
        self.db.refresh(tip)
        return tip

    def transition(
        self,
        tip_id: UUID,
        restaurant_id: UUID,
        from_statuses: Sequence[str],
        to_status: TipStatus,
        **values: Any,
    ) -> bool:
        """Move a tip between states with a single conditional update.

        Returns False when the tip was no longer in one of ``from_statuses``,
        i.e. another delivery already settled it.
        """
        values["payment_status"] = to_status.value
        values["updated_at"] = utc_now()
        result = self.db.execute(
            update(Tip)
            .where(
                Tip.id == tip_id,
                Tip.restaurant_id == restaurant_id,
                Tip.payment_status.in_(list(from_statuses)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1  # type: ignore[attr-defined]

    def get_completed(
        self,
        restaurant_id: UUID,
        tip_type: TipType,
        end: datetime,
        start: datetime | None = None,
    ) -> list[Tip]:
        """Completed tips of one type created in ``[start, end)``."""
        query = self.db.query(Tip).filter(
            Tip.restaurant_id == restaurant_id,
            Tip.tip_type == tip_type.value,
            Tip.payment_status == TipStatus.COMPLETED.value,
            Tip.created_at < end,
        )
        if start is not None:
            query = query.filter(Tip.created_at >= start)
        if tip_type == TipType.WAITER:
            query = query.filter(Tip.waiter_id.isnot(None))
        return query.order_by(Tip.created_at.asc()).all()
