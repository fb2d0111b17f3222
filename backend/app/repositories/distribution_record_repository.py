"""DistributionRecord repository for data access."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.distribution_record import DistributionRecord
from app.models.tip import Tip


class DistributionRecordRepository:
    """Repository for DistributionRecord model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_tip(self, tip_id: UUID, restaurant_id: UUID) -> list[DistributionRecord]:
        return (
            self.db.query(DistributionRecord)
            .filter(
                DistributionRecord.tip_id == tip_id,
                DistributionRecord.restaurant_id == restaurant_id,
            )
            .order_by(DistributionRecord.group_name.asc())
            .all()
        )

    def insert_if_absent(
        self,
        restaurant_id: UUID,
        tip_id: UUID,
        group_name: str,
        percentage: Decimal,
        amount: Decimal,
    ) -> bool:
        """Insert one share inside a savepoint.

        Returns False when a record for (tip, group) already exists; the
        unique constraint decides, not a prior read.
        """
        try:
            with self.db.begin_nested():
                self.db.add(
                    DistributionRecord(
                        restaurant_id=restaurant_id,
                        tip_id=tip_id,
                        group_name=group_name,
                        percentage=percentage,
                        amount=amount,
                    )
                )
        except IntegrityError:
            return False
        return True

    def commit(self) -> None:
        self.db.commit()

    def sum_by_group(
        self,
        restaurant_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[tuple[str, int, Decimal]]:
        """Ledger totals per group for tips created in ``[start, end)``."""
        query = (
            self.db.query(
                DistributionRecord.group_name,
                func.count(DistributionRecord.id),
                func.coalesce(func.sum(DistributionRecord.amount), 0),
            )
            .join(Tip, Tip.id == DistributionRecord.tip_id)
            .filter(DistributionRecord.restaurant_id == restaurant_id)
        )
        if start is not None:
            query = query.filter(Tip.created_at >= start)
        if end is not None:
            query = query.filter(Tip.created_at < end)
        rows = query.group_by(DistributionRecord.group_name).all()
        return [(name, int(count), Decimal(str(total))) for name, count, total in rows]
