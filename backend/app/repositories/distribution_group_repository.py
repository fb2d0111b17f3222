"""DistributionGroup repository for data access."""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.distribution_group import DistributionGroup


class DistributionGroupRepository:
    """Repository for DistributionGroup model."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(self, restaurant_id: UUID) -> list[DistributionGroup]:
        return (
            self.db.query(DistributionGroup)
            .filter(DistributionGroup.restaurant_id == restaurant_id)
            .order_by(DistributionGroup.percentage.desc(), DistributionGroup.group_name.asc())
            .all()
        )

    def replace_all(
        self,
        restaurant_id: UUID,
        groups: Iterable[tuple[str, Decimal, str | None]],
    ) -> list[DistributionGroup]:
        """Replace a restaurant's group set in one transaction."""
        try:
            self.db.query(DistributionGroup).filter(
                DistributionGroup.restaurant_id == restaurant_id
            ).delete(synchronize_session=False)
            for group_name, percentage, recipient_account in groups:
                self.db.add(
                    DistributionGroup(
                        restaurant_id=restaurant_id,
                        group_name=group_name,
                        percentage=percentage,
                        recipient_account=recipient_account,
                    )
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return self.get_all(restaurant_id)
