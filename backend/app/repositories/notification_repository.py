"""PayoutNotification repository for data access."""

from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.notification import PayoutNotification


class NotificationRepository:
    """Repository for PayoutNotification model."""

    def __init__(self, db: Session):
        self.db = db

    def create_once(self, dedupe_key: str, **fields: Any) -> PayoutNotification | None:
        """Queue a notification intent unless one with the same key exists.

        Returns None for a duplicate.
        """
        notification = PayoutNotification(dedupe_key=dedupe_key, **fields)
        try:
            with self.db.begin_nested():
                self.db.add(notification)
        except IntegrityError:
            return None
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def get_all(
        self,
        restaurant_id: UUID | None = None,
        kind: str | None = None,
        payout_id: UUID | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[PayoutNotification]:
        query = self.db.query(PayoutNotification)
        if restaurant_id is not None:
            query = query.filter(PayoutNotification.restaurant_id == restaurant_id)
        if kind is not None:
            query = query.filter(PayoutNotification.kind == kind)
        if payout_id is not None:
            query = query.filter(PayoutNotification.payout_id == payout_id)
        return (
            query.order_by(PayoutNotification.created_at.desc()).offset(skip).limit(limit).all()
        )
