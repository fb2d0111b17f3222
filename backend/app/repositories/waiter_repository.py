"""Waiter repository for data access."""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.waiter import Waiter


class WaiterRepository:
    """Repository for Waiter model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, waiter_id: UUID, restaurant_id: UUID) -> Waiter | None:
        return (
            self.db.query(Waiter)
            .filter(Waiter.id == waiter_id, Waiter.restaurant_id == restaurant_id)
            .first()
        )

    def get_by_ids(self, waiter_ids: Iterable[UUID], restaurant_id: UUID) -> dict[UUID, Waiter]:
        """Get waiters keyed by id, restricted to one restaurant."""
        ids = list(waiter_ids)
        if not ids:
            return {}
        waiters = (
            self.db.query(Waiter)
            .filter(Waiter.id.in_(ids), Waiter.restaurant_id == restaurant_id)
            .all()
        )
        return {w.id: w for w in waiters}  # type: ignore[misc]

    def create(self, restaurant_id: UUID, name: str, **fields: object) -> Waiter:
        waiter = Waiter(restaurant_id=restaurant_id, name=name, **fields)
        self.db.add(waiter)
        self.db.commit()
        self.db.refresh(waiter)
        return waiter
