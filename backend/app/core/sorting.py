"""Whitelisted ``field:direction`` ordering for list endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

DIRECTIONS = ("asc", "desc")


class InvalidSortError(ValueError):
    def __init__(self, order_by: str, allowed: list[str]):
        self.order_by = order_by
        self.allowed = allowed
        super().__init__(
            f"Invalid order_by '{order_by}', expected field:direction with field one of "
            f"{', '.join(allowed)}"
        )


@dataclass(frozen=True)
class SortOptions:
    """Columns a list may be ordered by, keyed by their public name.

    ``tiebreak`` is appended after the requested column so that pages stay
    stable when the sort column has duplicates (amounts, statuses, months).
    """

    fields: dict[str, Any]
    default: str
    tiebreak: Any = None

    def parse(self, order_by: str | None) -> tuple[str, str]:
        """Split and validate ``order_by``; a missing direction means ascending."""
        name, _, direction = (order_by or self.default).partition(":")
        direction = direction or "asc"
        if name not in self.fields or direction not in DIRECTIONS:
            raise InvalidSortError(order_by or self.default, sorted(self.fields))
        return name, direction

    def apply(self, query: Query, order_by: str | None) -> Query:  # type: ignore[type-arg]
        name, direction = self.parse(order_by)
        order = asc if direction == "asc" else desc
        query = query.order_by(order(self.fields[name]))
        if self.tiebreak is not None:
            query = query.order_by(self.tiebreak)
        return query
