"""DistributionRecord model - one group's share of one restaurant-wide tip."""

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, UniqueConstraint, func

from app.core.database import Base
from app.models.shared import Money, UUIDType, generate_uuid


class DistributionRecord(Base):
    """Immutable once written; the unique key makes redistribution a no-op."""

    __tablename__ = "tip_distributions"
    __table_args__ = (
        UniqueConstraint("tip_id", "group_name", name="uq_tip_distributions_tip_group"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    restaurant_id = Column(
        UUIDType, ForeignKey("restaurants.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    tip_id = Column(
        UUIDType, ForeignKey("tips.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    group_name = Column(String(50), nullable=False)
    percentage = Column(Numeric(5, 2), nullable=False)
    amount = Column(Money(), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
