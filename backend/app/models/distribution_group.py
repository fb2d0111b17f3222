from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, UniqueConstraint, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class DistributionGroup(Base):
    """A named share of a restaurant's pool of restaurant-wide tips."""

    __tablename__ = "distribution_groups"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "group_name", name="uq_distribution_groups_name"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    restaurant_id = Column(
        UUIDType, ForeignKey("restaurants.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    group_name = Column(String(50), nullable=False)
    percentage = Column(Numeric(5, 2), nullable=False)
    recipient_account = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
