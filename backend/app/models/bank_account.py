from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class BankAccount(Base):
    """Verified disbursement destination for a distribution group."""

    __tablename__ = "bank_accounts"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "group_name", name="uq_bank_accounts_group"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    restaurant_id = Column(
        UUIDType, ForeignKey("restaurants.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    group_name = Column(String(50), nullable=False)
    account_name = Column(String(255), nullable=False)
    account_number = Column(String(50), nullable=False)
    bank_name = Column(String(255), nullable=False)
    bank_code = Column(String(20), nullable=False)
    branch_code = Column(String(20), nullable=True)
    swift_code = Column(String(20), nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
