"""Payout model - a monthly obligation to pay one recipient."""

from enum import Enum

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)

from app.core.database import Base
from app.models.shared import Money, UUIDType, generate_uuid


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_PAYOUT_STATUSES = (PayoutStatus.COMPLETED.value, PayoutStatus.FAILED.value)


class RecipientType(str, Enum):
    WAITER = "waiter"
    GROUP = "group"


class DisbursementRailName(str, Enum):
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"


class FailureKind(str, Enum):
    """Distinguishes a rejected submission from a reported settlement failure."""

    SUBMISSION = "submission"
    SETTLEMENT = "settlement"


class Payout(Base):
    """Payout model - created by monthly aggregation, mutated by disbursement."""

    __tablename__ = "payouts"
    __table_args__ = (
        UniqueConstraint(
            "restaurant_id",
            "payout_month",
            "recipient_type",
            "recipient_key",
            name="uq_payouts_recipient_month",
        ),
        Index("ix_payouts_status", "status"),
        Index("ix_payouts_transaction_reference", "transaction_reference"),
        Index("ix_payouts_submission_reference", "submission_reference"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    restaurant_id = Column(
        UUIDType, ForeignKey("restaurants.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    # Recipient
    recipient_type = Column(String(20), nullable=False)
    waiter_id = Column(
        UUIDType, ForeignKey("waiters.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    group_name = Column(String(50), nullable=True)
    # Waiter id or group name; part of the one-payout-per-recipient key
    recipient_key = Column(String(100), nullable=False)

    amount = Column(Money(), nullable=False)
    tip_count = Column(Integer, nullable=False, default=0)
    payout_month = Column(Date, nullable=False, index=True)
    period_start = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=PayoutStatus.PENDING.value)

    # Disbursement tracking
    rail = Column(String(20), nullable=True)
    submission_reference = Column(String(100), nullable=True)
    transaction_reference = Column(String(255), nullable=True)
    provider_transaction_id = Column(String(255), nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    failure_kind = Column(String(20), nullable=True)
    failure_code = Column(String(50), nullable=True)
    failure_reason = Column(Text, nullable=True)
    payout_metadata = Column(JSON, nullable=True, default=dict)

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
