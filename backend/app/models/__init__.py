from app.models.audit_log import AuditLog
from app.models.bank_account import BankAccount
from app.models.distribution_group import DistributionGroup
from app.models.distribution_record import DistributionRecord
from app.models.notification import NotificationKind, PayoutNotification
from app.models.payout import (
    DisbursementRailName,
    FailureKind,
    Payout,
    PayoutStatus,
    RecipientType,
)
from app.models.restaurant import Restaurant
from app.models.tip import PaymentMethod, Tip, TipStatus, TipType
from app.models.waiter import Waiter
from app.models.webhook_log import WebhookLog

__all__ = [
    "AuditLog",
    "BankAccount",
    "DisbursementRailName",
    "DistributionGroup",
    "DistributionRecord",
    "FailureKind",
    "NotificationKind",
    "PaymentMethod",
    "Payout",
    "PayoutNotification",
    "PayoutStatus",
    "RecipientType",
    "Restaurant",
    "Tip",
    "TipStatus",
    "TipType",
    "Waiter",
    "WebhookLog",
]
