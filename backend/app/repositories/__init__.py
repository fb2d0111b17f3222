from app.repositories.audit_log_repository import AuditLogRepository
from app.repositories.bank_account_repository import BankAccountRepository
from app.repositories.distribution_group_repository import DistributionGroupRepository
from app.repositories.distribution_record_repository import DistributionRecordRepository
from app.repositories.notification_repository import NotificationRepository
from app.repositories.payout_repository import PayoutRepository
from app.repositories.restaurant_repository import RestaurantRepository
from app.repositories.tip_repository import TipRepository
from app.repositories.waiter_repository import WaiterRepository
from app.repositories.webhook_log_repository import WebhookLogRepository

__all__ = [
    "AuditLogRepository",
    "BankAccountRepository",
    "DistributionGroupRepository",
    "DistributionRecordRepository",
    "NotificationRepository",
    "PayoutRepository",
    "RestaurantRepository",
    "TipRepository",
    "WaiterRepository",
    "WebhookLogRepository",
]
