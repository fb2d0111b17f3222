from app.schemas.audit_log import AuditLogResponse
from app.schemas.bank_account import BankAccountCreate, BankAccountResponse, BankAccountUpdate
from app.schemas.distribution import (
    DistributionGroupConfig,
    DistributionGroupResponse,
    DistributionGroupsUpdate,
    DistributionPreview,
    DistributionRecordResponse,
    DistributionShare,
    DistributionSummaryItem,
    DistributionValidationResult,
)
from app.schemas.notification import (
    PayoutNotificationResponse,
    UpcomingNoticeRequest,
    UpcomingNoticeResult,
)
from app.schemas.payout import (
    DisbursementItemResult,
    DisbursementResult,
    GroupLedgerComparison,
    GroupPayoutCalculation,
    MonthlyGenerationRequest,
    MonthlyGenerationResult,
    MonthlyPayoutSummary,
    PayoutCalculation,
    PayoutGenerationResult,
    PayoutProcessRequest,
    PayoutResponse,
    ReconcileRequest,
    ReconcileResult,
    WaiterPayoutCalculation,
)
from app.schemas.restaurant import (
    CommissionRateResponse,
    CommissionRateUpdate,
    PayoutScheduleResponse,
    PayoutScheduleUpdate,
)
from app.schemas.tip import TipCreate, TipResponse
from app.schemas.webhooks import (
    BankTransferCallback,
    MpesaB2CResult,
    MpesaStkCallback,
    MpesaStkTimeout,
    SettlementCallback,
    WebhookAcknowledgement,
)

__all__ = [
    "AuditLogResponse",
    "BankAccountCreate",
    "BankAccountResponse",
    "BankAccountUpdate",
    "BankTransferCallback",
    "CommissionRateResponse",
    "CommissionRateUpdate",
    "DisbursementItemResult",
    "DisbursementResult",
    "DistributionGroupConfig",
    "DistributionGroupResponse",
    "DistributionGroupsUpdate",
    "DistributionPreview",
    "DistributionRecordResponse",
    "DistributionShare",
    "DistributionSummaryItem",
    "DistributionValidationResult",
    "GroupLedgerComparison",
    "GroupPayoutCalculation",
    "MonthlyGenerationRequest",
    "MonthlyGenerationResult",
    "MonthlyPayoutSummary",
    "MpesaB2CResult",
    "MpesaStkCallback",
    "MpesaStkTimeout",
    "PayoutCalculation",
    "PayoutGenerationResult",
    "PayoutNotificationResponse",
    "PayoutProcessRequest",
    "PayoutResponse",
    "PayoutScheduleResponse",
    "PayoutScheduleUpdate",
    "ReconcileRequest",
    "ReconcileResult",
    "SettlementCallback",
    "TipCreate",
    "TipResponse",
    "UpcomingNoticeRequest",
    "UpcomingNoticeResult",
    "WaiterPayoutCalculation",
    "WebhookAcknowledgement",
]
