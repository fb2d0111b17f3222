"""Inbound provider callback payloads.

Every callback is validated here before any field reaches the settlement or
disbursement state machines.
"""

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class SettlementCallback(BaseModel):
    """Provider-neutral settlement callback."""

    model_config = ConfigDict(populate_by_name=True)

    correlation_id: str = Field(alias="correlationId", min_length=1)
    result_status: Literal["success", "failed", "cancelled", "timeout"] = Field(
        alias="resultStatus"
    )
    settled_amount: Decimal | None = Field(default=None, alias="settledAmount", ge=0)
    receipt_id: str | None = Field(default=None, alias="receiptId")
    result_code: str | None = Field(default=None, alias="resultCode")
    description: str | None = None


# --- M-Pesa STK push (collection) ---


class StkCallbackItem(BaseModel):
    Name: str
    Value: Any = None


class StkCallbackMetadata(BaseModel):
    Item: list[StkCallbackItem] = Field(default_factory=list)


class StkCallback(BaseModel):
    MerchantRequestID: str = Field(min_length=1)
    CheckoutRequestID: str = Field(min_length=1)
    ResultCode: int
    ResultDesc: str = ""
    CallbackMetadata: StkCallbackMetadata | None = None


class StkCallbackBody(BaseModel):
    stkCallback: StkCallback


class MpesaStkCallback(BaseModel):
    Body: StkCallbackBody


class MpesaStkTimeout(BaseModel):
    CheckoutRequestID: str = Field(min_length=1)
    MerchantRequestID: str | None = None


# --- M-Pesa B2C (disbursement) ---


class B2CResultParameter(BaseModel):
    Key: str
    Value: Any = None


class B2CResultParameters(BaseModel):
    ResultParameter: list[B2CResultParameter] = Field(default_factory=list)


class B2CReferenceData(BaseModel):
    ReferenceItem: B2CResultParameter | list[B2CResultParameter] | None = None

    def as_dict(self) -> dict[str, Any]:
        entries = self.ReferenceItem
        if entries is None:
            return {}
        if isinstance(entries, B2CResultParameter):
            entries = [entries]
        return {item.Key: item.Value for item in entries}


class B2CResult(BaseModel):
    ResultType: int | None = None
    ResultCode: int
    ResultDesc: str = ""
    OriginatorConversationID: str | None = None
    ConversationID: str = Field(min_length=1)
    TransactionID: str | None = None
    ResultParameters: B2CResultParameters | None = None
    ReferenceData: B2CReferenceData | None = None

    def parameters(self) -> dict[str, Any]:
        if self.ResultParameters is None:
            return {}
        return {p.Key: p.Value for p in self.ResultParameters.ResultParameter}


class MpesaB2CResult(BaseModel):
    Result: B2CResult


# --- Bank transfer ---


class BankTransferCallback(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reference: str = Field(min_length=1)
    status: Literal["completed", "success", "failed", "reversed"]
    provider_transfer_id: str | None = Field(default=None, alias="providerTransferId")
    failure_code: str | None = Field(default=None, alias="failureCode")
    failure_reason: str | None = Field(default=None, alias="failureReason")


class WebhookAcknowledgement(BaseModel):
    ResultCode: int = 0
    ResultDesc: str = "Accepted"
