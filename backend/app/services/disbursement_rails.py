"""Disbursement rail abstraction layer.

Waiter payouts go out over M-Pesa B2C (bulk mobile money), group payouts
over a bank transfer API. Both accept a submission synchronously and report
the final result through a callback.
"""

import logging
import re
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx

from app.core.config import settings
from app.models.payout import DisbursementRailName
from app.services.errors import RailSubmissionError

logger = logging.getLogger(__name__)

MPESA_URLS = {
    "sandbox": "https://sandbox.safaricom.co.ke",
    "production": "https://api.safaricom.co.ke",
}


@dataclass(frozen=True)
class DisbursementInstruction:
    """Everything a rail needs to move one payout; no ORM objects."""

    reference: str
    amount: Decimal
    destination: str
    account_name: str | None = None
    bank_code: str | None = None
    remarks: str = "Tip payout"


@dataclass
class RailSubmission:
    accepted: bool
    transaction_reference: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class RailStatus:
    """Result of a status query or callback.

    ``state`` is one of completed, failed or pending, or, for status queries
    only, ``not_found`` (the rail has no record of our reference) and
    ``unknown`` (there is nothing the rail can be asked by).
    """

    state: str
    provider_transaction_id: str | None = None
    failure_code: str | None = None
    failure_reason: str | None = None


def whole_units(amount: Decimal) -> Decimal:
    """Mobile money moves whole currency units only."""
    return Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def format_phone_number(phone_number: str) -> str:
    """Normalise a Kenyan mobile number to 2547XXXXXXXX / 2541XXXXXXXX."""
    cleaned = re.sub(r"\D", "", phone_number or "")
    if cleaned.startswith("254") and len(cleaned) == 12:
        normalised = cleaned
    elif cleaned.startswith("0") and len(cleaned) == 10:
        normalised = "254" + cleaned[1:]
    elif cleaned[:1] in ("7", "1") and len(cleaned) == 9:
        normalised = "254" + cleaned
    else:
        raise ValueError(f"Invalid phone number format: {phone_number}")
    if normalised[3] not in ("7", "1"):
        raise ValueError(f"Invalid phone number format: {phone_number}")
    return normalised


class RetryingTransport:
    """Sends rail requests, retrying network errors and 5xx responses.

    4xx responses are returned to the caller untouched; they mean the rail
    understood and refused the request.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client or httpx.Client(timeout=settings.RAIL_TIMEOUT_SECONDS)
        self.max_attempts = max_attempts or settings.RAIL_MAX_ATTEMPTS
        self.backoff_seconds = (
            settings.RAIL_RETRY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self.sleep = sleep

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        last_error = ""
        for attempt in range(self.max_attempts):
            if attempt:
                self.sleep(self.backoff_seconds * (2**attempt))
            try:
                response = self.client.request(method, url, **kwargs)
            except httpx.HTTPError as exc:
                logger.warning("Rail request to %s failed (attempt %d): %s", url, attempt + 1, exc)
                last_error = str(exc)
                continue
            if response.status_code >= 500:
                logger.warning(
                    "Rail request to %s returned %d (attempt %d)",
                    url,
                    response.status_code,
                    attempt + 1,
                )
                last_error = f"HTTP {response.status_code}"
                continue
            return response
        raise RailSubmissionError(
            f"Rail unavailable after {self.max_attempts} attempts: {last_error}",
            code="unavailable",
            retryable=True,
        )


def _json(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class DisbursementRail(ABC):
    """Abstract base class for disbursement rails."""

    @property
    @abstractmethod
    def rail_name(self) -> DisbursementRailName:
        """Return the rail enum value."""
        pass  # pragma: no cover

    @abstractmethod
    def submit(self, instruction: DisbursementInstruction) -> RailSubmission:
        """Submit a transfer; raise RailSubmissionError when it is not accepted."""
        pass  # pragma: no cover

    @abstractmethod
    def query_status(
        self, transaction_reference: str | None, reference: str | None = None
    ) -> RailStatus:
        """Ask the rail what became of a transfer.

        ``transaction_reference`` is the rail's own id stored at submission,
        ``reference`` the per-attempt reference we sent with it.
        """
        pass  # pragma: no cover


class MpesaB2CRail(DisbursementRail):
    """M-Pesa Daraja B2C ("BusinessPayment") rail."""

    def __init__(self, transport: RetryingTransport | None = None, environment: str | None = None):
        self.transport = transport or RetryingTransport()
        self.environment = environment or settings.mpesa_environment
        self._base_url = MPESA_URLS.get(self.environment, MPESA_URLS["sandbox"])
        self._token: str | None = None
        self._token_expires_at: datetime | None = None
        self._token_lock = threading.Lock()

    @property
    def rail_name(self) -> DisbursementRailName:
        return DisbursementRailName.MOBILE_MONEY

    def _access_token(self) -> str:
        with self._token_lock:
            now = datetime.now(UTC)
            if self._token and self._token_expires_at and now < self._token_expires_at:
                return self._token

            response = self.transport.request(
                "GET",
                f"{self._base_url}/oauth/v1/generate",
                params={"grant_type": "client_credentials"},
                auth=(settings.mpesa_consumer_key, settings.mpesa_consumer_secret),
            )
            data = _json(response)
            if response.status_code != 200 or "access_token" not in data:
                raise RailSubmissionError(
                    f"M-Pesa auth failed: HTTP {response.status_code}", code="auth_failed"
                )
            # Refresh five minutes before the provider expires the token.
            expires_in = int(data.get("expires_in", 3599))
            self._token = str(data["access_token"])
            self._token_expires_at = now + timedelta(seconds=max(expires_in - 300, 0))
            return self._token

    def _require_credentials(self) -> None:
        if not settings.mpesa_initiator_name or not settings.mpesa_security_credential:
            raise RailSubmissionError(
                "B2C configuration missing: initiator name or security credential",
                code="not_configured",
            )

    def submit(self, instruction: DisbursementInstruction) -> RailSubmission:
        self._require_credentials()
        try:
            phone = format_phone_number(instruction.destination)
        except ValueError as exc:
            raise RailSubmissionError(str(exc), code="invalid_destination") from exc

        token = self._access_token()
        response = self.transport.request(
            "POST",
            f"{self._base_url}/mpesa/b2c/v1/paymentrequest",
            headers={"Authorization": f"Bearer {token}"},
            json={
                "InitiatorName": settings.mpesa_initiator_name,
                "SecurityCredential": settings.mpesa_security_credential,
                "CommandID": "BusinessPayment",
                "Amount": int(whole_units(instruction.amount)),
                "PartyA": settings.mpesa_b2c_shortcode,
                "PartyB": phone,
                "Remarks": instruction.remarks,
                "QueueTimeOutURL": settings.mpesa_b2c_timeout_url,
                "ResultURL": settings.mpesa_b2c_result_url,
                "Occasion": instruction.reference,
            },
        )
        data = _json(response)
        if response.status_code >= 400 or str(data.get("ResponseCode")) != "0":
            description = (
                data.get("ResponseDescription")
                or data.get("errorMessage")
                or f"HTTP {response.status_code}"
            )
            raise RailSubmissionError(
                f"M-Pesa B2C failed: {description}",
                code=str(data.get("ResponseCode") or data.get("errorCode") or response.status_code),
            )
        return RailSubmission(
            accepted=True,
            transaction_reference=data.get("ConversationID"),
            raw=data,
        )

    def query_status(
        self, transaction_reference: str | None, reference: str | None = None
    ) -> RailStatus:
        """Request a Daraja transaction status query for a B2C payment.

        Daraja accepts the query synchronously and posts the answer to the
        result URL, where it is applied like any other B2C result. The
        ``Occasion`` carries our reference so the answer can be correlated.
        """
        if not transaction_reference:
            # B2C payments are only addressable by the conversation id.
            return RailStatus(state="unknown")
        self._require_credentials()

        token = self._access_token()
        response = self.transport.request(
            "POST",
            f"{self._base_url}/mpesa/transactionstatus/v1/query",
            headers={"Authorization": f"Bearer {token}"},
            json={
                "Initiator": settings.mpesa_initiator_name,
                "SecurityCredential": settings.mpesa_security_credential,
                "CommandID": "TransactionStatusQuery",
                "OriginalConversationID": transaction_reference,
                "PartyA": settings.mpesa_b2c_shortcode,
                "IdentifierType": "4",
                "ResultURL": settings.mpesa_b2c_result_url,
                "QueueTimeOutURL": settings.mpesa_b2c_timeout_url,
                "Remarks": "Payout status",
                "Occasion": reference or transaction_reference,
            },
        )
        data = _json(response)
        if response.status_code >= 400 or str(data.get("ResponseCode")) != "0":
            description = (
                data.get("ResponseDescription")
                or data.get("errorMessage")
                or f"HTTP {response.status_code}"
            )
            raise RailSubmissionError(
                f"M-Pesa status query failed: {description}",
                code=str(data.get("ResponseCode") or data.get("errorCode") or response.status_code),
            )
        return RailStatus(state="pending")


class BankTransferRail(DisbursementRail):
    """Bank transfer API rail (Pesawise-style JSON API)."""

    COMPLETED_STATES = ("completed", "success", "successful")
    FAILED_STATES = ("failed", "reversed", "rejected")

    def __init__(
        self,
        transport: RetryingTransport | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
    ):
        self.transport = transport or RetryingTransport()
        self.base_url = (base_url or settings.bank_transfer_base_url).rstrip("/")
        self.api_key = api_key or settings.bank_transfer_api_key

    @property
    def rail_name(self) -> DisbursementRailName:
        return DisbursementRailName.BANK_TRANSFER

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}

    def submit(self, instruction: DisbursementInstruction) -> RailSubmission:
        response = self.transport.request(
            "POST",
            f"{self.base_url}/transfers",
            headers=self._headers(),
            json={
                "account_number": instruction.destination,
                "account_name": instruction.account_name,
                "bank_code": instruction.bank_code,
                "amount": str(instruction.amount),
                "reference": instruction.reference,
                "narration": instruction.remarks,
                "currency": settings.CURRENCY,
                "callback_url": settings.bank_transfer_callback_url,
            },
        )
        data = _json(response)
        if response.status_code >= 400 or data.get("status") != "success":
            raise RailSubmissionError(
                str(data.get("message") or f"Bank transfer failed: HTTP {response.status_code}"),
                code=str(data.get("code") or response.status_code),
            )
        body = data.get("data") or {}
        return RailSubmission(
            accepted=True,
            transaction_reference=body.get("transaction_id"),
            raw=data,
        )

    def query_status(
        self, transaction_reference: str | None, reference: str | None = None
    ) -> RailStatus:
        """Look a transfer up by its transfer id, falling back to our reference."""
        if transaction_reference:
            response = self.transport.request(
                "GET", f"{self.base_url}/transfers/{transaction_reference}", headers=self._headers()
            )
        elif reference:
            response = self.transport.request(
                "GET",
                f"{self.base_url}/transfers",
                params={"reference": reference},
                headers=self._headers(),
            )
        else:
            return RailStatus(state="unknown")

        data = _json(response)
        if response.status_code == 404:
            return RailStatus(state="not_found")
        if response.status_code >= 400:
            raise RailSubmissionError(
                str(data.get("message") or f"Status query failed: HTTP {response.status_code}"),
                code=str(response.status_code),
            )
        body = data.get("data") or {}
        if isinstance(body, list):
            if not body:
                return RailStatus(state="not_found")
            body = body[0]
        state = str(body.get("status", "")).lower()
        if state in self.COMPLETED_STATES:
            return RailStatus(
                state="completed",
                provider_transaction_id=body.get("transaction_id") or transaction_reference,
            )
        if state in self.FAILED_STATES:
            return RailStatus(
                state="failed",
                failure_code=state,
                failure_reason=body.get("failure_reason") or data.get("message"),
            )
        return RailStatus(state="pending")


def get_disbursement_rail(name: DisbursementRailName) -> DisbursementRail:
    """Factory function to get a rail instance."""
    if name == DisbursementRailName.MOBILE_MONEY:
        return MpesaB2CRail()
    if name == DisbursementRailName.BANK_TRANSFER:
        return BankTransferRail()
    raise ValueError(f"Unsupported disbursement rail: {name}")
