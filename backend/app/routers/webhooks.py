"""Provider callback endpoints.

Every endpoint answers ``{"ResultCode": 0, ...}`` whatever happened, so the
provider stops retrying; outcomes are recorded in ``webhook_logs``.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.webhooks import WebhookAcknowledgement
from app.services.disbursement_service import DisbursementOrchestrator
from app.services.settlement_service import SettlementReconciler
from app.services.webhook_service import CallbackHandler, WebhookService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_payload(request: Request) -> dict[str, Any]:
    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        logger.warning("Callback to %s is not valid JSON", request.url.path)
        return {"_raw": body.decode("utf-8", errors="replace")}
    return payload if isinstance(payload, dict) else {"_raw": payload}


def _handle(
    db: Session,
    provider: str,
    event_type: str,
    payload: dict[str, Any],
    handler: CallbackHandler,
    description: str,
) -> WebhookAcknowledgement:
    WebhookService(db).process(provider, event_type, payload, handler)
    return WebhookAcknowledgement(ResultCode=0, ResultDesc=description)


@router.post("/settlement", response_model=WebhookAcknowledgement)
async def settlement_callback(
    request: Request, db: Session = Depends(get_db)
) -> WebhookAcknowledgement:
    """Provider-neutral settlement callback for collected tips."""
    payload = await _read_payload(request)
    reconciler = SettlementReconciler(db)
    return _handle(
        db, "generic", "settlement", payload, reconciler.handle_settlement_callback, "Accepted"
    )


@router.post("/mpesa/callback", response_model=WebhookAcknowledgement)
async def mpesa_stk_callback(
    request: Request, db: Session = Depends(get_db)
) -> WebhookAcknowledgement:
    """M-Pesa STK push result for a tip payment."""
    payload = await _read_payload(request)
    reconciler = SettlementReconciler(db)
    return _handle(db, "mpesa", "stk_callback", payload, reconciler.handle_stk_callback, "Accepted")


@router.post("/mpesa/timeout", response_model=WebhookAcknowledgement)
async def mpesa_stk_timeout(
    request: Request, db: Session = Depends(get_db)
) -> WebhookAcknowledgement:
    payload = await _read_payload(request)
    reconciler = SettlementReconciler(db)
    return _handle(
        db,
        "mpesa",
        "stk_timeout",
        payload,
        reconciler.handle_stk_timeout,
        "Timeout processed successfully",
    )


@router.post("/mpesa/b2c/result", response_model=WebhookAcknowledgement)
async def mpesa_b2c_result(
    request: Request, db: Session = Depends(get_db)
) -> WebhookAcknowledgement:
    """M-Pesa B2C result for a waiter payout."""
    payload = await _read_payload(request)
    orchestrator = DisbursementOrchestrator(db)
    return _handle(
        db,
        "mpesa",
        "b2c_result",
        payload,
        orchestrator.handle_mobile_money_result,
        "Result processed successfully",
    )


@router.post("/mpesa/b2c/timeout", response_model=WebhookAcknowledgement)
async def mpesa_b2c_timeout(
    request: Request, db: Session = Depends(get_db)
) -> WebhookAcknowledgement:
    payload = await _read_payload(request)
    orchestrator = DisbursementOrchestrator(db)
    return _handle(
        db,
        "mpesa",
        "b2c_timeout",
        payload,
        orchestrator.handle_mobile_money_timeout,
        "Timeout processed successfully",
    )


@router.post("/bank-transfer", response_model=WebhookAcknowledgement)
async def bank_transfer_callback(
    request: Request, db: Session = Depends(get_db)
) -> WebhookAcknowledgement:
    """Bank transfer status callback for a group payout."""
    payload = await _read_payload(request)
    orchestrator = DisbursementOrchestrator(db)
    return _handle(
        db,
        "bank_transfer",
        "transfer_status",
        payload,
        orchestrator.handle_bank_transfer_callback,
        "Accepted",
    )
