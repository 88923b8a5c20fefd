"""Card-processor webhook router."""

from __future__ import annotations

import hashlib
import hmac
import logging

from fastapi import APIRouter, Depends, Header, Request
from pydantic import ValidationError

from app.core.config import get_settings
from app.modules.deposits.service import DepositService, PaymentEvidence, get_deposit_service
from app.modules.payments.schemas import PaymentWebhookAck, PaymentWebhookEvent
from app.shared.exceptions import BusinessRuleException, UnauthorizedException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


def compute_signature(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(compute_signature(secret, body), signature.strip().lower())


@router.post("/webhook", response_model=PaymentWebhookAck)
async def payment_webhook(
    request: Request,
    x_webhook_signature: str | None = Header(default=None),
    service: DepositService = Depends(get_deposit_service),
) -> PaymentWebhookAck:
    """Apply a processor capture or refund to the booking's deposit."""
    body = await request.body()
    if not verify_signature(get_settings().payment_webhook_secret, body, x_webhook_signature):
        logger.warning("Rejected payment webhook with invalid signature")
        raise UnauthorizedException("Invalid webhook signature")

    try:
        event = PaymentWebhookEvent.model_validate_json(body)
    except ValidationError as exc:
        raise BusinessRuleException(f"Invalid webhook payload: {exc.error_count()} error(s)") from exc

    if event.event_type == "deposit.captured":
        evidence = PaymentEvidence(method=event.method, proof_reference=event.reference)
        hold = await service.capture_from_processor(event.booking_id, evidence)
    else:
        hold = await service.refund_from_processor(event.booking_id, event.reason)

    logger.info("Payment webhook %s applied to booking %s", event.event_type, event.booking_id)
    return PaymentWebhookAck(booking_id=event.booking_id, deposit_status=hold.status)
