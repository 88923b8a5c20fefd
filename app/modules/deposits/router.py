"""Deposit API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.core.config import get_settings
from app.core.enums import ActorTypeEnum
from app.modules.deposits.schemas import (
    DepositCaptureRequest,
    DepositRead,
    DepositRefundRequest,
    DepositRequestCreate,
)
from app.modules.deposits.service import DepositService, PaymentEvidence, get_deposit_service
from app.shared.actor import Actor, require_actor_types

router = APIRouter(prefix="/bookings/{booking_id}/deposit", tags=["deposits"])

manage_actor = require_actor_types(ActorTypeEnum.PROVIDER, ActorTypeEnum.ADMIN)


@router.get("", response_model=DepositRead)
async def get_deposit(
    booking_id: UUID,
    service: DepositService = Depends(get_deposit_service),
    actor: Actor = Depends(manage_actor),
) -> DepositRead:
    """Current deposit state, `none` when nothing was requested."""
    hold = await service.get_hold(booking_id, actor)
    return DepositRead.from_hold(booking_id, hold)


@router.post("", response_model=DepositRead, status_code=status.HTTP_201_CREATED)
async def request_deposit(
    booking_id: UUID,
    payload: DepositRequestCreate,
    service: DepositService = Depends(get_deposit_service),
    actor: Actor = Depends(manage_actor),
) -> DepositRead:
    """Request a deposit from the client."""
    currency = payload.currency or get_settings().default_currency
    hold = await service.request_deposit(booking_id, payload.amount_cents, currency, actor)
    return DepositRead.model_validate(hold)


@router.post("/capture", response_model=DepositRead)
async def capture_deposit(
    booking_id: UUID,
    payload: DepositCaptureRequest,
    service: DepositService = Depends(get_deposit_service),
    actor: Actor = Depends(manage_actor),
) -> DepositRead:
    """Record that the client paid the deposit."""
    evidence = PaymentEvidence(method=payload.method, proof_reference=payload.proof_reference)
    hold = await service.capture_deposit(booking_id, evidence, actor)
    return DepositRead.model_validate(hold)


@router.post("/release", response_model=DepositRead)
async def release_deposit(
    booking_id: UUID,
    service: DepositService = Depends(get_deposit_service),
    actor: Actor = Depends(manage_actor),
) -> DepositRead:
    """Release the rolled deposit to the provider."""
    hold = await service.release_manually(booking_id, actor)
    return DepositRead.model_validate(hold)


@router.post("/refund", response_model=DepositRead)
async def refund_deposit(
    booking_id: UUID,
    payload: DepositRefundRequest,
    service: DepositService = Depends(get_deposit_service),
    actor: Actor = Depends(manage_actor),
) -> DepositRead:
    """Refund the rolled deposit to the client."""
    hold = await service.refund(booking_id, actor, payload.reason)
    return DepositRead.model_validate(hold)


@router.post("/waive-reschedule-fee", response_model=DepositRead)
async def waive_reschedule_fee(
    booking_id: UUID,
    service: DepositService = Depends(get_deposit_service),
    actor: Actor = Depends(manage_actor),
) -> DepositRead:
    hold = await service.waive_reschedule_fee(booking_id, actor)
    return DepositRead.model_validate(hold)
