"""Remainder API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.core.config import get_settings
from app.core.enums import ActorTypeEnum
from app.modules.remainder.schemas import RemainderCreate, RemainderRead, RemainderSettle
from app.modules.remainder.service import RemainderService, get_remainder_service
from app.shared.actor import Actor, require_actor_types

router = APIRouter(prefix="/bookings/{booking_id}/remainder", tags=["remainder"])

manage_actor = require_actor_types(ActorTypeEnum.PROVIDER, ActorTypeEnum.ADMIN)


@router.get("", response_model=RemainderRead)
async def get_remainder(
    booking_id: UUID,
    service: RemainderService = Depends(get_remainder_service),
    actor: Actor = Depends(manage_actor),
) -> RemainderRead:
    view = await service.get_balance(booking_id, actor)
    return RemainderRead.from_view(view)


@router.post("", response_model=RemainderRead, status_code=status.HTTP_201_CREATED)
async def open_remainder(
    booking_id: UUID,
    payload: RemainderCreate,
    service: RemainderService = Depends(get_remainder_service),
    actor: Actor = Depends(manage_actor),
) -> RemainderRead:
    """Record the job total for a booking created without one."""
    currency = payload.currency or get_settings().default_currency
    view = await service.open_balance(booking_id, payload.total_amount_cents, currency, actor)
    return RemainderRead.from_view(view)


@router.post("/settle", response_model=RemainderRead)
async def settle_remainder(
    booking_id: UUID,
    payload: RemainderSettle,
    service: RemainderService = Depends(get_remainder_service),
    actor: Actor = Depends(manage_actor),
) -> RemainderRead:
    """Record how the remainder was paid."""
    view = await service.record_settlement(booking_id, payload.method, payload.notes, actor)
    return RemainderRead.from_view(view)
