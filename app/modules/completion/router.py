"""Completion API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from app.core.enums import ActorTypeEnum
from app.modules.completion.schemas import CompletionRead, DisputeCreate
from app.modules.completion.service import CompletionService, get_completion_service
from app.shared.actor import Actor, require_actor_types

router = APIRouter(prefix="/bookings/{booking_id}/completion", tags=["completion"])

manage_actor = require_actor_types(ActorTypeEnum.PROVIDER, ActorTypeEnum.ADMIN)


@router.get("", response_model=CompletionRead)
async def get_completion(
    booking_id: UUID,
    service: CompletionService = Depends(get_completion_service),
    actor: Actor = Depends(manage_actor),
) -> CompletionRead:
    record = await service.get_record(booking_id, actor)
    return CompletionRead.model_validate(record)


@router.post("/work-done", response_model=CompletionRead)
async def mark_work_done(
    booking_id: UUID,
    service: CompletionService = Depends(get_completion_service),
    actor: Actor = Depends(manage_actor),
) -> CompletionRead:
    """Report the job as done and ask the client to confirm."""
    record = await service.mark_work_done(booking_id, actor)
    return CompletionRead.model_validate(record)


@router.post("/confirm", response_model=CompletionRead)
async def confirm_completion(
    booking_id: UUID,
    service: CompletionService = Depends(get_completion_service),
    actor: Actor = Depends(require_actor_types(ActorTypeEnum.ADMIN)),
) -> CompletionRead:
    """Confirm completion on the client's behalf."""
    record = await service.confirm_completion(booking_id, actor)
    return CompletionRead.model_validate(record)


@router.post("/dispute", response_model=CompletionRead)
async def raise_dispute(
    booking_id: UUID,
    payload: DisputeCreate,
    service: CompletionService = Depends(get_completion_service),
    actor: Actor = Depends(require_actor_types(ActorTypeEnum.ADMIN)),
) -> CompletionRead:
    """Open a dispute on the client's behalf."""
    record = await service.raise_dispute(booking_id, actor, payload.reason)
    return CompletionRead.model_validate(record)
