from __future__ import annotations

from datetime import timedelta

import pytest

from app.core.enums import (
    ActorTypeEnum,
    BookingStatusEnum,
    CompletionStatusEnum,
    DepositStatusEnum,
    ScheduledJobKindEnum,
    ScheduledJobStatusEnum,
)
from app.shared.exceptions import (
    InvalidTransitionError,
    NotFoundException,
    UnauthorizedException,
)
from tests.fakes import ADMIN, CLIENT, PROVIDER, build_world


@pytest.mark.asyncio
async def test_work_done_arms_confirmation_timeout() -> None:
    world = build_world()
    booking, _ = await world.captured_booking()

    record = await world.completion_service.mark_work_done(booking.id, PROVIDER)

    assert record.completion_status == CompletionStatusEnum.AWAITING_CONFIRMATION
    assert record.work_done_at == world.clock.now
    [job] = world.scheduler_repository.armed(booking.id)
    assert job.kind == ScheduledJobKindEnum.COMPLETION_TIMEOUT
    assert job.due_at == world.clock.now + timedelta(hours=48)
    assert world.audit.outbox[-1]["payload"]["confirm_by"] == job.due_at.isoformat()


@pytest.mark.asyncio
async def test_work_done_requires_accepted_booking() -> None:
    world = build_world()
    booking = world.add_booking(status=BookingStatusEnum.PENDING)

    with pytest.raises(InvalidTransitionError):
        await world.completion_service.mark_work_done(booking.id, PROVIDER)


@pytest.mark.asyncio
async def test_work_done_twice_is_rejected() -> None:
    world = build_world()
    booking = world.add_booking()
    await world.completion_service.mark_work_done(booking.id, PROVIDER)

    with pytest.raises(InvalidTransitionError):
        await world.completion_service.mark_work_done(booking.id, PROVIDER)


@pytest.mark.asyncio
async def test_client_confirmation_completes_booking_and_arms_release() -> None:
    world = build_world()
    booking, hold = await world.captured_booking()
    await world.completion_service.mark_work_done(booking.id, PROVIDER)
    world.clock.advance(hours=3)

    record = await world.completion_service.confirm_completion_by_token(booking.confirmation_token, CLIENT)

    assert record.completion_status == CompletionStatusEnum.COMPLETED
    assert record.completed_by == ActorTypeEnum.CUSTOMER
    assert record.completed_at == world.clock.now
    assert booking.status == BookingStatusEnum.COMPLETED
    [job] = world.scheduler_repository.armed(booking.id)
    assert job.kind == ScheduledJobKindEnum.DEPOSIT_AUTO_RELEASE
    assert job.due_at == world.clock.now + timedelta(hours=72)
    assert hold.auto_release_at == job.due_at
    assert world.audit.event_types()[-1] == "completion.confirmed"


@pytest.mark.asyncio
async def test_confirmation_before_work_done_is_rejected() -> None:
    world = build_world()
    booking = world.add_booking()

    with pytest.raises(InvalidTransitionError):
        await world.completion_service.confirm_completion_by_token(booking.confirmation_token, CLIENT)


@pytest.mark.asyncio
async def test_only_admin_confirms_on_client_behalf() -> None:
    world = build_world()
    booking = world.add_booking()
    await world.completion_service.mark_work_done(booking.id, PROVIDER)

    with pytest.raises(UnauthorizedException):
        await world.completion_service.confirm_completion(booking.id, PROVIDER)

    record = await world.completion_service.confirm_completion(booking.id, ADMIN)
    assert record.completed_by == ActorTypeEnum.ADMIN


@pytest.mark.asyncio
async def test_unknown_token_is_not_found() -> None:
    world = build_world()

    with pytest.raises(NotFoundException):
        await world.completion_service.confirm_completion_by_token("missing-token", CLIENT)


@pytest.mark.asyncio
async def test_dispute_before_confirmation_freezes_deposit() -> None:
    world = build_world()
    booking, hold = await world.captured_booking()
    await world.completion_service.mark_work_done(booking.id, PROVIDER)

    record = await world.completion_service.raise_dispute_by_token(
        booking.confirmation_token,
        CLIENT,
        "Leak is still there",
    )

    assert record.completion_status == CompletionStatusEnum.DISPUTE
    assert record.dispute_reason == "Leak is still there"
    assert hold.status == DepositStatusEnum.ON_HOLD_DISPUTE
    assert world.scheduler_repository.armed(booking.id) == []
    assert all(job.status == ScheduledJobStatusEnum.CANCELLED for job in world.scheduler_repository.jobs)
    assert world.audit.event_types()[-2:] == ["deposit.disputed", "completion.disputed"]


@pytest.mark.asyncio
async def test_dispute_within_window_cancels_auto_release() -> None:
    world = build_world()
    booking, hold = await world.captured_booking()
    await world.completion_service.mark_work_done(booking.id, PROVIDER)
    await world.completion_service.confirm_completion_by_token(booking.confirmation_token, CLIENT)
    world.clock.advance(hours=71)

    await world.completion_service.raise_dispute_by_token(booking.confirmation_token, CLIENT, "Damaged floor")

    assert hold.status == DepositStatusEnum.ON_HOLD_DISPUTE
    assert hold.auto_release_at is None
    assert world.scheduler_repository.armed(booking.id) == []


@pytest.mark.asyncio
async def test_dispute_after_window_is_rejected() -> None:
    world = build_world()
    booking, hold = await world.captured_booking()
    await world.completion_service.mark_work_done(booking.id, PROVIDER)
    await world.completion_service.confirm_completion_by_token(booking.confirmation_token, CLIENT)
    world.clock.advance(hours=73)

    with pytest.raises(InvalidTransitionError):
        await world.completion_service.raise_dispute_by_token(booking.confirmation_token, CLIENT, "Too late")

    assert hold.status == DepositStatusEnum.CAPTURED
    assert len(world.scheduler_repository.armed(booking.id)) == 1


@pytest.mark.asyncio
async def test_second_dispute_is_rejected() -> None:
    world = build_world()
    booking = world.add_booking()
    await world.completion_service.mark_work_done(booking.id, PROVIDER)
    await world.completion_service.raise_dispute(booking.id, ADMIN, "Client called support")

    with pytest.raises(InvalidTransitionError):
        await world.completion_service.raise_dispute_by_token(booking.confirmation_token, CLIENT)


@pytest.mark.asyncio
async def test_dispute_without_deposit_still_records_dispute() -> None:
    world = build_world()
    booking = world.add_booking()
    await world.completion_service.mark_work_done(booking.id, PROVIDER)

    record = await world.completion_service.raise_dispute_by_token(booking.confirmation_token, CLIENT)

    assert record.completion_status == CompletionStatusEnum.DISPUTE
    assert world.audit.outbox[-1]["payload"]["deposit_status"] is None


@pytest.mark.asyncio
async def test_timeout_completes_as_system() -> None:
    world = build_world()
    booking, hold = await world.captured_booking()
    await world.completion_service.mark_work_done(booking.id, PROVIDER)
    world.clock.advance(hours=48)

    fired = await world.completion_service.complete_by_timeout(booking.id)

    record = world.completions.records[booking.id]
    assert fired is True
    assert record.completion_status == CompletionStatusEnum.COMPLETED
    assert record.completed_by == ActorTypeEnum.SYSTEM
    assert booking.status == BookingStatusEnum.COMPLETED
    assert hold.auto_release_at == world.clock.now + timedelta(hours=72)
    assert world.audit.event_types()[-1] == "completion.auto_confirmed"


@pytest.mark.asyncio
async def test_timeout_after_confirmation_is_dropped() -> None:
    world = build_world()
    booking = world.add_booking()
    await world.completion_service.mark_work_done(booking.id, PROVIDER)
    await world.completion_service.confirm_completion_by_token(booking.confirmation_token, CLIENT)
    events_before = len(world.audit.outbox)

    fired = await world.completion_service.complete_by_timeout(booking.id)

    assert fired is False
    assert world.completions.records[booking.id].completed_by == ActorTypeEnum.CUSTOMER
    assert len(world.audit.outbox) == events_before
