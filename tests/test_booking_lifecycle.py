from __future__ import annotations

from datetime import timedelta

import pytest

from app.core.enums import (
    ActorTypeEnum,
    BookingStatusEnum,
    CompletionStatusEnum,
    DepositStatusEnum,
)
from app.modules.booking.schemas import (
    BookingCancelRequest,
    BookingCreate,
    BookingRescheduleRequest,
)
from app.modules.deposits.policy import LifecyclePolicy
from app.shared.exceptions import (
    BusinessRuleException,
    InvalidScheduleError,
    InvalidTransitionError,
    UnauthorizedException,
)
from tests.fakes import ADMIN, CLIENT, OTHER_PROVIDER, PROVIDER, PROVIDER_ID, build_world


def _create_payload(world, **overrides) -> BookingCreate:
    data = {
        "client_name": "Dana Client",
        "client_phone": "+15550100",
        "service_type": "plumbing",
        "scheduled_at": world.clock.now + timedelta(days=3),
        "deposit_amount_cents": 10000,
        "total_amount_cents": 25000,
    }
    data.update(overrides)
    return BookingCreate(**data)


@pytest.mark.asyncio
async def test_provider_creates_booking_with_deposit_and_total() -> None:
    world = build_world()

    booking = await world.booking_service.create_booking(_create_payload(world), PROVIDER)

    assert booking.provider_id == PROVIDER_ID
    assert booking.status == BookingStatusEnum.PENDING
    assert world.deposits.holds[booking.id].status == DepositStatusEnum.PENDING
    assert world.remainders.balances[booking.id].total_amount_cents == 25000
    assert world.remainders.balances[booking.id].currency == "USD"
    assert world.audit.event_types() == ["booking.created", "deposit.requested"]


@pytest.mark.asyncio
async def test_create_booking_in_past_is_rejected() -> None:
    world = build_world()

    with pytest.raises(InvalidScheduleError):
        await world.booking_service.create_booking(
            _create_payload(world, scheduled_at=world.clock.now - timedelta(hours=1)),
            PROVIDER,
        )
    assert world.bookings.bookings == {}


@pytest.mark.asyncio
async def test_provider_cannot_create_booking_for_someone_else() -> None:
    world = build_world()

    with pytest.raises(UnauthorizedException):
        await world.booking_service.create_booking(
            _create_payload(world, provider_id=OTHER_PROVIDER.id),
            PROVIDER,
        )


@pytest.mark.asyncio
async def test_client_booking_requires_provider_id() -> None:
    world = build_world()

    with pytest.raises(BusinessRuleException):
        await world.booking_service.create_booking(_create_payload(world), CLIENT)

    booking = await world.booking_service.create_booking(
        _create_payload(world, provider_id=PROVIDER_ID, deposit_amount_cents=None),
        CLIENT,
    )
    assert booking.provider_id == PROVIDER_ID
    assert booking.id not in world.deposits.holds


@pytest.mark.asyncio
async def test_accept_creates_completion_record_once() -> None:
    world = build_world()
    booking = world.add_booking(status=BookingStatusEnum.PENDING)

    accepted = await world.booking_service.accept_booking(booking.id, PROVIDER)

    assert accepted.status == BookingStatusEnum.ACCEPTED
    assert accepted.accepted_at == world.clock.now
    assert world.completions.records[booking.id].completion_status == CompletionStatusEnum.SCHEDULED
    with pytest.raises(InvalidTransitionError):
        await world.booking_service.accept_booking(booking.id, PROVIDER)


@pytest.mark.asyncio
async def test_late_reschedule_retains_policy_fee() -> None:
    world = build_world(policy=LifecyclePolicy(late_fee_percents=(20,)))
    booking, hold = await world.captured_booking(hours_ahead=3)
    new_date = world.clock.now + timedelta(days=2)

    updated, decision = await world.booking_service.reschedule_booking(
        booking.id,
        BookingRescheduleRequest(new_scheduled_at=new_date),
        PROVIDER,
    )

    assert updated.scheduled_at == new_date
    assert updated.last_rescheduled_at == world.clock.now
    assert decision.is_late
    assert hold.late_reschedule_count == 1
    assert hold.retained_amount_cents == 2000
    assert hold.rolled_amount_cents == 8000
    assert hold.status == DepositStatusEnum.CAPTURED
    assert world.audit.event_types()[-2:] == ["deposit.fee_retained", "booking.rescheduled"]


@pytest.mark.asyncio
async def test_waived_late_reschedule_is_counted_but_free() -> None:
    world = build_world(policy=LifecyclePolicy(late_fee_percents=(20,)))
    booking, hold = await world.captured_booking(hours_ahead=3)
    await world.deposit_service.waive_reschedule_fee(booking.id, PROVIDER)

    _, decision = await world.booking_service.reschedule_booking(
        booking.id,
        BookingRescheduleRequest(new_scheduled_at=world.clock.now + timedelta(days=2)),
        PROVIDER,
    )

    assert decision.fee_cents == 0
    assert hold.late_reschedule_count == 1
    assert hold.retained_amount_cents == 0
    assert hold.rolled_amount_cents == 10000
    assert "deposit.fee_retained" not in world.audit.event_types()


@pytest.mark.asyncio
async def test_reschedule_into_past_mutates_nothing() -> None:
    world = build_world()
    booking, hold = await world.captured_booking(hours_ahead=3)
    original_date = booking.scheduled_at
    events_before = list(world.audit.outbox)

    with pytest.raises(InvalidScheduleError):
        await world.booking_service.reschedule_booking(
            booking.id,
            BookingRescheduleRequest(new_scheduled_at=world.clock.now - timedelta(hours=1)),
            PROVIDER,
        )

    assert booking.scheduled_at == original_date
    assert booking.last_rescheduled_at is None
    assert hold.late_reschedule_count == 0
    assert hold.retained_amount_cents == 0
    assert world.audit.outbox == events_before


@pytest.mark.asyncio
async def test_reschedule_of_cancelled_booking_is_rejected() -> None:
    world = build_world()
    booking = world.add_booking(status=BookingStatusEnum.CANCELLED)

    with pytest.raises(InvalidTransitionError):
        await world.booking_service.reschedule_booking(
            booking.id,
            BookingRescheduleRequest(new_scheduled_at=world.clock.now + timedelta(days=2)),
            PROVIDER,
        )


@pytest.mark.asyncio
async def test_provider_cancellation_refunds_rolled_amount() -> None:
    world = build_world()
    booking, hold = await world.captured_booking(hours_ahead=2)

    cancelled = await world.booking_service.cancel_booking(
        booking.id,
        BookingCancelRequest(reason="Van broke down"),
        PROVIDER,
    )

    assert cancelled.status == BookingStatusEnum.CANCELLED
    assert cancelled.cancelled_by == ActorTypeEnum.PROVIDER
    assert hold.status == DepositStatusEnum.REFUNDED
    assert hold.refunded_amount_cents == 10000
    assert world.audit.outbox[-1]["payload"]["deposit_status"] == "refunded"


@pytest.mark.asyncio
async def test_client_cancellation_with_notice_refunds() -> None:
    world = build_world()
    booking, hold = await world.captured_booking(hours_ahead=30)

    await world.booking_service.cancel_booking_by_token(
        booking.confirmation_token,
        BookingCancelRequest(reason="Fixed it myself"),
        CLIENT,
    )

    assert booking.cancelled_by == ActorTypeEnum.CUSTOMER
    assert hold.status == DepositStatusEnum.REFUNDED
    assert hold.refunded_amount_cents == 10000


@pytest.mark.asyncio
async def test_late_client_cancellation_retains_deposit() -> None:
    world = build_world()
    booking, hold = await world.captured_booking(hours_ahead=5)

    await world.booking_service.cancel_booking_by_token(
        booking.confirmation_token,
        BookingCancelRequest(),
        CLIENT,
    )

    assert booking.status == BookingStatusEnum.CANCELLED
    assert hold.status == DepositStatusEnum.RELEASED
    assert hold.retained_amount_cents == 10000
    assert hold.rolled_amount_cents == 0
    assert hold.released_amount_cents == 0
    assert "deposit.fee_retained" in world.audit.event_types()


@pytest.mark.asyncio
async def test_provider_records_late_cancellation_requested_by_client() -> None:
    world = build_world()
    booking, hold = await world.captured_booking(hours_ahead=5)

    await world.booking_service.cancel_booking(
        booking.id,
        BookingCancelRequest(reason="Client called", requested_by_client=True),
        PROVIDER,
    )

    assert booking.cancelled_by == ActorTypeEnum.CUSTOMER
    assert hold.retained_amount_cents == 10000


@pytest.mark.asyncio
async def test_cancel_after_work_done_is_rejected() -> None:
    world = build_world()
    booking, hold = await world.captured_booking()
    await world.completion_service.mark_work_done(booking.id, PROVIDER)

    with pytest.raises(InvalidTransitionError):
        await world.booking_service.cancel_booking(booking.id, BookingCancelRequest(), PROVIDER)

    assert booking.status == BookingStatusEnum.ACCEPTED
    assert hold.status == DepositStatusEnum.CAPTURED


@pytest.mark.asyncio
async def test_listing_is_scoped_by_actor() -> None:
    world = build_world()
    own = world.add_booking()
    foreign = world.add_booking()
    foreign.provider_id = OTHER_PROVIDER.id

    items, total = await world.booking_service.list_bookings(PROVIDER, None, 20, 0)
    assert [item.id for item in items] == [own.id]
    assert total == 1

    _, admin_total = await world.booking_service.list_bookings(ADMIN, None, 20, 0)
    assert admin_total == 2

    with pytest.raises(UnauthorizedException):
        await world.booking_service.list_bookings(CLIENT, None, 20, 0)


@pytest.mark.asyncio
async def test_public_summary_shows_deposit_and_completion_state() -> None:
    world = build_world()
    booking, _ = await world.captured_booking()

    summary = await world.booking_service.get_public_summary(booking.confirmation_token)

    assert summary.id == booking.id
    assert summary.deposit_status == DepositStatusEnum.CAPTURED
    assert summary.deposit_amount_cents == 10000
    assert summary.completion_status == CompletionStatusEnum.SCHEDULED
