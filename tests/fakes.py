"""In-memory repositories shared by the lifecycle service tests."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

from app.core.enums import (
    ActorTypeEnum,
    BookingStatusEnum,
    CompletionStatusEnum,
    DepositStatusEnum,
    PaymentMethodEnum,
    RemainderPaymentStatusEnum,
    ScheduledJobKindEnum,
    ScheduledJobStatusEnum,
)
from app.modules.booking.service import BookingService
from app.modules.completion.service import CompletionService
from app.modules.deposits.policy import LifecyclePolicy
from app.modules.deposits.service import DepositService, PaymentEvidence
from app.modules.remainder.service import RemainderService
from app.modules.scheduler.service import TimerScheduler
from app.shared.actor import Actor
from app.shared.exceptions import ConflictException
from app.shared.money import Money

PROVIDER_ID = UUID("00000000-0000-0000-0000-0000000000aa")
PROVIDER = Actor(type=ActorTypeEnum.PROVIDER, id=PROVIDER_ID)
OTHER_PROVIDER = Actor(type=ActorTypeEnum.PROVIDER, id=uuid4())
ADMIN = Actor(type=ActorTypeEnum.ADMIN, id=uuid4())
CLIENT = Actor(type=ActorTypeEnum.CUSTOMER)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def _apply_cas(entity, guard: str, expected, values: dict) -> bool:
    if getattr(entity, guard) != expected:
        return False
    for key, value in values.items():
        setattr(entity, key, value)
    entity.version += 1
    return True


@dataclass
class FakeBooking:
    id: UUID
    provider_id: UUID
    client_name: str
    service_type: str
    scheduled_at: datetime
    client_phone: str | None = None
    client_email: str | None = None
    description: str | None = None
    location: str | None = None
    status: BookingStatusEnum = BookingStatusEnum.PENDING
    confirmation_token: str = field(default_factory=lambda: uuid4().hex)
    accepted_at: datetime | None = None
    last_rescheduled_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancelled_by: ActorTypeEnum | None = None
    cancellation_reason: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class FakeHold:
    id: UUID
    booking_id: UUID
    amount_cents: int
    currency: str
    rolled_amount_cents: int
    status: DepositStatusEnum = DepositStatusEnum.PENDING
    retained_amount_cents: int = 0
    late_reschedule_count: int = 0
    waive_reschedule_fee: bool = False
    auto_release_at: datetime | None = None
    payment_method: PaymentMethodEnum | None = None
    proof_reference: str | None = None
    captured_at: datetime | None = None
    released_at: datetime | None = None
    released_amount_cents: int | None = None
    refunded_at: datetime | None = None
    refunded_amount_cents: int | None = None
    disputed_at: datetime | None = None
    version: int = 1

    @property
    def amount(self) -> Money:
        return Money(self.amount_cents, self.currency)

    @property
    def retained(self) -> Money:
        return Money(self.retained_amount_cents, self.currency)

    @property
    def rolled(self) -> Money:
        return Money(self.rolled_amount_cents, self.currency)


@dataclass
class FakeCompletionRecord:
    id: UUID
    booking_id: UUID
    completion_status: CompletionStatusEnum = CompletionStatusEnum.SCHEDULED
    work_done_at: datetime | None = None
    completed_at: datetime | None = None
    completed_by: ActorTypeEnum | None = None
    disputed_at: datetime | None = None
    dispute_reason: str | None = None
    version: int = 1


@dataclass
class FakeRemainder:
    id: UUID
    booking_id: UUID
    total_amount_cents: int
    currency: str
    payment_status: RemainderPaymentStatusEnum = RemainderPaymentStatusEnum.PENDING
    payment_method: PaymentMethodEnum | None = None
    paid_at: datetime | None = None
    notes: str | None = None
    version: int = 1

    @property
    def total(self) -> Money:
        return Money(self.total_amount_cents, self.currency)


@dataclass
class FakeJob:
    id: UUID
    booking_id: UUID
    kind: ScheduledJobKindEnum
    due_at: datetime
    status: ScheduledJobStatusEnum = ScheduledJobStatusEnum.ARMED
    fired_at: datetime | None = None
    cancelled_at: datetime | None = None
    version: int = 1


class FakeBookingRepository:
    def __init__(self) -> None:
        self.bookings: dict[UUID, FakeBooking] = {}

    async def create_booking_request(self, **kwargs) -> FakeBooking:
        booking = FakeBooking(id=uuid4(), **kwargs)
        self.bookings[booking.id] = booking
        return booking

    async def get_booking_by_id(self, booking_id: UUID) -> FakeBooking | None:
        return self.bookings.get(booking_id)

    async def get_booking_by_token(self, token: str) -> FakeBooking | None:
        for booking in self.bookings.values():
            if booking.confirmation_token == token:
                return booking
        return None

    async def list_bookings(
        self,
        provider_id: UUID | None,
        status: BookingStatusEnum | None,
        limit: int,
        offset: int,
    ) -> tuple[list[FakeBooking], int]:
        items = [
            booking
            for booking in self.bookings.values()
            if (provider_id is None or booking.provider_id == provider_id)
            and (status is None or booking.status == status)
        ]
        items.sort(key=lambda booking: booking.scheduled_at)
        return items[offset : offset + limit], len(items)

    async def save(self, booking: FakeBooking) -> FakeBooking:
        self.bookings[booking.id] = booking
        return booking


class FakeDepositRepository:
    def __init__(self) -> None:
        self.holds: dict[UUID, FakeHold] = {}
        self.lose_next_cas = False

    async def create_hold(self, booking_id: UUID, amount_cents: int, currency: str) -> FakeHold:
        if booking_id in self.holds:
            raise ConflictException("Deposit was already requested for this booking")
        hold = FakeHold(
            id=uuid4(),
            booking_id=booking_id,
            amount_cents=amount_cents,
            currency=currency.upper(),
            rolled_amount_cents=amount_cents,
        )
        self.holds[booking_id] = hold
        return hold

    async def get_by_booking_id(self, booking_id: UUID) -> FakeHold | None:
        return self.holds.get(booking_id)

    async def compare_and_set(self, hold: FakeHold, expected_status: DepositStatusEnum, **values) -> bool:
        if self.lose_next_cas:
            self.lose_next_cas = False
            return False
        return _apply_cas(hold, "status", expected_status, values)


class FakeCompletionRepository:
    def __init__(self) -> None:
        self.records: dict[UUID, FakeCompletionRecord] = {}

    async def create_record(self, booking_id: UUID) -> FakeCompletionRecord:
        record = FakeCompletionRecord(id=uuid4(), booking_id=booking_id)
        self.records[booking_id] = record
        return record

    async def get_by_booking_id(self, booking_id: UUID) -> FakeCompletionRecord | None:
        return self.records.get(booking_id)

    async def compare_and_set(
        self,
        record: FakeCompletionRecord,
        expected_status: CompletionStatusEnum,
        **values,
    ) -> bool:
        return _apply_cas(record, "completion_status", expected_status, values)


class FakeRemainderRepository:
    def __init__(self) -> None:
        self.balances: dict[UUID, FakeRemainder] = {}

    async def create_balance(self, booking_id: UUID, total_amount_cents: int, currency: str) -> FakeRemainder:
        balance = FakeRemainder(
            id=uuid4(),
            booking_id=booking_id,
            total_amount_cents=total_amount_cents,
            currency=currency.upper(),
        )
        self.balances[booking_id] = balance
        return balance

    async def get_by_booking_id(self, booking_id: UUID) -> FakeRemainder | None:
        return self.balances.get(booking_id)

    async def compare_and_set(
        self,
        balance: FakeRemainder,
        expected_status: RemainderPaymentStatusEnum,
        **values,
    ) -> bool:
        return _apply_cas(balance, "payment_status", expected_status, values)


class FakeSchedulerRepository:
    def __init__(
        self,
        deposit_repository: FakeDepositRepository,
        completion_repository: FakeCompletionRepository,
    ) -> None:
        self.jobs: list[FakeJob] = []
        self.deposit_repository = deposit_repository
        self.completion_repository = completion_repository
        self.commits = 0

    @asynccontextmanager
    async def savepoint(self):
        yield

    async def commit(self) -> None:
        self.commits += 1

    def armed(self, booking_id: UUID | None = None) -> list[FakeJob]:
        return [
            job
            for job in self.jobs
            if job.status == ScheduledJobStatusEnum.ARMED and (booking_id is None or job.booking_id == booking_id)
        ]

    async def get_armed_job(self, booking_id: UUID, kind: ScheduledJobKindEnum) -> FakeJob | None:
        for job in self.armed(booking_id):
            if job.kind == kind:
                return job
        return None

    async def arm(self, booking_id: UUID, kind: ScheduledJobKindEnum, due_at: datetime) -> FakeJob:
        existing = await self.get_armed_job(booking_id, kind)
        if existing is not None:
            return existing
        job = FakeJob(id=uuid4(), booking_id=booking_id, kind=kind, due_at=due_at)
        self.jobs.append(job)
        return job

    async def disarm(self, booking_id: UUID, kinds=None) -> int:
        kinds = list(kinds) if kinds is not None else None
        count = 0
        for job in self.armed(booking_id):
            if kinds is None or job.kind in kinds:
                job.status = ScheduledJobStatusEnum.CANCELLED
                job.version += 1
                count += 1
        return count

    async def list_due_jobs(self, now: datetime, limit: int) -> list[FakeJob]:
        due = [job for job in self.armed() if job.due_at <= now]
        due.sort(key=lambda job: job.due_at)
        return due[:limit]

    async def claim(self, job: FakeJob, fired_at: datetime) -> bool:
        return _apply_cas(
            job,
            "status",
            ScheduledJobStatusEnum.ARMED,
            {"status": ScheduledJobStatusEnum.FIRED, "fired_at": fired_at},
        )

    async def find_unarmed_release_candidates(self) -> list[tuple[UUID, datetime]]:
        candidates = []
        for booking_id, hold in self.deposit_repository.holds.items():
            record = self.completion_repository.records.get(booking_id)
            if (
                hold.status == DepositStatusEnum.CAPTURED
                and record is not None
                and record.completion_status == CompletionStatusEnum.COMPLETED
                and record.completed_at is not None
                and await self.get_armed_job(booking_id, ScheduledJobKindEnum.DEPOSIT_AUTO_RELEASE) is None
            ):
                candidates.append((booking_id, record.completed_at))
        return candidates

    async def find_unarmed_confirmation_candidates(self) -> list[tuple[UUID, datetime]]:
        candidates = []
        for booking_id, record in self.completion_repository.records.items():
            if (
                record.completion_status == CompletionStatusEnum.AWAITING_CONFIRMATION
                and record.work_done_at is not None
                and await self.get_armed_job(booking_id, ScheduledJobKindEnum.COMPLETION_TIMEOUT) is None
            ):
                candidates.append((booking_id, record.work_done_at))
        return candidates


class FakeAuditRepository:
    def __init__(self) -> None:
        self.logs: list[dict] = []
        self.outbox: list[dict] = []

    async def create_audit_log(self, booking_id: UUID, actor: Actor, action: str, payload: dict) -> dict:
        log = {"booking_id": booking_id, "actor": actor, "action": action, "payload": payload}
        self.logs.append(log)
        return log

    async def create_outbox_event(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: dict,
    ) -> dict:
        event = {
            "aggregate_type": aggregate_type,
            "aggregate_id": aggregate_id,
            "event_type": event_type,
            "payload": payload,
        }
        self.outbox.append(event)
        return event

    def event_types(self) -> list[str]:
        return [event["event_type"] for event in self.outbox]

    def actions(self) -> list[str]:
        return [log["action"] for log in self.logs]


@dataclass
class World:
    clock: Clock
    policy: LifecyclePolicy
    bookings: FakeBookingRepository
    deposits: FakeDepositRepository
    completions: FakeCompletionRepository
    remainders: FakeRemainderRepository
    scheduler_repository: FakeSchedulerRepository
    audit: FakeAuditRepository
    deposit_service: DepositService
    completion_service: CompletionService
    booking_service: BookingService
    remainder_service: RemainderService
    scheduler: TimerScheduler

    def add_booking(self, *, hours_ahead: float = 72, status: BookingStatusEnum = BookingStatusEnum.ACCEPTED) -> FakeBooking:
        booking = FakeBooking(
            id=uuid4(),
            provider_id=PROVIDER_ID,
            client_name="Dana Client",
            service_type="plumbing",
            scheduled_at=self.clock.now + timedelta(hours=hours_ahead),
            status=status,
        )
        self.bookings.bookings[booking.id] = booking
        if status != BookingStatusEnum.PENDING:
            self.completions.records[booking.id] = FakeCompletionRecord(id=uuid4(), booking_id=booking.id)
        return booking

    async def captured_booking(self, amount_cents: int = 10000, **kwargs) -> tuple[FakeBooking, FakeHold]:
        booking = self.add_booking(**kwargs)
        await self.deposit_service.request_deposit(booking.id, amount_cents, "USD", PROVIDER)
        hold = await self.deposit_service.capture_deposit(
            booking.id,
            _evidence(),
            PROVIDER,
        )
        return booking, hold


def _evidence() -> PaymentEvidence:
    return PaymentEvidence(method=PaymentMethodEnum.ZELLE, proof_reference="zelle-123")


def build_world(now: datetime | None = None, policy: LifecyclePolicy | None = None) -> World:
    clock = Clock(now or datetime(2026, 5, 4, 15, 0, tzinfo=UTC))
    policy = policy or LifecyclePolicy()
    bookings = FakeBookingRepository()
    deposits = FakeDepositRepository()
    completions = FakeCompletionRepository()
    remainders = FakeRemainderRepository()
    scheduler_repository = FakeSchedulerRepository(deposits, completions)
    audit = FakeAuditRepository()

    deposit_service = DepositService(
        deposit_repository=deposits,
        booking_repository=bookings,
        completion_repository=completions,
        scheduler_repository=scheduler_repository,
        audit_repository=audit,
        remainder_repository=remainders,
        policy=policy,
        now_provider=clock,
    )
    completion_service = CompletionService(
        completion_repository=completions,
        booking_repository=bookings,
        scheduler_repository=scheduler_repository,
        audit_repository=audit,
        deposit_service=deposit_service,
        policy=policy,
        now_provider=clock,
    )
    booking_service = BookingService(
        booking_repository=bookings,
        completion_repository=completions,
        remainder_repository=remainders,
        scheduler_repository=scheduler_repository,
        audit_repository=audit,
        deposit_service=deposit_service,
        policy=policy,
        now_provider=clock,
    )
    remainder_service = RemainderService(
        remainder_repository=remainders,
        booking_repository=bookings,
        deposit_repository=deposits,
        audit_repository=audit,
        now_provider=clock,
    )
    scheduler = TimerScheduler(
        scheduler_repository=scheduler_repository,
        completion_service=completion_service,
        batch_size=50,
        now_provider=clock,
    )
    return World(
        clock=clock,
        policy=policy,
        bookings=bookings,
        deposits=deposits,
        completions=completions,
        remainders=remainders,
        scheduler_repository=scheduler_repository,
        audit=audit,
        deposit_service=deposit_service,
        completion_service=completion_service,
        booking_service=booking_service,
        remainder_service=remainder_service,
        scheduler=scheduler,
    )
