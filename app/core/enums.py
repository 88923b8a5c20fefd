"""Core enums used across modules."""

from enum import StrEnum


class ActorTypeEnum(StrEnum):
    """Who performed an action on a booking."""

    CUSTOMER = "customer"
    PROVIDER = "provider"
    ADMIN = "admin"
    SYSTEM = "system"


class BookingStatusEnum(StrEnum):
    """Booking request lifecycle status."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DepositStatusEnum(StrEnum):
    """Deposit hold status."""

    NONE = "none"
    PENDING = "pending"
    CAPTURED = "captured"
    RELEASED = "released"
    ON_HOLD_DISPUTE = "on_hold_dispute"
    REFUNDED = "refunded"


class CompletionStatusEnum(StrEnum):
    """Job completion confirmation status."""

    SCHEDULED = "scheduled"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMPLETED = "completed"
    DISPUTE = "dispute"


class RemainderPaymentStatusEnum(StrEnum):
    """Remainder balance settlement status."""

    PENDING = "pending"
    PAID = "paid"


class PaymentMethodEnum(StrEnum):
    """Closed vocabulary of ways a client can pay."""

    STRIPE = "stripe"
    CARD = "card"
    CASH = "cash"
    CHECK = "check"
    ZELLE = "zelle"
    VENMO = "venmo"
    CASHAPP = "cashapp"
    OTHER = "other"


class ScheduledJobKindEnum(StrEnum):
    """Durable timer kinds."""

    DEPOSIT_AUTO_RELEASE = "deposit_auto_release"
    COMPLETION_TIMEOUT = "completion_timeout"


class ScheduledJobStatusEnum(StrEnum):
    """Durable timer status."""

    ARMED = "armed"
    FIRED = "fired"
    CANCELLED = "cancelled"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
