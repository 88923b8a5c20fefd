"""Booking deposits schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


actor_type_enum = sa.Enum("customer", "provider", "admin", "system", name="actor_type_enum", native_enum=False)
booking_status_enum = sa.Enum(
    "pending", "accepted", "completed", "cancelled", name="booking_status_enum", native_enum=False
)
deposit_status_enum = sa.Enum(
    "none",
    "pending",
    "captured",
    "released",
    "on_hold_dispute",
    "refunded",
    name="deposit_status_enum",
    native_enum=False,
)
completion_status_enum = sa.Enum(
    "scheduled",
    "awaiting_confirmation",
    "completed",
    "dispute",
    name="completion_status_enum",
    native_enum=False,
)
remainder_payment_status_enum = sa.Enum(
    "pending", "paid", name="remainder_payment_status_enum", native_enum=False
)
payment_method_enum = sa.Enum(
    "stripe",
    "card",
    "cash",
    "check",
    "zelle",
    "venmo",
    "cashapp",
    "other",
    name="payment_method_enum",
    native_enum=False,
)
scheduled_job_kind_enum = sa.Enum(
    "deposit_auto_release", "completion_timeout", name="scheduled_job_kind_enum", native_enum=False
)
scheduled_job_status_enum = sa.Enum(
    "armed", "fired", "cancelled", name="scheduled_job_status_enum", native_enum=False
)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def _version_col() -> sa.Column:
    return sa.Column("version", sa.Integer(), nullable=False, server_default="1")


def _booking_fk(ondelete: str = "RESTRICT") -> sa.Column:
    return sa.Column(
        "booking_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("booking_requests.id", ondelete=ondelete),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "booking_requests",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("provider_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("client_name", sa.String(length=255), nullable=False),
        sa.Column("client_phone", sa.String(length=32), nullable=True),
        sa.Column("client_email", sa.String(length=255), nullable=True),
        sa.Column("service_type", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=512), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", booking_status_enum, nullable=False),
        sa.Column("confirmation_token", sa.String(length=64), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_rescheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", actor_type_enum, nullable=True),
        sa.Column("cancellation_reason", sa.String(length=512), nullable=True),
        sa.UniqueConstraint("confirmation_token", name="uq_booking_requests_confirmation_token"),
    )
    op.create_index("ix_booking_requests_provider_id", "booking_requests", ["provider_id"], unique=False)
    op.create_index("ix_booking_requests_scheduled_at", "booking_requests", ["scheduled_at"], unique=False)
    op.create_index("ix_booking_requests_status", "booking_requests", ["status"], unique=False)

    op.create_table(
        "deposit_holds",
        _id_col(),
        _created_col(),
        _updated_col(),
        _version_col(),
        _booking_fk(),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", deposit_status_enum, nullable=False),
        sa.Column("retained_amount_cents", sa.Integer(), nullable=False),
        sa.Column("rolled_amount_cents", sa.Integer(), nullable=False),
        sa.Column("late_reschedule_count", sa.Integer(), nullable=False),
        sa.Column("waive_reschedule_fee", sa.Boolean(), nullable=False),
        sa.Column("auto_release_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_method", payment_method_enum, nullable=True),
        sa.Column("proof_reference", sa.String(length=255), nullable=True),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("released_amount_cents", sa.Integer(), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_amount_cents", sa.Integer(), nullable=True),
        sa.Column("disputed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("booking_id", name="uq_deposit_holds_booking_id"),
        sa.CheckConstraint("amount_cents > 0", name="ck_deposit_holds_amount_positive"),
        sa.CheckConstraint("retained_amount_cents >= 0", name="ck_deposit_holds_retained_non_negative"),
        sa.CheckConstraint("rolled_amount_cents >= 0", name="ck_deposit_holds_rolled_non_negative"),
        sa.CheckConstraint(
            "retained_amount_cents + rolled_amount_cents = amount_cents",
            name="ck_deposit_holds_ledger_balanced",
        ),
    )
    op.create_index("ix_deposit_holds_status", "deposit_holds", ["status"], unique=False)

    op.create_table(
        "completion_records",
        _id_col(),
        _created_col(),
        _updated_col(),
        _version_col(),
        _booking_fk(),
        sa.Column("completion_status", completion_status_enum, nullable=False),
        sa.Column("work_done_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", actor_type_enum, nullable=True),
        sa.Column("disputed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dispute_reason", sa.String(length=1024), nullable=True),
        sa.UniqueConstraint("booking_id", name="uq_completion_records_booking_id"),
    )
    op.create_index(
        "ix_completion_records_completion_status",
        "completion_records",
        ["completion_status"],
        unique=False,
    )

    op.create_table(
        "remainder_balances",
        _id_col(),
        _created_col(),
        _updated_col(),
        _version_col(),
        _booking_fk(),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("payment_status", remainder_payment_status_enum, nullable=False),
        sa.Column("payment_method", payment_method_enum, nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.String(length=1024), nullable=True),
        sa.UniqueConstraint("booking_id", name="uq_remainder_balances_booking_id"),
        sa.CheckConstraint("total_amount_cents >= 0", name="ck_remainder_balances_total_non_negative"),
    )
    op.create_index(
        "ix_remainder_balances_payment_status",
        "remainder_balances",
        ["payment_status"],
        unique=False,
    )

    op.create_table(
        "scheduled_jobs",
        _id_col(),
        _created_col(),
        _updated_col(),
        _version_col(),
        _booking_fk("CASCADE"),
        sa.Column("kind", scheduled_job_kind_enum, nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", scheduled_job_status_enum, nullable=False),
        sa.Column("fired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_scheduled_jobs_booking_id", "scheduled_jobs", ["booking_id"], unique=False)
    op.create_index("ix_scheduled_jobs_due_at", "scheduled_jobs", ["due_at"], unique=False)
    op.create_index("ix_scheduled_jobs_status", "scheduled_jobs", ["status"], unique=False)
    op.create_index(
        "uq_scheduled_jobs_armed_booking_kind",
        "scheduled_jobs",
        ["booking_id", "kind"],
        unique=True,
        postgresql_where=sa.text("status = 'armed'"),
    )

    op.create_table(
        "audit_logs",
        _id_col(),
        _created_col(),
        _updated_col(),
        _booking_fk("CASCADE"),
        sa.Column("actor_type", actor_type_enum, nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    )
    op.create_index("ix_audit_logs_booking_id", "audit_logs", ["booking_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=128), nullable=False),
        sa.Column("aggregate_id", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_type", "outbox_events", ["aggregate_type"], unique=False)
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_outbox_events_status", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_type", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_booking_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("uq_scheduled_jobs_armed_booking_kind", table_name="scheduled_jobs")
    op.drop_index("ix_scheduled_jobs_status", table_name="scheduled_jobs")
    op.drop_index("ix_scheduled_jobs_due_at", table_name="scheduled_jobs")
    op.drop_index("ix_scheduled_jobs_booking_id", table_name="scheduled_jobs")
    op.drop_table("scheduled_jobs")

    op.drop_index("ix_remainder_balances_payment_status", table_name="remainder_balances")
    op.drop_table("remainder_balances")

    op.drop_index("ix_completion_records_completion_status", table_name="completion_records")
    op.drop_table("completion_records")

    op.drop_index("ix_deposit_holds_status", table_name="deposit_holds")
    op.drop_table("deposit_holds")

    op.drop_index("ix_booking_requests_status", table_name="booking_requests")
    op.drop_index("ix_booking_requests_scheduled_at", table_name="booking_requests")
    op.drop_index("ix_booking_requests_provider_id", table_name="booking_requests")
    op.drop_table("booking_requests")
