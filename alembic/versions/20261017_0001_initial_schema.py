"""Initial schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


expert_status_enum = sa.Enum("active", "inactive", name="expert_status_enum", native_enum=False)
booking_type_enum = sa.Enum("online", "offline", name="booking_type_enum", native_enum=False)
booking_status_enum = sa.Enum(
    "pending",
    "confirmed",
    "rejected",
    "cancelled",
    "completed",
    "missed",
    name="booking_status_enum",
    native_enum=False,
)
actor_role_enum = sa.Enum("user", "expert", "admin", "system", name="actor_role_enum", native_enum=False)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.create_table(
        "experts",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("expertise", sa.String(length=128), nullable=False),
        sa.Column("bio", sa.Text(), nullable=False),
        sa.Column("status", expert_status_enum, nullable=False),
        sa.UniqueConstraint("user_id", name="uq_experts_user_id"),
        sa.UniqueConstraint("email", name="uq_experts_email"),
    )
    op.create_index("ix_experts_expertise", "experts", ["expertise"], unique=False)
    op.create_index("ix_experts_status", "experts", ["status"], unique=False)

    op.create_table(
        "schedules",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("expert_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["expert_id"],
            ["experts.id"],
            name="fk_schedules_expert_id_experts",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_schedules_expert_id_day_of_week", "schedules", ["expert_id", "day_of_week"], unique=False)

    op.create_table(
        "off_times",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("expert_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=512), nullable=True),
        sa.ForeignKeyConstraint(
            ["expert_id"],
            ["experts.id"],
            name="fk_off_times_expert_id_experts",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_off_times_expert_id_start_date_end_date",
        "off_times",
        ["expert_id", "start_date", "end_date"],
        unique=False,
    )

    op.create_table(
        "bookings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("expert_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("type", booking_type_enum, nullable=False),
        sa.Column("status", booking_status_enum, nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("meeting_link", sa.String(length=512), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=512), nullable=True),
        sa.Column("rejection_reason", sa.String(length=512), nullable=True),
        sa.ForeignKeyConstraint(
            ["expert_id"],
            ["experts.id"],
            name="fk_bookings_expert_id_experts",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_bookings_time_range"),
    )
    op.create_index("ix_bookings_expert_id_start_time", "bookings", ["expert_id", "start_time"], unique=False)
    op.create_index("ix_bookings_user_id_start_time", "bookings", ["user_id", "start_time"], unique=False)
    op.create_index("ix_bookings_status", "bookings", ["status"], unique=False)

    op.create_table(
        "status_histories",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("from_status", booking_status_enum, nullable=True),
        sa.Column("to_status", booking_status_enum, nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_role", actor_role_enum, nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("reason", sa.String(length=512), nullable=True),
        sa.Column("sequence", sa.BigInteger(), sa.Identity(always=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["booking_id"],
            ["bookings.id"],
            name="fk_status_histories_booking_id_bookings",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("sequence", name="uq_status_histories_sequence"),
    )
    op.create_index(
        "ix_status_histories_booking_id_created_at",
        "status_histories",
        ["booking_id", "created_at"],
        unique=False,
    )

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

    op.drop_index("ix_status_histories_booking_id_created_at", table_name="status_histories")
    op.drop_table("status_histories")

    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_user_id_start_time", table_name="bookings")
    op.drop_index("ix_bookings_expert_id_start_time", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_off_times_expert_id_start_date_end_date", table_name="off_times")
    op.drop_table("off_times")

    op.drop_index("ix_schedules_expert_id_day_of_week", table_name="schedules")
    op.drop_table("schedules")

    op.drop_index("ix_experts_status", table_name="experts")
    op.drop_index("ix_experts_expertise", table_name="experts")
    op.drop_table("experts")
