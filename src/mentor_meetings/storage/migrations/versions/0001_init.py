"""
Инициальная миграция.

Создаёт таблицы:
- profiles
- mentor_availability
- bookings
- meetings (+ частичный уникальный индекс: одна неотменённая встреча на бронь)
- meeting_participants
- meeting_notifications

Enum-поля хранятся строками (native_enum=False), как в моделях.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _tz() -> sa.DateTime:
    return sa.DateTime(timezone=True)


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("created_at", _tz(), nullable=True),
        sa.Column("updated_at", _tz(), nullable=True),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"])

    op.create_table(
        "mentor_availability",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("mentor_id", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("start_time", _tz(), nullable=False),
        sa.Column("end_time", _tz(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("is_booked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", _tz(), nullable=True),
    )
    op.create_index("ix_mentor_availability_mentor_id", "mentor_availability", ["mentor_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("learner_id", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("mentor_id", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column(
            "availability_slot_id",
            sa.String(length=36),
            sa.ForeignKey("mentor_availability.id"),
            nullable=True,
        ),
        sa.Column("session_title", sa.String(length=255), nullable=True),
        sa.Column("session_duration", sa.String(length=32), nullable=False, server_default="60"),
        sa.Column("start_time", _tz(), nullable=False),
        sa.Column("end_time", _tz(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        sa.Column("topic", sa.Text(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("mentor_notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", _tz(), nullable=True),
        sa.Column("updated_at", _tz(), nullable=True),
    )
    op.create_index("ix_bookings_learner_id", "bookings", ["learner_id"])
    op.create_index("ix_bookings_mentor_id", "bookings", ["mentor_id"])

    op.create_table(
        "meetings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_id", sa.String(length=36), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("external_meeting_id", sa.String(length=64), nullable=False),
        sa.Column("external_meeting_uuid", sa.String(length=128), nullable=True),
        sa.Column("host_id", sa.String(length=128), nullable=True),
        sa.Column("join_url", sa.Text(), nullable=False),
        sa.Column("start_url", sa.Text(), nullable=True),
        sa.Column("password", sa.String(length=64), nullable=False),
        sa.Column("scheduled_start_time", _tz(), nullable=False),
        sa.Column("scheduled_duration_minutes", sa.Integer(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="scheduled"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("waiting_room_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "mute_participants_on_entry", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("auto_recording", sa.String(length=16), nullable=False, server_default="cloud"),
        sa.Column("actual_start_time", _tz(), nullable=True),
        sa.Column("actual_end_time", _tz(), nullable=True),
        sa.Column("actual_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("recording_url", sa.Text(), nullable=True),
        sa.Column("recording_password", sa.String(length=128), nullable=True),
        sa.Column("created_at", _tz(), nullable=True),
        sa.Column("updated_at", _tz(), nullable=True),
    )
    op.create_index("ix_meetings_booking_id", "meetings", ["booking_id"])
    op.create_index("ix_meetings_external_meeting_id", "meetings", ["external_meeting_id"])
    op.create_index(
        "uq_meetings_active_booking",
        "meetings",
        ["booking_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
        sqlite_where=sa.text("status <> 'cancelled'"),
    )

    op.create_table(
        "meeting_participants",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "meeting_id",
            sa.String(length=36),
            sa.ForeignKey("meetings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=True),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("external_participant_id", sa.String(length=128), nullable=True),
        sa.Column("joined_at", _tz(), nullable=True),
        sa.Column("left_at", _tz(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("attendance_status", sa.String(length=32), nullable=False, server_default="invited"),
    )
    op.create_index("ix_meeting_participants_meeting_id", "meeting_participants", ["meeting_id"])

    op.create_table(
        "meeting_notifications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("booking_id", sa.String(length=36), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("recipient_id", sa.String(length=36), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("notification_type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("scheduled_for", _tz(), nullable=False),
        sa.Column("sent_at", _tz(), nullable=True),
        sa.Column("created_at", _tz(), nullable=True),
    )
    op.create_index("ix_meeting_notifications_booking_id", "meeting_notifications", ["booking_id"])


def downgrade() -> None:
    op.drop_index("ix_meeting_notifications_booking_id", table_name="meeting_notifications")
    op.drop_table("meeting_notifications")
    op.drop_index("ix_meeting_participants_meeting_id", table_name="meeting_participants")
    op.drop_table("meeting_participants")
    op.drop_index("uq_meetings_active_booking", table_name="meetings")
    op.drop_index("ix_meetings_external_meeting_id", table_name="meetings")
    op.drop_index("ix_meetings_booking_id", table_name="meetings")
    op.drop_table("meetings")
    op.drop_index("ix_bookings_mentor_id", table_name="bookings")
    op.drop_index("ix_bookings_learner_id", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_mentor_availability_mentor_id", table_name="mentor_availability")
    op.drop_table("mentor_availability")
    op.drop_index("ix_profiles_email", table_name="profiles")
    op.drop_table("profiles")
