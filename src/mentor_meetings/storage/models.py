"""
ORM-модели базы данных.

Назначение:
- профили, слоты доступности и брони (источник авторизации)
- запись встречи провайдера, 1:1 к брони (источник истины по статусу)
- участники встречи и запланированные уведомления
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from mentor_meetings.common.ids import new_uuid
from mentor_meetings.common.time import utc_now
from mentor_meetings.domain.enums import (
    AttendanceStatus,
    BookingStatus,
    MeetingStatus,
    NotificationType,
    ParticipantRole,
    ProfileRole,
    SessionDuration,
)


def _enum(cls: type[PyEnum]) -> Enum:
    # храним value, а не имя члена enum ("15", а не "short")
    return Enum(
        cls,
        values_callable=lambda e: [m.value for m in e],
        native_enum=False,
        length=32,
        validate_strings=True,
    )


# =============================================================================
# BASE
# =============================================================================
class Base(DeclarativeBase):
    pass


# =============================================================================
# PROFILES / AVAILABILITY / BOOKINGS
# =============================================================================
class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    role: Mapped[ProfileRole] = mapped_column(_enum(ProfileRole), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class AvailabilitySlot(Base):
    __tablename__ = "mentor_availability"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    mentor_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    is_booked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class Booking(Base):
    """
    Договорённость learner <-> mentor на конкретный слот.
    Не удаляется, только меняет статус.
    """

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    learner_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    mentor_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    availability_slot_id: Mapped[str | None] = mapped_column(
        ForeignKey("mentor_availability.id"), nullable=True
    )

    session_title: Mapped[str] = mapped_column(String(255), default="Mentorship session")
    session_duration: Mapped[SessionDuration] = mapped_column(
        _enum(SessionDuration), default=SessionDuration.hour, nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    topic: Mapped[str | None] = mapped_column(Text, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    mentor_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[BookingStatus] = mapped_column(
        _enum(BookingStatus), default=BookingStatus.pending, nullable=False
    )
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    learner: Mapped[Profile] = relationship(foreign_keys=[learner_id], lazy="joined")
    mentor: Mapped[Profile] = relationship(foreign_keys=[mentor_id], lazy="joined")


# =============================================================================
# MEETINGS
# =============================================================================
class MeetingRecord(Base):
    """
    Встреча у провайдера, привязанная к брони.

    version растёт на каждой смене статуса: апдейт статуса условный
    (WHERE status = old AND version = v), так что параллельные writer'ы
    (пользователь и вебхук) не теряют переходы друг друга.
    """

    __tablename__ = "meetings"
    __table_args__ = (
        Index(
            "uq_meetings_active_booking",
            "booking_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    booking_id: Mapped[str] = mapped_column(ForeignKey("bookings.id"), nullable=False, index=True)

    external_meeting_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    external_meeting_uuid: Mapped[str | None] = mapped_column(String(128), nullable=True)
    host_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    join_url: Mapped[str] = mapped_column(Text, nullable=False)
    start_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    password: Mapped[str] = mapped_column(String(64), nullable=False)

    scheduled_start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    scheduled_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)

    status: Mapped[MeetingStatus] = mapped_column(
        _enum(MeetingStatus), default=MeetingStatus.scheduled, nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    waiting_room_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    mute_participants_on_entry: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    auto_recording: Mapped[str] = mapped_column(String(16), default="cloud", nullable=False)

    actual_start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    actual_end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    actual_duration_minutes: Mapped[int | None] = mapped_column(Integer)

    recording_url: Mapped[str | None] = mapped_column(Text)
    recording_password: Mapped[str | None] = mapped_column(String(128))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    booking: Mapped[Booking] = relationship(lazy="joined")
    participants: Mapped[list[MeetingParticipant]] = relationship(
        back_populates="meeting",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class MeetingParticipant(Base):
    __tablename__ = "meeting_participants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    meeting_id: Mapped[str] = mapped_column(
        ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(320))
    role: Mapped[ParticipantRole] = mapped_column(_enum(ParticipantRole), nullable=False)

    external_participant_id: Mapped[str | None] = mapped_column(String(128))
    joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    left_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    duration_minutes: Mapped[int | None] = mapped_column(Integer)
    attendance_status: Mapped[AttendanceStatus] = mapped_column(
        _enum(AttendanceStatus), default=AttendanceStatus.invited, nullable=False
    )

    meeting: Mapped[MeetingRecord] = relationship(back_populates="participants")


# =============================================================================
# NOTIFICATIONS
# =============================================================================
class MeetingNotification(Base):
    """
    Запланированное уведомление. Доставка - вне этого сервиса.
    """

    __tablename__ = "meeting_notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    booking_id: Mapped[str] = mapped_column(ForeignKey("bookings.id"), nullable=False, index=True)
    recipient_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    notification_type: Mapped[NotificationType] = mapped_column(
        _enum(NotificationType), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    scheduled_for: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
