"""
Доменные перечисления.
"""

from __future__ import annotations

from enum import Enum


class ProfileRole(str, Enum):
    mentor = "mentor"
    learner = "learner"


class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    paid = "paid"
    completed = "completed"
    cancelled = "cancelled"


class MeetingStatus(str, Enum):
    scheduled = "scheduled"
    started = "started"
    ended = "ended"
    cancelled = "cancelled"


class ParticipantRole(str, Enum):
    host = "host"
    attendee = "attendee"


class AttendanceStatus(str, Enum):
    invited = "invited"
    joined = "joined"
    left = "left"


class NotificationType(str, Enum):
    booking_confirmation = "booking_confirmation"
    meeting_reminder = "meeting_reminder"


class SessionDuration(str, Enum):
    """
    Категория длительности сессии ментора.
    """

    short = "15"
    half_hour = "30"
    hour = "60"


class TransitionSource(str, Enum):
    user = "user"
    webhook = "webhook"


# Бронь, по которой можно создавать встречу
MEETING_READY_BOOKING_STATUSES = frozenset({BookingStatus.confirmed, BookingStatus.paid})

DURATION_MINUTES: dict[SessionDuration, int] = {
    SessionDuration.short: 15,
    SessionDuration.half_hour: 30,
    SessionDuration.hour: 60,
}
