"""
Стандартный набор уведомлений при создании встречи.

Только планирование (строки в meeting_notifications); доставкой занимается
отдельный потребитель таблицы.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from mentor_meetings.common.time import as_utc, utc_now
from mentor_meetings.domain.enums import NotificationType
from mentor_meetings.storage.models import Booking, MeetingNotification

REMINDER_OFFSETS = (timedelta(hours=24), timedelta(hours=1))


def _fmt(ts: datetime) -> str:
    return as_utc(ts).strftime("%Y-%m-%d %H:%M UTC")


def build_standard_notifications(
    booking: Booking, *, now: datetime | None = None
) -> list[MeetingNotification]:
    """
    Подтверждение обоим участникам + напоминания learner'у за 24ч и за 1ч.
    """
    now = now or utc_now()
    start = as_utc(booking.start_time)
    mentor_name = booking.mentor.name if booking.mentor else "your mentor"
    learner_name = booking.learner.name if booking.learner else "A learner"
    day_before, hour_before = (start - offset for offset in REMINDER_OFFSETS)

    return [
        MeetingNotification(
            booking_id=booking.id,
            recipient_id=booking.learner_id,
            notification_type=NotificationType.booking_confirmation,
            title="Session Confirmed",
            message=f"Your mentorship session with {mentor_name} is confirmed for {_fmt(start)}.",
            scheduled_for=now,
        ),
        MeetingNotification(
            booking_id=booking.id,
            recipient_id=booking.mentor_id,
            notification_type=NotificationType.booking_confirmation,
            title="New Session Booked",
            message=f"{learner_name} has booked a session with you for {_fmt(start)}.",
            scheduled_for=now,
        ),
        MeetingNotification(
            booking_id=booking.id,
            recipient_id=booking.learner_id,
            notification_type=NotificationType.meeting_reminder,
            title="Session Tomorrow",
            message=f"Reminder: your session with {mentor_name} is tomorrow at {_fmt(start)}.",
            scheduled_for=day_before,
        ),
        MeetingNotification(
            booking_id=booking.id,
            recipient_id=booking.learner_id,
            notification_type=NotificationType.meeting_reminder,
            title="Session Starting Soon",
            message=(
                f"Your session with {mentor_name} starts in 1 hour. "
                "The join link is available in your dashboard."
            ),
            scheduled_for=hour_before,
        ),
    ]
