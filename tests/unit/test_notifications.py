from __future__ import annotations

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

from mentor_meetings.domain.enums import NotificationType
from mentor_meetings.services.notification_service import build_standard_notifications


def _booking(start: datetime) -> SimpleNamespace:
    return SimpleNamespace(
        id="b-1",
        learner_id="learner-1",
        mentor_id="mentor-1",
        start_time=start,
        learner=SimpleNamespace(name="Leo"),
        mentor=SimpleNamespace(name="Maria"),
    )


def test_four_notifications_with_expected_recipients_and_times() -> None:
    start = datetime(2026, 11, 3, 15, 0, tzinfo=UTC)
    now = datetime(2026, 11, 1, 9, 0, tzinfo=UTC)
    items = build_standard_notifications(_booking(start), now=now)

    assert len(items) == 4
    confirmations = [n for n in items if n.notification_type == NotificationType.booking_confirmation]
    reminders = [n for n in items if n.notification_type == NotificationType.meeting_reminder]

    assert {n.recipient_id for n in confirmations} == {"learner-1", "mentor-1"}
    assert all(n.scheduled_for == now for n in confirmations)

    assert {n.recipient_id for n in reminders} == {"learner-1"}
    assert sorted(n.scheduled_for for n in reminders) == [
        start - timedelta(hours=24),
        start - timedelta(hours=1),
    ]
    assert all(n.booking_id == "b-1" for n in items)


def test_messages_mention_counterpart_and_start_time() -> None:
    start = datetime(2026, 11, 3, 15, 0, tzinfo=UTC)
    items = build_standard_notifications(_booking(start))
    to_mentor = next(n for n in items if n.recipient_id == "mentor-1")
    assert "Leo" in to_mentor.message
    assert "2026-11-03 15:00 UTC" in to_mentor.message


def test_naive_start_time_is_treated_as_utc() -> None:
    start = datetime(2026, 11, 3, 15, 0)
    items = build_standard_notifications(_booking(start))
    reminders = sorted(
        n.scheduled_for for n in items if n.notification_type == NotificationType.meeting_reminder
    )
    assert reminders[-1] == datetime(2026, 11, 3, 14, 0, tzinfo=UTC)
