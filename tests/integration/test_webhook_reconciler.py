from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest
from sqlalchemy import func, select

from mentor_meetings.common.errors import InvalidSignatureError, ValidationError
from mentor_meetings.domain.enums import AttendanceStatus, BookingStatus, MeetingStatus, ParticipantRole
from mentor_meetings.services.meeting_service import MeetingLifecycleService
from mentor_meetings.services.webhook_service import WebhookReconciler, compute_signature
from mentor_meetings.storage.db import db_session
from mentor_meetings.storage.models import Booking, MeetingRecord
from mentor_meetings.storage.repositories import MeetingRepository


@pytest.fixture()
def service(provider, app_settings) -> MeetingLifecycleService:
    return MeetingLifecycleService(provider, app_settings)


@pytest.fixture()
def reconciler(service, app_settings) -> WebhookReconciler:
    return WebhookReconciler(service, app_settings)


@pytest.fixture()
async def meeting(service, seed):
    seeded = await seed()
    meeting_id = await service.create(
        booking_id=seeded.booking_id,
        requester_id=seeded.mentor_id,
        host_provider_user_id="mentor@zoom.test",
    )
    async with db_session() as s:
        m = await MeetingRepository(s).get(meeting_id)
    return m


def _body(event: str, obj: dict, *, event_ts: int = 1_790_000_000_000) -> bytes:
    return json.dumps({"event": event, "event_ts": event_ts, "payload": {"object": obj}}).encode()


async def _deliver(reconciler: WebhookReconciler, raw: bytes, secret: str | None = None):
    secret = secret if secret is not None else reconciler.settings.zoom_webhook_secret
    return await reconciler.handle(raw, compute_signature(raw, secret))


async def _reload(meeting_id: str) -> MeetingRecord:
    async with db_session() as s:
        return await MeetingRepository(s).get(meeting_id)


async def test_meeting_started_uses_event_time(reconciler, meeting) -> None:
    raw = _body(
        "meeting.started",
        {"id": int(meeting.external_meeting_id), "start_time": "2026-11-03T15:02:00Z"},
    )
    outcome = await _deliver(reconciler, raw)

    assert outcome.result == "applied"
    assert outcome.meeting_id == meeting.id
    m = await _reload(meeting.id)
    assert m.status == MeetingStatus.started
    assert m.actual_start_time.replace(tzinfo=UTC) == datetime(2026, 11, 3, 15, 2, tzinfo=UTC)


async def test_meeting_ended_twice_equals_once(reconciler, meeting) -> None:
    ext = meeting.external_meeting_id
    await _deliver(reconciler, _body("meeting.started", {"id": ext, "start_time": "2026-11-03T15:00:00Z"}))
    first = await _deliver(
        reconciler, _body("meeting.ended", {"id": ext, "end_time": "2026-11-03T15:45:00Z"})
    )
    once = await _reload(meeting.id)

    # повторная доставка с другим event_ts (не дедупится по телу)
    second = await _deliver(
        reconciler,
        _body("meeting.ended", {"id": ext, "end_time": "2026-11-03T15:50:00Z"}, event_ts=1_790_000_000_999),
    )
    twice = await _reload(meeting.id)

    assert first.result == "applied"
    assert second.result == "ignored"
    assert once.status == twice.status == MeetingStatus.ended
    assert once.actual_end_time == twice.actual_end_time
    assert twice.actual_duration_minutes == 45
    assert once.version == twice.version

    async with db_session() as s:
        booking = await s.get(Booking, meeting.booking_id)
    assert booking.status == BookingStatus.completed


async def test_identical_redelivery_is_short_circuited(reconciler, meeting) -> None:
    raw = _body("meeting.started", {"id": meeting.external_meeting_id})
    assert (await _deliver(reconciler, raw)).result == "applied"
    assert (await _deliver(reconciler, raw)).result == "duplicate"


async def test_bad_signature_mutates_nothing(reconciler, meeting) -> None:
    raw = _body("meeting.ended", {"id": meeting.external_meeting_id})
    with pytest.raises(InvalidSignatureError):
        await _deliver(reconciler, raw, secret="wrong-secret")
    with pytest.raises(InvalidSignatureError):
        await reconciler.handle(raw, None)

    m = await _reload(meeting.id)
    assert m.status == MeetingStatus.scheduled
    assert m.version == 1


async def test_event_for_unknown_meeting_is_dropped(reconciler, db) -> None:
    outcome = await _deliver(reconciler, _body("meeting.started", {"id": 99999999999}))
    assert outcome.result == "dropped"
    async with db_session() as s:
        assert await s.scalar(select(func.count()).select_from(MeetingRecord)) == 0


async def test_unknown_event_is_accepted_and_ignored(reconciler, meeting) -> None:
    outcome = await _deliver(reconciler, _body("meeting.sharing_started", {"id": meeting.external_meeting_id}))
    assert outcome.result == "ignored"
    assert (await _reload(meeting.id)).status == MeetingStatus.scheduled


async def test_malformed_body_with_valid_signature(reconciler, db) -> None:
    raw = b"not json"
    with pytest.raises(ValidationError):
        await _deliver(reconciler, raw)


def _attendee(m: MeetingRecord):
    return next(p for p in m.participants if p.role == ParticipantRole.attendee)


async def test_participant_join_and_leave(reconciler, meeting) -> None:
    ext = meeting.external_meeting_id
    joined = await _deliver(
        reconciler,
        _body(
            "meeting.participant_joined",
            {
                "id": ext,
                "participant": {
                    "id": "zp-1",
                    "email": "LEO@example.com",
                    "join_time": "2026-11-03T15:01:00Z",
                },
            },
        ),
    )
    assert joined.result == "applied"
    p = _attendee(await _reload(meeting.id))
    assert p.attendance_status == AttendanceStatus.joined
    assert p.external_participant_id == "zp-1"

    left = await _deliver(
        reconciler,
        _body(
            "meeting.participant_left",
            {"id": ext, "participant": {"id": "zp-1", "leave_time": "2026-11-03T15:41:00Z"}},
        ),
    )
    assert left.result == "applied"
    p = _attendee(await _reload(meeting.id))
    assert p.attendance_status == AttendanceStatus.left
    assert p.duration_minutes == 40


async def test_participant_left_without_join_keeps_duration_unset(reconciler, meeting) -> None:
    outcome = await _deliver(
        reconciler,
        _body(
            "meeting.participant_left",
            {
                "id": meeting.external_meeting_id,
                "participant": {"id": "zp-9", "email": "leo@example.com"},
            },
        ),
    )
    assert outcome.result == "applied"
    p = _attendee(await _reload(meeting.id))
    assert p.left_at is not None
    assert p.joined_at is None
    assert p.duration_minutes is None
    assert p.attendance_status == AttendanceStatus.left


async def test_participant_event_for_unknown_person_is_ignored(reconciler, meeting) -> None:
    outcome = await _deliver(
        reconciler,
        _body(
            "meeting.participant_joined",
            {"id": meeting.external_meeting_id, "participant": {"id": "x", "email": "guest@example.com"}},
        ),
    )
    assert outcome.result == "ignored"


async def test_recording_completed_attaches_first_file(reconciler, meeting) -> None:
    outcome = await _deliver(
        reconciler,
        _body(
            "recording.completed",
            {
                "id": meeting.external_meeting_id,
                "recording_files": [
                    {"play_url": "https://zoom.us/rec/play/1", "password": "rec-pass"},
                    {"play_url": "https://zoom.us/rec/play/2"},
                ],
            },
        ),
    )
    assert outcome.result == "applied"
    m = await _reload(meeting.id)
    assert m.recording_url == "https://zoom.us/rec/play/1"
    assert m.recording_password == "rec-pass"


async def test_failed_processing_allows_redelivery(reconciler, meeting, monkeypatch) -> None:
    raw = _body("meeting.started", {"id": meeting.external_meeting_id})

    async def boom(*args, **kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(reconciler, "_on_meeting_started", boom)
    with pytest.raises(RuntimeError):
        await _deliver(reconciler, raw)

    monkeypatch.undo()
    assert (await _deliver(reconciler, raw)).result == "applied"
