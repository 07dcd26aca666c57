from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from mentor_meetings.domain.enums import MeetingStatus
from mentor_meetings.storage.db import db_session
from mentor_meetings.storage.models import MeetingRecord
from mentor_meetings.storage.repositories import MeetingRepository


def _meeting(booking_id: str, start_time, external_id: str, status=MeetingStatus.scheduled) -> MeetingRecord:
    return MeetingRecord(
        booking_id=booking_id,
        external_meeting_id=external_id,
        join_url=f"https://zoom.test/j/{external_id}",
        start_url=f"https://zoom.test/s/{external_id}",
        password="abc123",
        scheduled_start_time=start_time,
        scheduled_duration_minutes=60,
        status=status,
    )


async def test_db_session_smoke(db) -> None:
    async with db_session() as s:
        assert s is not None


async def test_one_active_meeting_per_booking(seed) -> None:
    seeded = await seed()
    async with db_session() as s:
        s.add(_meeting(seeded.booking_id, seeded.start_time, "1001"))

    with pytest.raises(IntegrityError):
        async with db_session() as s:
            s.add(_meeting(seeded.booking_id, seeded.start_time, "1002"))


async def test_cancelled_meeting_frees_the_booking(seed) -> None:
    seeded = await seed()
    async with db_session() as s:
        s.add(_meeting(seeded.booking_id, seeded.start_time, "2001", status=MeetingStatus.cancelled))
        s.add(_meeting(seeded.booking_id, seeded.start_time, "2002"))

    async with db_session() as s:
        repo = MeetingRepository(s)
        active = await repo.get_active_by_booking(seeded.booking_id)
        latest = await repo.get_latest_by_booking(seeded.booking_id)
    assert active is not None
    assert active.external_meeting_id == "2002"
    assert latest is not None


async def test_conditional_transition_bumps_version(seed) -> None:
    seeded = await seed()
    async with db_session() as s:
        m = _meeting(seeded.booking_id, seeded.start_time, "3001")
        s.add(m)
        await s.flush()
        meeting_id = m.id

    async with db_session() as s:
        stale = await MeetingRepository(s).get(meeting_id)

    async with db_session() as s:
        repo = MeetingRepository(s)
        fresh = await repo.get(meeting_id)
        assert await repo.transition_status(fresh, new_status=MeetingStatus.started) is True
        fresh = await repo.refresh(fresh)
        assert fresh.version == stale.version + 1

    # устаревшая копия (status, version) уже не совпадает со строкой
    async with db_session() as s:
        assert await MeetingRepository(s).transition_status(stale, new_status=MeetingStatus.ended) is False
