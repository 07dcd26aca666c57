"""
Сидинг тестовых данных в БД: ментор, learner, слот и подтверждённая бронь.
Используется для ручных проверок и dev-отладки (POST /api/meetings по брони).
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

from mentor_meetings.common.ids import new_uuid
from mentor_meetings.common.time import utc_now
from mentor_meetings.domain.enums import BookingStatus, ProfileRole, SessionDuration
from mentor_meetings.storage.db import db_session
from mentor_meetings.storage.models import AvailabilitySlot, Booking, Profile


async def main() -> None:
    start = (utc_now() + timedelta(days=2)).replace(minute=0, second=0, microsecond=0)
    end = start + timedelta(minutes=60)

    async with db_session() as s:
        mentor = Profile(id=new_uuid(), name="Sample Mentor", email="mentor@example.com", role=ProfileRole.mentor)
        learner = Profile(id=new_uuid(), name="Sample Learner", email="learner@example.com", role=ProfileRole.learner)
        s.add_all([mentor, learner])
        await s.flush()

        slot = AvailabilitySlot(mentor_id=mentor.id, start_time=start, end_time=end, duration=60, is_booked=True)
        s.add(slot)
        await s.flush()

        booking = Booking(
            learner_id=learner.id,
            mentor_id=mentor.id,
            availability_slot_id=slot.id,
            session_title="Career guidance",
            session_duration=SessionDuration.hour,
            start_time=start,
            end_time=end,
            topic="Seed topic",
            message="Seed message",
            status=BookingStatus.confirmed,
        )
        s.add(booking)
        await s.flush()

        print("Seeded mentor:", mentor.id)
        print("Seeded learner:", learner.id)
        print("Seeded booking:", booking.id)


if __name__ == "__main__":
    asyncio.run(main())
