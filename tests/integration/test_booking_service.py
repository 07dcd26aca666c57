from __future__ import annotations

from datetime import timedelta

import pytest

from mentor_meetings.common.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from mentor_meetings.common.ids import new_uuid
from mentor_meetings.common.time import utc_now
from mentor_meetings.domain.enums import BookingStatus, ProfileRole, SessionDuration
from mentor_meetings.services import booking_service
from mentor_meetings.storage.db import db_session
from mentor_meetings.storage.models import AvailabilitySlot, Profile


@pytest.fixture()
async def people(db):
    mentor = Profile(id=new_uuid(), name="Maria", email="maria@example.com", role=ProfileRole.mentor)
    learner = Profile(id=new_uuid(), name="Leo", email="leo@example.com", role=ProfileRole.learner)
    other = Profile(id=new_uuid(), name="Ann", email="ann@example.com", role=ProfileRole.learner)
    async with db_session() as s:
        s.add_all([mentor, learner, other])
    return mentor.id, learner.id, other.id


def _window(minutes: int = 30, days: int = 3):
    start = (utc_now() + timedelta(days=days)).replace(microsecond=0)
    return start, start + timedelta(minutes=minutes)


async def test_mentor_publishes_and_lists_slot(people) -> None:
    mentor_id, _, _ = people
    start, end = _window(30)
    slot = await booking_service.add_slot(mentor_id=mentor_id, start_time=start, end_time=end)

    assert slot.duration == 30
    assert slot.is_booked is False
    open_slots = await booking_service.list_open_slots(mentor_id)
    assert [s.id for s in open_slots] == [slot.id]


async def test_learner_cannot_publish_availability(people) -> None:
    _, learner_id, _ = people
    start, end = _window()
    with pytest.raises(AuthorizationError):
        await booking_service.add_slot(mentor_id=learner_id, start_time=start, end_time=end)


@pytest.mark.parametrize("minutes", [0, 45])
async def test_slot_window_is_validated(people, minutes) -> None:
    mentor_id, _, _ = people
    start, end = _window(minutes)
    with pytest.raises(ValidationError):
        await booking_service.add_slot(mentor_id=mentor_id, start_time=start, end_time=end)


async def test_past_slot_is_rejected(people) -> None:
    mentor_id, _, _ = people
    start, end = _window(30, days=-1)
    with pytest.raises(ValidationError):
        await booking_service.add_slot(mentor_id=mentor_id, start_time=start, end_time=end)


async def test_book_slot_creates_pending_booking_and_takes_slot(people) -> None:
    mentor_id, learner_id, other_id = people
    start, end = _window(15)
    slot = await booking_service.add_slot(mentor_id=mentor_id, start_time=start, end_time=end)

    booking = await booking_service.book_slot(
        slot_id=slot.id, learner_id=learner_id, topic="Career", message="Hi!", session_title="Intro"
    )
    assert booking.status == BookingStatus.pending
    assert booking.mentor_id == mentor_id
    assert booking.session_duration == SessionDuration.short
    assert booking.session_title == "Intro"
    assert booking.learner.name == "Leo"

    assert await booking_service.list_open_slots(mentor_id) == []
    with pytest.raises(ConflictError):
        await booking_service.book_slot(slot_id=slot.id, learner_id=other_id)


async def test_mentor_cannot_book_own_slot(people) -> None:
    mentor_id, _, _ = people
    start, end = _window()
    slot = await booking_service.add_slot(mentor_id=mentor_id, start_time=start, end_time=end)
    with pytest.raises(PreconditionError):
        await booking_service.book_slot(slot_id=slot.id, learner_id=mentor_id)


async def test_remove_slot_rules(people) -> None:
    mentor_id, learner_id, _ = people
    start, end = _window()
    free = await booking_service.add_slot(mentor_id=mentor_id, start_time=start, end_time=end)
    taken = await booking_service.add_slot(
        mentor_id=mentor_id, start_time=start + timedelta(hours=2), end_time=end + timedelta(hours=2)
    )
    await booking_service.book_slot(slot_id=taken.id, learner_id=learner_id)

    with pytest.raises(AuthorizationError):
        await booking_service.remove_slot(slot_id=free.id, requester_id=learner_id)
    with pytest.raises(PreconditionError):
        await booking_service.remove_slot(slot_id=taken.id, requester_id=mentor_id)

    await booking_service.remove_slot(slot_id=free.id, requester_id=mentor_id)
    with pytest.raises(NotFoundError):
        await booking_service.remove_slot(slot_id=free.id, requester_id=mentor_id)


async def test_booking_confirm_then_pay(people) -> None:
    mentor_id, learner_id, _ = people
    start, end = _window()
    slot = await booking_service.add_slot(mentor_id=mentor_id, start_time=start, end_time=end)
    booking = await booking_service.book_slot(slot_id=slot.id, learner_id=learner_id)

    # оплатить можно только подтверждённую бронь
    with pytest.raises(PreconditionError):
        await booking_service.set_booking_status(
            booking_id=booking.id, requester_id=learner_id, status=BookingStatus.paid
        )
    # подтверждает только ментор
    with pytest.raises(AuthorizationError):
        await booking_service.set_booking_status(
            booking_id=booking.id, requester_id=learner_id, status=BookingStatus.confirmed
        )

    confirmed = await booking_service.set_booking_status(
        booking_id=booking.id, requester_id=mentor_id, status=BookingStatus.confirmed
    )
    assert confirmed.status == BookingStatus.confirmed

    paid = await booking_service.set_booking_status(
        booking_id=booking.id, requester_id=learner_id, status=BookingStatus.paid
    )
    assert paid.status == BookingStatus.paid


async def test_completion_and_cancellation_not_settable_here(people) -> None:
    mentor_id, learner_id, _ = people
    start, end = _window()
    slot = await booking_service.add_slot(mentor_id=mentor_id, start_time=start, end_time=end)
    booking = await booking_service.book_slot(slot_id=slot.id, learner_id=learner_id)

    for status in (BookingStatus.completed, BookingStatus.cancelled, BookingStatus.pending):
        with pytest.raises(ValidationError):
            await booking_service.set_booking_status(
                booking_id=booking.id, requester_id=mentor_id, status=status
            )


async def test_list_bookings_for_both_parties(people) -> None:
    mentor_id, learner_id, other_id = people
    start, end = _window()
    slot = await booking_service.add_slot(mentor_id=mentor_id, start_time=start, end_time=end)
    booking = await booking_service.book_slot(slot_id=slot.id, learner_id=learner_id)

    assert [b.id for b in await booking_service.list_bookings(mentor_id)] == [booking.id]
    assert [b.id for b in await booking_service.list_bookings(learner_id)] == [booking.id]
    assert await booking_service.list_bookings(other_id) == []


async def test_slot_with_unexpected_duration_maps_to_hour(people) -> None:
    mentor_id, learner_id, _ = people
    start, end = _window(60)
    async with db_session() as s:
        slot = AvailabilitySlot(mentor_id=mentor_id, start_time=start, end_time=end, duration=90)
        s.add(slot)
        await s.flush()
        slot_id = slot.id

    booking = await booking_service.book_slot(slot_id=slot_id, learner_id=learner_id)
    assert booking.session_duration == SessionDuration.hour
