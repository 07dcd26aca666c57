"""
Слоты доступности и брони.

Бронь - источник авторизации для встречи: менять её статус здесь можно
только до встречи (pending -> confirmed -> paid). Завершение и отмену брони
делает оркестратор встречи.
"""

from __future__ import annotations

from datetime import datetime

from mentor_meetings.common.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from mentor_meetings.common.logging import get_project_logger
from mentor_meetings.common.time import as_utc, minutes_between, utc_now
from mentor_meetings.domain.enums import BookingStatus, ProfileRole, SessionDuration
from mentor_meetings.storage.db import db_session
from mentor_meetings.storage.models import AvailabilitySlot, Booking, Profile
from mentor_meetings.storage.repositories import (
    AvailabilityRepository,
    BookingRepository,
    ProfileRepository,
)

log = get_project_logger()

ALLOWED_SLOT_DURATIONS = (15, 30, 60)

# status -> (кто может поставить, из какого статуса)
_BOOKING_TRANSITIONS: dict[BookingStatus, tuple[str, BookingStatus]] = {
    BookingStatus.confirmed: ("mentor", BookingStatus.pending),
    BookingStatus.paid: ("learner", BookingStatus.confirmed),
}


def session_duration_for(minutes: int) -> SessionDuration:
    try:
        return SessionDuration(str(int(minutes)))
    except ValueError:
        return SessionDuration.hour


async def _require_profile(session, profile_id: str) -> Profile:
    profile = await ProfileRepository(session).get(profile_id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


# =============================================================================
# AVAILABILITY
# =============================================================================
async def list_open_slots(mentor_id: str) -> list[AvailabilitySlot]:
    async with db_session() as session:
        return await AvailabilityRepository(session).list_open(mentor_id=mentor_id, after=utc_now())


async def add_slot(
    *, mentor_id: str, start_time: datetime, end_time: datetime, duration: int | None = None
) -> AvailabilitySlot:
    start_time, end_time = as_utc(start_time), as_utc(end_time)
    if end_time <= start_time:
        raise ValidationError("end_time must be after start_time")
    if start_time <= utc_now():
        raise ValidationError("Availability slot must start in the future")

    minutes = duration if duration is not None else minutes_between(start_time, end_time)
    if minutes not in ALLOWED_SLOT_DURATIONS:
        raise ValidationError(
            "Unsupported slot duration", {"allowed": list(ALLOWED_SLOT_DURATIONS)}
        )

    async with db_session() as session:
        mentor = await _require_profile(session, mentor_id)
        if mentor.role != ProfileRole.mentor:
            raise AuthorizationError("Only mentors can publish availability")

        slot = AvailabilitySlot(
            mentor_id=mentor_id,
            start_time=start_time,
            end_time=end_time,
            duration=minutes,
            is_booked=False,
        )
        AvailabilityRepository(session).save(slot)
        await session.flush()

    log.info("availability_slot_added", extra={"payload": {"slot_id": slot.id, "mentor_id": mentor_id}})
    return slot


async def remove_slot(*, slot_id: str, requester_id: str) -> None:
    async with db_session() as session:
        repo = AvailabilityRepository(session)
        slot = await repo.get(slot_id)
        if slot is None:
            raise NotFoundError("Availability slot not found")
        if slot.mentor_id != requester_id:
            raise AuthorizationError("Unauthorized to remove this slot")
        if slot.is_booked:
            raise PreconditionError("Cannot remove a booked slot")
        await repo.delete(slot)

    log.info("availability_slot_removed", extra={"payload": {"slot_id": slot_id}})


# =============================================================================
# BOOKINGS
# =============================================================================
async def list_bookings(user_id: str) -> list[Booking]:
    async with db_session() as session:
        return await BookingRepository(session).list_for_user(user_id)


async def book_slot(
    *,
    slot_id: str,
    learner_id: str,
    topic: str | None = None,
    message: str | None = None,
    session_title: str | None = None,
) -> Booking:
    """
    Забронировать слот. Слот занимается условным UPDATE:
    из двух параллельных броней одного слота проходит одна.
    """
    async with db_session() as session:
        learner = await _require_profile(session, learner_id)
        slots = AvailabilityRepository(session)
        slot = await slots.get(slot_id)
        if slot is None:
            raise NotFoundError("Availability slot not found")
        if slot.mentor_id == learner.id:
            raise PreconditionError("Cannot book your own availability")
        if as_utc(slot.start_time) <= utc_now():
            raise PreconditionError("Availability slot is in the past")
        if not await slots.mark_booked(slot_id):
            raise ConflictError("Availability slot is already booked")

        booking = Booking(
            learner_id=learner.id,
            mentor_id=slot.mentor_id,
            availability_slot_id=slot.id,
            session_title=(session_title or "Mentorship session").strip()[:255],
            session_duration=session_duration_for(slot.duration),
            start_time=as_utc(slot.start_time),
            end_time=as_utc(slot.end_time),
            topic=topic,
            message=message,
            status=BookingStatus.pending,
        )
        bookings = BookingRepository(session)
        bookings.save(booking)
        await session.flush()
        booking_id = booking.id

    async with db_session() as session:
        # перечитываем, чтобы подтянуть learner/mentor
        booking = await BookingRepository(session).get(booking_id)

    log.info(
        "booking_created",
        extra={"payload": {"booking_id": booking_id, "slot_id": slot_id}},
    )
    return booking


async def set_booking_status(
    *, booking_id: str, requester_id: str, status: BookingStatus
) -> Booking:
    status = BookingStatus(status)
    rule = _BOOKING_TRANSITIONS.get(status)
    if rule is None:
        raise ValidationError(
            "Unsupported booking status", {"allowed": [s.value for s in _BOOKING_TRANSITIONS]}
        )
    actor, expected = rule

    async with db_session() as session:
        bookings = BookingRepository(session)
        booking = await bookings.get(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        actor_id = booking.mentor_id if actor == "mentor" else booking.learner_id
        if requester_id not in (booking.mentor_id, booking.learner_id):
            raise AuthorizationError("Unauthorized to access this booking")
        if requester_id != actor_id:
            raise AuthorizationError(f"Only the {actor} can set status {status.value}")
        if not await bookings.set_status(booking_id, status, expected=[expected]):
            raise PreconditionError(
                f"Booking must be {expected.value} to become {status.value}",
                {"booking_status": BookingStatus(booking.status).value},
            )

    async with db_session() as session:
        booking = await BookingRepository(session).get(booking_id)

    log.info(
        "booking_status_changed",
        extra={"payload": {"booking_id": booking_id, "status": status.value, "by": requester_id}},
    )
    return booking
