"""
Репозитории (DAO слой).

Правила:
- Никакой бизнес-логики
- Только CRUD и запросы
- Смена статусов - условными UPDATE (атомарно на уровне строки)
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_meetings.domain.enums import BookingStatus, MeetingStatus
from mentor_meetings.storage.models import (
    AvailabilitySlot,
    Booking,
    MeetingNotification,
    MeetingParticipant,
    MeetingRecord,
    Profile,
)


# =============================================================================
# PROFILE REPOSITORY
# =============================================================================
class ProfileRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, profile_id: str) -> Profile | None:
        return await self.session.get(Profile, profile_id)

    def save(self, profile: Profile) -> None:
        self.session.add(profile)


# =============================================================================
# AVAILABILITY REPOSITORY
# =============================================================================
class AvailabilityRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, slot_id: str) -> AvailabilitySlot | None:
        return await self.session.get(AvailabilitySlot, slot_id)

    def save(self, slot: AvailabilitySlot) -> None:
        self.session.add(slot)

    async def delete(self, slot: AvailabilitySlot) -> None:
        await self.session.delete(slot)

    async def list_open(self, *, mentor_id: str, after: datetime) -> list[AvailabilitySlot]:
        stmt = (
            select(AvailabilitySlot)
            .where(
                AvailabilitySlot.mentor_id == mentor_id,
                AvailabilitySlot.is_booked.is_(False),
                AvailabilitySlot.start_time >= after,
            )
            .order_by(AvailabilitySlot.start_time)
        )
        return list((await self.session.scalars(stmt)).all())

    async def mark_booked(self, slot_id: str) -> bool:
        """
        Занимает слот, только если он ещё свободен. False - слот уже занят.
        """
        result = await self.session.execute(
            update(AvailabilitySlot)
            .where(AvailabilitySlot.id == slot_id, AvailabilitySlot.is_booked.is_(False))
            .values(is_booked=True)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1


# =============================================================================
# BOOKING REPOSITORY
# =============================================================================
class BookingRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, booking_id: str) -> Booking | None:
        return await self.session.get(Booking, booking_id)

    def save(self, booking: Booking) -> None:
        self.session.add(booking)

    async def list_for_user(
        self,
        user_id: str,
        *,
        statuses: Iterable[BookingStatus] | None = None,
    ) -> list[Booking]:
        stmt = select(Booking).where(
            or_(Booking.learner_id == user_id, Booking.mentor_id == user_id)
        )
        if statuses is not None:
            stmt = stmt.where(Booking.status.in_(list(statuses)))
        stmt = stmt.order_by(Booking.start_time)
        return list((await self.session.scalars(stmt)).unique().all())

    async def set_status(
        self,
        booking_id: str,
        status: BookingStatus,
        *,
        expected: Iterable[BookingStatus] | None = None,
        cancellation_reason: str | None = None,
    ) -> bool:
        values: dict[str, Any] = {"status": status}
        if cancellation_reason is not None:
            values["cancellation_reason"] = cancellation_reason
        stmt = update(Booking).where(Booking.id == booking_id)
        if expected is not None:
            stmt = stmt.where(Booking.status.in_(list(expected)))
        result = await self.session.execute(
            stmt.values(**values).execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1


# =============================================================================
# MEETING REPOSITORY
# =============================================================================
class MeetingRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, meeting_id: str) -> MeetingRecord | None:
        return await self.session.get(MeetingRecord, meeting_id)

    def save(self, meeting: MeetingRecord) -> None:
        self.session.add(meeting)

    async def refresh(self, meeting: MeetingRecord) -> MeetingRecord:
        await self.session.refresh(meeting)
        return meeting

    async def get_active_by_booking(self, booking_id: str) -> MeetingRecord | None:
        stmt = (
            select(MeetingRecord)
            .where(
                MeetingRecord.booking_id == booking_id,
                MeetingRecord.status != MeetingStatus.cancelled,
            )
            .limit(1)
        )
        return (await self.session.scalars(stmt)).unique().first()

    async def get_latest_by_booking(self, booking_id: str) -> MeetingRecord | None:
        """
        Активная встреча брони, а если её нет - последняя отменённая.
        """
        active = await self.get_active_by_booking(booking_id)
        if active is not None:
            return active
        stmt = (
            select(MeetingRecord)
            .where(MeetingRecord.booking_id == booking_id)
            .order_by(MeetingRecord.created_at.desc())
            .limit(1)
        )
        return (await self.session.scalars(stmt)).unique().first()

    async def get_by_external_id(self, external_meeting_id: str) -> MeetingRecord | None:
        stmt = (
            select(MeetingRecord)
            .where(MeetingRecord.external_meeting_id == external_meeting_id)
            .order_by(MeetingRecord.created_at.desc())
            .limit(1)
        )
        return (await self.session.scalars(stmt)).unique().first()

    async def list_for_bookings(self, booking_ids: list[str]) -> list[MeetingRecord]:
        if not booking_ids:
            return []
        stmt = (
            select(MeetingRecord)
            .where(MeetingRecord.booking_id.in_(booking_ids))
            .order_by(MeetingRecord.scheduled_start_time)
        )
        return list((await self.session.scalars(stmt)).unique().all())

    async def transition_status(
        self,
        meeting: MeetingRecord,
        *,
        new_status: MeetingStatus,
        values: dict[str, Any] | None = None,
    ) -> bool:
        """
        Условный переход статуса: применяется, только если строка всё ещё
        в том статусе и версии, которые видел вызывающий. False - гонку проиграли.
        """
        result = await self.session.execute(
            update(MeetingRecord)
            .where(
                MeetingRecord.id == meeting.id,
                MeetingRecord.status == meeting.status,
                MeetingRecord.version == meeting.version,
            )
            .values(status=new_status, version=MeetingRecord.version + 1, **(values or {}))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def attach_recording(
        self, meeting_id: str, *, recording_url: str | None, recording_password: str | None
    ) -> None:
        await self.session.execute(
            update(MeetingRecord)
            .where(MeetingRecord.id == meeting_id)
            .values(recording_url=recording_url, recording_password=recording_password)
            .execution_options(synchronize_session=False)
        )


# =============================================================================
# PARTICIPANT REPOSITORY
# =============================================================================
class ParticipantRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def add_many(self, participants: Iterable[MeetingParticipant]) -> None:
        self.session.add_all(list(participants))

    async def list_by_meeting(self, meeting_id: str) -> list[MeetingParticipant]:
        stmt = (
            select(MeetingParticipant)
            .where(MeetingParticipant.meeting_id == meeting_id)
            .order_by(MeetingParticipant.role)
        )
        return list((await self.session.scalars(stmt)).all())

    async def find_by_email(self, meeting_id: str, email: str) -> MeetingParticipant | None:
        stmt = select(MeetingParticipant).where(
            MeetingParticipant.meeting_id == meeting_id,
            func.lower(MeetingParticipant.email) == email.strip().lower(),
        )
        return (await self.session.scalars(stmt)).first()

    async def find_by_external_id(
        self, meeting_id: str, external_participant_id: str
    ) -> MeetingParticipant | None:
        stmt = select(MeetingParticipant).where(
            MeetingParticipant.meeting_id == meeting_id,
            MeetingParticipant.external_participant_id == external_participant_id,
        )
        return (await self.session.scalars(stmt)).first()


# =============================================================================
# NOTIFICATION REPOSITORY
# =============================================================================
class NotificationRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def add_many(self, notifications: Iterable[MeetingNotification]) -> None:
        self.session.add_all(list(notifications))

    async def list_for_booking(self, booking_id: str) -> list[MeetingNotification]:
        stmt = (
            select(MeetingNotification)
            .where(MeetingNotification.booking_id == booking_id)
            .order_by(MeetingNotification.scheduled_for)
        )
        return list((await self.session.scalars(stmt)).all())
