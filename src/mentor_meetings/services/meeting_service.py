"""
Оркестратор жизненного цикла встречи.

Содержит:
- создание встречи по брони (сначала провайдер, потом одна транзакция в БД)
- чтение встречи с редакцией полей по роли запрашивающего
- смену статуса по state machine (пользователь и вебхуки)
- отмену (провайдер best-effort, локальная отмена применяется всегда)

Провайдер передаётся явно (создаётся на старте приложения).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_meetings.common.config import Settings, get_settings
from mentor_meetings.common.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PreconditionError,
    UpstreamError,
)
from mentor_meetings.common.ids import new_meeting_password
from mentor_meetings.common.logging import get_project_logger
from mentor_meetings.common.metrics import record_meeting_transition
from mentor_meetings.common.time import as_utc, minutes_between, utc_now
from mentor_meetings.connectors.base import MeetingProvider, RemoteMeeting, RemoteMeetingSpec
from mentor_meetings.domain.enums import (
    DURATION_MINUTES,
    MEETING_READY_BOOKING_STATUSES,
    AttendanceStatus,
    BookingStatus,
    MeetingStatus,
    ParticipantRole,
    SessionDuration,
    TransitionSource,
)
from mentor_meetings.domain.state_machine import transition
from mentor_meetings.services.notification_service import build_standard_notifications
from mentor_meetings.services.provider_service import meeting_settings_from
from mentor_meetings.storage.db import db_session
from mentor_meetings.storage.models import Booking, MeetingParticipant, MeetingRecord, Profile
from mentor_meetings.storage.repositories import (
    BookingRepository,
    MeetingRepository,
    NotificationRepository,
    ParticipantRepository,
)

log = get_project_logger()

# Брони, чьи встречи показываются в списке пользователя
LISTED_BOOKING_STATUSES = frozenset(
    {BookingStatus.confirmed, BookingStatus.paid, BookingStatus.completed}
)


# =============================================================================
# VIEWS
# =============================================================================
@dataclass
class PersonView:
    id: str
    name: str
    email: str


@dataclass
class BookingView:
    id: str
    status: str
    session_title: str
    session_duration: str
    start_time: datetime
    end_time: datetime
    topic: str | None
    student_message: str | None
    mentor_notes: str | None
    cancellation_reason: str | None
    learner: PersonView
    mentor: PersonView


@dataclass
class MeetingView:
    """
    Встреча глазами конкретного участника.
    start_url и приватные заметки ментора видит только ментор.
    """

    id: str
    booking_id: str
    viewer_role: str  # mentor|learner
    external_meeting_id: str
    join_url: str
    start_url: str | None
    password: str
    status: str
    scheduled_start_time: datetime
    scheduled_duration_minutes: int
    timezone: str
    waiting_room_enabled: bool
    actual_start_time: datetime | None
    actual_end_time: datetime | None
    actual_duration_minutes: int | None
    recording_url: str | None
    booking: BookingView


def _person(p: Profile) -> PersonView:
    return PersonView(id=p.id, name=p.name, email=p.email)


def _viewer_role(booking: Booking, user_id: str) -> str:
    if booking.mentor_id == user_id:
        return "mentor"
    if booking.learner_id == user_id:
        return "learner"
    raise AuthorizationError("Unauthorized to access this meeting")


def build_meeting_view(meeting: MeetingRecord, user_id: str) -> MeetingView:
    booking = meeting.booking
    role = _viewer_role(booking, user_id)
    is_mentor = role == "mentor"

    return MeetingView(
        id=meeting.id,
        booking_id=meeting.booking_id,
        viewer_role=role,
        external_meeting_id=meeting.external_meeting_id,
        join_url=meeting.join_url,
        start_url=meeting.start_url if is_mentor else None,
        password=meeting.password,
        status=MeetingStatus(meeting.status).value,
        scheduled_start_time=as_utc(meeting.scheduled_start_time),
        scheduled_duration_minutes=meeting.scheduled_duration_minutes,
        timezone=meeting.timezone,
        waiting_room_enabled=meeting.waiting_room_enabled,
        actual_start_time=as_utc(meeting.actual_start_time) if meeting.actual_start_time else None,
        actual_end_time=as_utc(meeting.actual_end_time) if meeting.actual_end_time else None,
        actual_duration_minutes=meeting.actual_duration_minutes,
        recording_url=meeting.recording_url,
        booking=BookingView(
            id=booking.id,
            status=BookingStatus(booking.status).value,
            session_title=booking.session_title,
            session_duration=SessionDuration(booking.session_duration).value,
            start_time=as_utc(booking.start_time),
            end_time=as_utc(booking.end_time),
            topic=booking.topic,
            student_message=booking.message if is_mentor else None,
            mentor_notes=booking.mentor_notes if is_mentor else None,
            cancellation_reason=booking.cancellation_reason,
            learner=_person(booking.learner),
            mentor=_person(booking.mentor),
        ),
    )


def duration_minutes_for(booking: Booking, default: int = 60) -> int:
    try:
        return DURATION_MINUTES[SessionDuration(booking.session_duration)]
    except (KeyError, ValueError):
        return default


# =============================================================================
# SERVICE
# =============================================================================
class MeetingLifecycleService:
    def __init__(self, provider: MeetingProvider, settings: Settings | None = None) -> None:
        self.provider = provider
        self.settings = settings or get_settings()

    # ---------------------------------------------------------------- create
    def _remote_spec(self, booking: Booking, host_provider_user_id: str) -> RemoteMeetingSpec:
        s = self.settings
        mentor_name = booking.mentor.name if booking.mentor else "Mentor"
        learner_name = booking.learner.name if booking.learner else "Learner"
        return RemoteMeetingSpec(
            host_user_id=host_provider_user_id,
            topic=f"{s.meeting_topic_prefix}: {booking.session_title}",
            start_time=as_utc(booking.start_time),
            duration_minutes=duration_minutes_for(booking, s.meeting_default_duration_min),
            timezone=booking.timezone or s.meeting_default_timezone,
            password=new_meeting_password(s.meeting_password_length),
            agenda=(
                f"Mentorship session between {mentor_name} and {learner_name}.\n"
                f"Topic: {booking.topic or 'General mentorship'}"
            ),
            settings=meeting_settings_from(s),
        )

    async def _compensate(self, external_id: str) -> None:
        try:
            await self.provider.cancel_remote_meeting(external_id)
        except UpstreamError as e:
            log.warning(
                "meeting_create_compensation_failed",
                extra={"payload": {"external_id": external_id, "code": e.code}},
            )

    async def create(
        self, *, booking_id: str, requester_id: str, host_provider_user_id: str
    ) -> str:
        """
        Создать встречу у провайдера и сохранить её вместе с участниками
        и уведомлениями. Возвращает id локальной встречи.
        """
        async with db_session() as session:
            booking = await BookingRepository(session).get(booking_id)
            if booking is None:
                raise NotFoundError("Booking not found")
            if requester_id not in (booking.mentor_id, booking.learner_id):
                raise AuthorizationError("Unauthorized to create meeting for this booking")
            if BookingStatus(booking.status) not in MEETING_READY_BOOKING_STATUSES:
                raise PreconditionError(
                    "Booking must be confirmed or paid to create meeting",
                    {"booking_status": BookingStatus(booking.status).value},
                )
            if await MeetingRepository(session).get_active_by_booking(booking_id) is not None:
                raise ConflictError("Meeting already exists for this booking")
            spec = self._remote_spec(booking, host_provider_user_id)

        # вне транзакции: провайдер может отвечать долго
        try:
            remote = await self.provider.create_remote_meeting(spec)
        except UpstreamError as e:
            log.warning(
                "meeting_create_provider_failed",
                extra={"payload": {"booking_id": booking_id, "code": e.code, "details": e.details}},
            )
            raise

        # любой сбой записи: удалённая встреча не должна остаться без локальной
        try:
            meeting_id = await self._persist_new_meeting(booking, spec, remote)
        except IntegrityError as e:
            # параллельный create успел раньше: уникальный индекс по активной встрече брони
            await self._compensate(remote.external_id)
            raise ConflictError("Meeting already exists for this booking") from e
        except ConflictError:
            await self._compensate(remote.external_id)
            raise
        except Exception:
            log.warning(
                "meeting_create_persist_failed",
                extra={"payload": {"booking_id": booking_id, "external_id": remote.external_id}},
            )
            await self._compensate(remote.external_id)
            raise

        log.info(
            "meeting_created",
            extra={
                "payload": {
                    "meeting_id": meeting_id,
                    "booking_id": booking_id,
                    "external_id": remote.external_id,
                }
            },
        )
        return meeting_id

    async def _persist_new_meeting(
        self, booking: Booking, spec: RemoteMeetingSpec, remote: RemoteMeeting
    ) -> str:
        async with db_session() as session:
            meetings = MeetingRepository(session)
            if await meetings.get_active_by_booking(booking.id) is not None:
                raise ConflictError("Meeting already exists for this booking")

            meeting = MeetingRecord(
                booking_id=booking.id,
                external_meeting_id=remote.external_id,
                external_meeting_uuid=remote.external_uuid,
                host_id=remote.host_id,
                join_url=remote.join_url,
                start_url=remote.start_url,
                password=remote.password or spec.password,
                scheduled_start_time=spec.start_time,
                scheduled_duration_minutes=spec.duration_minutes,
                timezone=spec.timezone,
                status=MeetingStatus.scheduled,
                version=1,
                waiting_room_enabled=spec.settings.waiting_room,
                mute_participants_on_entry=spec.settings.mute_upon_entry,
                auto_recording=spec.settings.auto_recording,
            )
            meetings.save(meeting)
            await session.flush()

            ParticipantRepository(session).add_many(
                [
                    MeetingParticipant(
                        meeting_id=meeting.id,
                        user_id=booking.mentor_id,
                        display_name=booking.mentor.name,
                        email=booking.mentor.email,
                        role=ParticipantRole.host,
                        attendance_status=AttendanceStatus.invited,
                    ),
                    MeetingParticipant(
                        meeting_id=meeting.id,
                        user_id=booking.learner_id,
                        display_name=booking.learner.name,
                        email=booking.learner.email,
                        role=ParticipantRole.attendee,
                        attendance_status=AttendanceStatus.invited,
                    ),
                ]
            )
            NotificationRepository(session).add_many(build_standard_notifications(booking))
            await session.flush()
            return meeting.id

    # ------------------------------------------------------------------ read
    async def get_details(self, *, meeting_id: str, requester_id: str) -> MeetingView:
        async with db_session() as session:
            meeting = await MeetingRepository(session).get(meeting_id)
            if meeting is None:
                raise NotFoundError("Meeting not found")
            return build_meeting_view(meeting, requester_id)

    async def get_by_booking(self, *, booking_id: str, requester_id: str) -> MeetingView:
        async with db_session() as session:
            booking = await BookingRepository(session).get(booking_id)
            if booking is None:
                raise NotFoundError("Booking not found")
            _viewer_role(booking, requester_id)
            meeting = await MeetingRepository(session).get_latest_by_booking(booking_id)
            if meeting is None:
                raise NotFoundError("Meeting not found for this booking")
            return build_meeting_view(meeting, requester_id)

    async def list_for_user(self, *, user_id: str) -> list[MeetingView]:
        async with db_session() as session:
            bookings = await BookingRepository(session).list_for_user(
                user_id, statuses=LISTED_BOOKING_STATUSES
            )
            meetings = await MeetingRepository(session).list_for_bookings([b.id for b in bookings])
            return [build_meeting_view(m, user_id) for m in meetings]

    # ---------------------------------------------------------------- status
    async def update_status(
        self,
        *,
        meeting_id: str,
        new_status: MeetingStatus,
        source: TransitionSource,
        at: datetime | None = None,
    ) -> bool:
        """
        Перевести встречу в new_status.

        True - переход применён. Для source=webhook недопустимый переход
        (дубль, устаревшее событие, терминальный статус) не ошибка: лог + False.
        Для source=user - InvalidTransitionError.
        """
        async with db_session() as session:
            meeting = await MeetingRepository(session).get(meeting_id)
            if meeting is None:
                raise NotFoundError("Meeting not found")
            return await self.apply_transition(
                session, meeting, MeetingStatus(new_status), TransitionSource(source), at=at
            )

    async def apply_transition(
        self,
        session: AsyncSession,
        meeting: MeetingRecord,
        new_status: MeetingStatus,
        source: TransitionSource,
        *,
        at: datetime | None = None,
        extra_values: dict[str, Any] | None = None,
    ) -> bool:
        """
        Переход внутри открытой сессии (используется и вебхуками).
        """
        current = MeetingStatus(meeting.status)
        result = transition(current, new_status)
        if not result.ok:
            return self._reject(meeting, current, new_status, source, reason=result.reason)

        at = as_utc(at) if at else utc_now()
        values: dict[str, Any] = dict(extra_values or {})
        if new_status == MeetingStatus.started:
            values["actual_start_time"] = at
        elif new_status == MeetingStatus.ended:
            values["actual_end_time"] = at
            if meeting.actual_start_time is not None:
                values["actual_duration_minutes"] = minutes_between(meeting.actual_start_time, at)

        meetings = MeetingRepository(session)
        if not await meetings.transition_status(meeting, new_status=new_status, values=values):
            # строку успел сменить другой writer
            await meetings.refresh(meeting)
            return self._reject(
                meeting, MeetingStatus(meeting.status), new_status, source, reason="concurrent_update"
            )

        if new_status == MeetingStatus.ended:
            await BookingRepository(session).set_status(
                meeting.booking_id, BookingStatus.completed, expected=MEETING_READY_BOOKING_STATUSES
            )

        await meetings.refresh(meeting)
        record_meeting_transition(
            from_status=current.value, to_status=new_status.value, source=source.value, result="applied"
        )
        log.info(
            "meeting_status_changed",
            extra={
                "payload": {
                    "meeting_id": meeting.id,
                    "from": current.value,
                    "to": new_status.value,
                    "source": source.value,
                    "version": meeting.version,
                }
            },
        )
        return True

    def _reject(
        self,
        meeting: MeetingRecord,
        current: MeetingStatus,
        requested: MeetingStatus,
        source: TransitionSource,
        *,
        reason: str | None,
    ) -> bool:
        payload = {
            "meeting_id": meeting.id,
            "current": current.value,
            "requested": requested.value,
            "source": source.value,
            "reason": reason,
        }
        if source == TransitionSource.webhook:
            record_meeting_transition(
                from_status=current.value,
                to_status=requested.value,
                source=source.value,
                result="ignored",
            )
            log.info("meeting_transition_ignored", extra={"payload": payload})
            return False

        record_meeting_transition(
            from_status=current.value, to_status=requested.value, source=source.value, result="rejected"
        )
        log.warning("meeting_transition_rejected", extra={"payload": payload})
        raise InvalidTransitionError(current.value, requested.value, {"reason": reason})

    async def update_status_for_user(
        self, *, meeting_id: str, requester_id: str, new_status: MeetingStatus
    ) -> bool:
        new_status = MeetingStatus(new_status)
        async with db_session() as session:
            meeting = await MeetingRepository(session).get(meeting_id)
            if meeting is None:
                raise NotFoundError("Meeting not found")
            _viewer_role(meeting.booking, requester_id)

        if new_status == MeetingStatus.cancelled:
            await self.cancel(meeting_id=meeting_id, requester_id=requester_id, reason=None)
            return True
        return await self.update_status(
            meeting_id=meeting_id, new_status=new_status, source=TransitionSource.user
        )

    # ---------------------------------------------------------------- cancel
    @staticmethod
    def _ensure_cancellable(status: MeetingStatus) -> None:
        if status == MeetingStatus.cancelled:
            raise PreconditionError("Meeting is already cancelled")
        if status == MeetingStatus.ended:
            raise PreconditionError("Cannot cancel a completed meeting")

    async def cancel(self, *, meeting_id: str, requester_id: str, reason: str | None) -> None:
        """
        Отмена встречи участником брони.

        Удаление у провайдера best-effort: при сбое встреча всё равно
        отменяется локально, сбой уходит в лог.
        """
        async with db_session() as session:
            meeting = await MeetingRepository(session).get(meeting_id)
            if meeting is None:
                raise NotFoundError("Meeting not found")
            _viewer_role(meeting.booking, requester_id)
            self._ensure_cancellable(MeetingStatus(meeting.status))
            external_id = meeting.external_meeting_id

        remote_cancelled = True
        try:
            await self.provider.cancel_remote_meeting(external_id)
        except UpstreamError as e:
            remote_cancelled = False
            log.warning(
                "meeting_remote_cancel_failed",
                extra={
                    "payload": {
                        "meeting_id": meeting_id,
                        "external_id": external_id,
                        "code": e.code,
                        "details": e.details,
                    }
                },
            )

        async with db_session() as session:
            meeting = await MeetingRepository(session).get(meeting_id)
            if meeting is None:
                raise NotFoundError("Meeting not found")
            # статус мог смениться, пока ходили к провайдеру
            self._ensure_cancellable(MeetingStatus(meeting.status))
            await self.apply_transition(
                session, meeting, MeetingStatus.cancelled, TransitionSource.user
            )
            await BookingRepository(session).set_status(
                meeting.booking_id,
                BookingStatus.cancelled,
                cancellation_reason=reason or "Meeting cancelled",
            )

        log.info(
            "meeting_cancelled",
            extra={
                "payload": {
                    "meeting_id": meeting_id,
                    "remote_cancelled": remote_cancelled,
                    "by": requester_id,
                }
            },
        )
