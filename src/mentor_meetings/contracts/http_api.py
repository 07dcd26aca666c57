"""
HTTP API контракты (Pydantic-модели).

Назначение:
- валидация входа/выхода на уровне FastAPI
- стабильные структуры для клиентов (поля запросов - camelCase, как у фронтенда)
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from mentor_meetings.domain.enums import BookingStatus, SessionDuration


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# ЗАПРОСЫ
# =============================================================================
class MeetingCreateRequest(_Request):
    booking_id: str = Field(alias="bookingId", min_length=1)
    mentor_provider_user_id: str = Field(alias="mentorProviderUserId", min_length=1)


class MeetingStatusUpdateRequest(_Request):
    # scheduled - только начальный статус, вручную в него не переводят
    status: Literal["started", "ended", "cancelled"]


class MeetingCancelRequest(_Request):
    reason: str | None = Field(default=None, max_length=1000)


class AvailabilitySlotCreateRequest(_Request):
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")
    duration: int | None = None


class BookingCreateRequest(_Request):
    availability_slot_id: str = Field(alias="availabilitySlotId", min_length=1)
    topic: str | None = Field(default=None, max_length=1000)
    message: str | None = Field(default=None, max_length=4000)
    session_title: str | None = Field(default=None, alias="sessionTitle", max_length=255)


class BookingStatusUpdateRequest(_Request):
    status: BookingStatus


# =============================================================================
# ОТВЕТЫ
# =============================================================================
class OkResponse(BaseModel):
    success: bool = True
    message: str | None = None


class MeetingCreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    meeting_id: str = Field(alias="meetingId")


class PersonOut(BaseModel):
    id: str
    name: str
    email: str


class BookingSummaryOut(BaseModel):
    id: str
    status: str
    session_title: str
    session_duration: str
    start_time: datetime
    end_time: datetime
    topic: str | None = None
    student_message: str | None = None
    mentor_notes: str | None = None
    cancellation_reason: str | None = None
    learner: PersonOut
    mentor: PersonOut


class MeetingOut(BaseModel):
    id: str
    booking_id: str
    viewer_role: str
    external_meeting_id: str
    join_url: str
    start_url: str | None = None
    password: str
    status: str
    scheduled_start_time: datetime
    scheduled_duration_minutes: int
    timezone: str
    waiting_room_enabled: bool
    actual_start_time: datetime | None = None
    actual_end_time: datetime | None = None
    actual_duration_minutes: int | None = None
    recording_url: str | None = None
    booking: BookingSummaryOut


class MeetingListResponse(BaseModel):
    meetings: list[MeetingOut]


class AvailabilitySlotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    mentor_id: str
    start_time: datetime
    end_time: datetime
    duration: int
    is_booked: bool


class AvailabilityListResponse(BaseModel):
    slots: list[AvailabilitySlotOut]


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    learner_id: str
    mentor_id: str
    availability_slot_id: str | None = None
    session_title: str
    session_duration: SessionDuration
    start_time: datetime
    end_time: datetime
    topic: str | None = None
    message: str | None = None
    status: BookingStatus
    cancellation_reason: str | None = None


class BookingListResponse(BaseModel):
    bookings: list[BookingOut]


class WebhookAck(BaseModel):
    success: bool = True
    event: str
    result: str
