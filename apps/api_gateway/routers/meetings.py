"""
HTTP роуты для встреч.

- POST   /api/meetings
- GET    /api/meetings
- GET    /api/meetings/{meeting_id}
- PUT    /api/meetings/{meeting_id}/status
- DELETE /api/meetings/{meeting_id}
- GET    /api/meetings/booking/{booking_id}

Авторизация: Depends(auth_dep). Ошибки сервисов (AppError) маппит
обработчик исключений в main.py.
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Body, Depends, status

from apps.api_gateway.deps import auth_dep, meeting_service_dep, require_uuid
from mentor_meetings.common.logging import get_project_logger
from mentor_meetings.common.security import AuthContext
from mentor_meetings.contracts.http_api import (
    MeetingCancelRequest,
    MeetingCreateRequest,
    MeetingCreateResponse,
    MeetingListResponse,
    MeetingOut,
    MeetingStatusUpdateRequest,
    OkResponse,
)
from mentor_meetings.domain.enums import MeetingStatus
from mentor_meetings.services.meeting_service import MeetingLifecycleService, MeetingView

log = get_project_logger()

router = APIRouter()


def _out(view: MeetingView) -> MeetingOut:
    return MeetingOut.model_validate(asdict(view))


@router.post(
    "/meetings",
    response_model=MeetingCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_meeting(
    req: MeetingCreateRequest,
    ctx: AuthContext = Depends(auth_dep),
    service: MeetingLifecycleService = Depends(meeting_service_dep),
) -> MeetingCreateResponse:
    booking_id = require_uuid(req.booking_id, "booking ID")
    meeting_id = await service.create(
        booking_id=booking_id,
        requester_id=ctx.subject,
        host_provider_user_id=req.mentor_provider_user_id,
    )
    return MeetingCreateResponse(meeting_id=meeting_id)


@router.get("/meetings", response_model=MeetingListResponse)
async def list_meetings(
    ctx: AuthContext = Depends(auth_dep),
    service: MeetingLifecycleService = Depends(meeting_service_dep),
) -> MeetingListResponse:
    views = await service.list_for_user(user_id=ctx.subject)
    return MeetingListResponse(meetings=[_out(v) for v in views])


@router.get("/meetings/booking/{booking_id}", response_model=MeetingOut)
async def get_meeting_by_booking(
    booking_id: str,
    ctx: AuthContext = Depends(auth_dep),
    service: MeetingLifecycleService = Depends(meeting_service_dep),
) -> MeetingOut:
    require_uuid(booking_id, "booking ID")
    view = await service.get_by_booking(booking_id=booking_id, requester_id=ctx.subject)
    return _out(view)


@router.get("/meetings/{meeting_id}", response_model=MeetingOut)
async def get_meeting(
    meeting_id: str,
    ctx: AuthContext = Depends(auth_dep),
    service: MeetingLifecycleService = Depends(meeting_service_dep),
) -> MeetingOut:
    require_uuid(meeting_id, "meeting ID")
    view = await service.get_details(meeting_id=meeting_id, requester_id=ctx.subject)
    return _out(view)


@router.put("/meetings/{meeting_id}/status", response_model=OkResponse)
async def update_meeting_status(
    meeting_id: str,
    req: MeetingStatusUpdateRequest,
    ctx: AuthContext = Depends(auth_dep),
    service: MeetingLifecycleService = Depends(meeting_service_dep),
) -> OkResponse:
    require_uuid(meeting_id, "meeting ID")
    await service.update_status_for_user(
        meeting_id=meeting_id, requester_id=ctx.subject, new_status=MeetingStatus(req.status)
    )
    return OkResponse(message="Meeting status updated successfully")


@router.delete("/meetings/{meeting_id}", response_model=OkResponse)
async def cancel_meeting(
    meeting_id: str,
    req: MeetingCancelRequest | None = Body(default=None),
    ctx: AuthContext = Depends(auth_dep),
    service: MeetingLifecycleService = Depends(meeting_service_dep),
) -> OkResponse:
    require_uuid(meeting_id, "meeting ID")
    await service.cancel(
        meeting_id=meeting_id,
        requester_id=ctx.subject,
        reason=req.reason if req else None,
    )
    return OkResponse(message="Meeting cancelled successfully")
