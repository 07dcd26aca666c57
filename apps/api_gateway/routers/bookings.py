"""
HTTP роуты для слотов доступности и броней.

- GET    /api/availability/{mentor_id}
- POST   /api/availability
- DELETE /api/availability/{slot_id}
- GET    /api/bookings
- POST   /api/bookings
- PUT    /api/bookings/{booking_id}/status
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from apps.api_gateway.deps import auth_dep, require_uuid
from mentor_meetings.common.security import AuthContext
from mentor_meetings.contracts.http_api import (
    AvailabilityListResponse,
    AvailabilitySlotCreateRequest,
    AvailabilitySlotOut,
    BookingCreateRequest,
    BookingListResponse,
    BookingOut,
    BookingStatusUpdateRequest,
    OkResponse,
)
from mentor_meetings.services import booking_service

router = APIRouter()


@router.get("/availability/{mentor_id}", response_model=AvailabilityListResponse)
async def list_availability(
    mentor_id: str,
    ctx: AuthContext = Depends(auth_dep),
) -> AvailabilityListResponse:
    slots = await booking_service.list_open_slots(mentor_id)
    return AvailabilityListResponse(
        slots=[AvailabilitySlotOut.model_validate(s) for s in slots]
    )


@router.post(
    "/availability",
    response_model=AvailabilitySlotOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_availability(
    req: AvailabilitySlotCreateRequest,
    ctx: AuthContext = Depends(auth_dep),
) -> AvailabilitySlotOut:
    slot = await booking_service.add_slot(
        mentor_id=ctx.subject,
        start_time=req.start_time,
        end_time=req.end_time,
        duration=req.duration,
    )
    return AvailabilitySlotOut.model_validate(slot)


@router.delete("/availability/{slot_id}", response_model=OkResponse)
async def remove_availability(
    slot_id: str,
    ctx: AuthContext = Depends(auth_dep),
) -> OkResponse:
    require_uuid(slot_id, "slot ID")
    await booking_service.remove_slot(slot_id=slot_id, requester_id=ctx.subject)
    return OkResponse(message="Availability slot removed")


@router.get("/bookings", response_model=BookingListResponse)
async def list_bookings(ctx: AuthContext = Depends(auth_dep)) -> BookingListResponse:
    bookings = await booking_service.list_bookings(ctx.subject)
    return BookingListResponse(bookings=[BookingOut.model_validate(b) for b in bookings])


@router.post("/bookings", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    req: BookingCreateRequest,
    ctx: AuthContext = Depends(auth_dep),
) -> BookingOut:
    slot_id = require_uuid(req.availability_slot_id, "slot ID")
    booking = await booking_service.book_slot(
        slot_id=slot_id,
        learner_id=ctx.subject,
        topic=req.topic,
        message=req.message,
        session_title=req.session_title,
    )
    return BookingOut.model_validate(booking)


@router.put("/bookings/{booking_id}/status", response_model=BookingOut)
async def update_booking_status(
    booking_id: str,
    req: BookingStatusUpdateRequest,
    ctx: AuthContext = Depends(auth_dep),
) -> BookingOut:
    require_uuid(booking_id, "booking ID")
    booking = await booking_service.set_booking_status(
        booking_id=booking_id, requester_id=ctx.subject, status=req.status
    )
    return BookingOut.model_validate(booking)
