from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from tutortrack.api.v1.schemas import (
    AvailabilityResponseSchema,
    BookingRequestSchema,
    SlotAvailabilitySchema,
)
from tutortrack.api.v1.tutors import scheduling_response
from tutortrack.application.exceptions import StoreError
from tutortrack.application.use_cases.public_booking import PublicBookingUseCase, resolve_visitor_zone
from tutortrack.application.use_cases.timezone_resolver import TimezoneResolver
from tutortrack.wiring.dependencies import get_public_booking_use_case, get_timezone_resolver

router = APIRouter()


@router.get("/public/{tutor_id}/availability", response_model=AvailabilityResponseSchema)
async def get_availability(
    tutor_id: str,
    visitor_zone: str | None = Query(None, description="Zone picked by the visitor"),
    detected_zone: str | None = Query(None, description="Zone reported by the browser"),
    resolver: TimezoneResolver = Depends(get_timezone_resolver),
    uc: PublicBookingUseCase = Depends(get_public_booking_use_case),
):
    tutor_zone = await resolver.resolve(tutor_id)
    zone = resolve_visitor_zone(detected_zone, visitor_zone, default=tutor_zone)
    try:
        slots = await uc.availability(tutor_id, tutor_zone, zone)
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return AvailabilityResponseSchema(
        tutor_timezone=tutor_zone,
        visitor_timezone=zone,
        slots=[SlotAvailabilitySchema.from_entity(s) for s in slots],
    )


@router.post("/public/{tutor_id}/bookings")
async def request_booking(
    tutor_id: str,
    req: BookingRequestSchema,
    uc: PublicBookingUseCase = Depends(get_public_booking_use_case),
):
    result = await uc.request_booking(
        tutor_id,
        req.slot_id,
        req.start,
        req.name,
        duration_minutes=req.duration_minutes,
    )
    return scheduling_response(result, "booking_request")
