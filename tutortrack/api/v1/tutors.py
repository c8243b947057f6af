from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from tutortrack.api.v1.schemas import (
    CalendarEventSchema,
    CalendarResponseSchema,
    DragRequestSchema,
    ErrorSchema,
    MutationResponseSchema,
    ResizeRequestSchema,
    ScheduleRequestSchema,
    SessionPatchSchema,
    SessionSchema,
    SkippedRecordSchema,
    SlotRequestSchema,
    SlotResponseSchema,
    SlotSchema,
    SlotToggleSchema,
    status_for,
)
from tutortrack.application.dto.results import MutationResult, SchedulingResult, SlotResult
from tutortrack.application.exceptions import InvalidTimezone, StoreError
from tutortrack.application.ports.session_store import SessionStorePort
from tutortrack.application.use_cases.booking_slots import BookingSlotsUseCase
from tutortrack.application.use_cases.calendar_projection import CalendarProjector
from tutortrack.application.use_cases.schedule_sessions import ScheduleSessionsUseCase
from tutortrack.application.use_cases.session_mutations import SessionMutationsUseCase
from tutortrack.application.use_cases.timezone_resolver import TimezoneResolver
from tutortrack.application.utils.instant_converter import get_zone
from tutortrack.application.utils.recurrence import ScheduleRequest
from tutortrack.wiring.dependencies import (
    get_booking_slots_use_case,
    get_calendar_projector,
    get_mutations_use_case,
    get_schedule_use_case,
    get_session_store,
    get_timezone_resolver,
)

router = APIRouter()


def mutation_response(result: MutationResult) -> JSONResponse:
    body = MutationResponseSchema(
        ok=result.ok,
        action=result.action,
        session=SessionSchema.from_entity(result.session) if result.session else None,
        affected=result.affected,
        error=ErrorSchema.from_error(result.error),
        revert_to=SessionSchema.from_entity(result.revert_to) if result.revert_to else None,
    )
    status = 200 if result.ok else status_for(result.error)
    return JSONResponse(status_code=status, content=body.model_dump(mode="json"))


def scheduling_response(result: SchedulingResult, action: str, created: bool = True) -> JSONResponse:
    body = MutationResponseSchema(
        ok=result.ok,
        action=action,
        sessions=[SessionSchema.from_entity(s) for s in result.sessions],
        affected=len(result.sessions),
        error=ErrorSchema.from_error(result.error),
    )
    status = (201 if created else 200) if result.ok else status_for(result.error)
    return JSONResponse(status_code=status, content=body.model_dump(mode="json"))


def slot_response(result: SlotResult, created: bool = False) -> JSONResponse:
    body = SlotResponseSchema(
        ok=result.ok,
        slot=SlotSchema.from_entity(result.slot) if result.slot else None,
        error=ErrorSchema.from_error(result.error),
    )
    status = (201 if created else 200) if result.ok else status_for(result.error)
    return JSONResponse(status_code=status, content=body.model_dump(mode="json"))


@router.get("/tutors/{tutor_id}/calendar", response_model=CalendarResponseSchema)
async def get_calendar(
    tutor_id: str,
    zone: str | None = Query(None, description="Display zone; defaults to the tutor's zone"),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    resolver: TimezoneResolver = Depends(get_timezone_resolver),
    store: SessionStorePort = Depends(get_session_store),
    projector: CalendarProjector = Depends(get_calendar_projector),
):
    await resolver.resolve(tutor_id)
    try:
        display_zone = get_zone(zone) if zone else resolver.zone
    except InvalidTimezone as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        sessions = await store.query(tutor_id, start=start, end=end)
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))

    if start is not None and end is not None:
        result = projector.project_range(sessions, display_zone, start, end)
    else:
        result = projector.project(sessions, display_zone)

    return CalendarResponseSchema(
        timezone=display_zone.key,
        events=[CalendarEventSchema.from_entity(e) for e in result.events],
        skipped=[SkippedRecordSchema.from_entity(s) for s in result.skipped],
    )


@router.post("/tutors/{tutor_id}/sessions")
async def schedule_sessions(
    tutor_id: str,
    req: ScheduleRequestSchema,
    resolver: TimezoneResolver = Depends(get_timezone_resolver),
    uc: ScheduleSessionsUseCase = Depends(get_schedule_use_case),
):
    await resolver.resolve(tutor_id)
    request = ScheduleRequest(**req.model_dump())
    result = await uc.execute(tutor_id, request, resolver.zone)
    return scheduling_response(result, "schedule")


@router.post("/tutors/{tutor_id}/sessions/{session_id}/drag")
async def drag_session(
    tutor_id: str,
    session_id: str,
    req: DragRequestSchema,
    uc: SessionMutationsUseCase = Depends(get_mutations_use_case),
):
    return mutation_response(await uc.drag(tutor_id, session_id, req.new_start))


@router.post("/tutors/{tutor_id}/sessions/{session_id}/resize")
async def resize_session(
    tutor_id: str,
    session_id: str,
    req: ResizeRequestSchema,
    uc: SessionMutationsUseCase = Depends(get_mutations_use_case),
):
    return mutation_response(await uc.resize(tutor_id, session_id, req.new_end))


@router.patch("/tutors/{tutor_id}/sessions/{session_id}")
async def patch_session(
    tutor_id: str,
    session_id: str,
    req: SessionPatchSchema,
    uc: SessionMutationsUseCase = Depends(get_mutations_use_case),
):
    details = req.model_dump(include={"notes", "color_tag"}, exclude_unset=True)
    result: MutationResult | None = None
    if details:
        result = await uc.update_details(tutor_id, session_id, details, apply_to_series=req.apply_to_series)
        if not result.ok:
            return mutation_response(result)
    if req.paid is not None:
        result = await uc.set_paid(tutor_id, session_id, req.paid)
    if result is None:
        raise HTTPException(status_code=400, detail="Nothing to update")
    return mutation_response(result)


@router.post("/tutors/{tutor_id}/sessions/{session_id}/confirm")
async def confirm_session(
    tutor_id: str,
    session_id: str,
    student_id: str = Query(...),
    uc: SessionMutationsUseCase = Depends(get_mutations_use_case),
):
    return mutation_response(await uc.confirm_request(tutor_id, session_id, student_id))


@router.delete("/tutors/{tutor_id}/sessions/{session_id}")
async def cancel_session(
    tutor_id: str,
    session_id: str,
    uc: SessionMutationsUseCase = Depends(get_mutations_use_case),
):
    return mutation_response(await uc.cancel(tutor_id, session_id))


@router.delete("/tutors/{tutor_id}/series/{recurrence_id}")
async def cancel_series(
    tutor_id: str,
    recurrence_id: str,
    uc: SessionMutationsUseCase = Depends(get_mutations_use_case),
):
    return mutation_response(await uc.cancel_series(tutor_id, recurrence_id))


@router.get("/tutors/{tutor_id}/slots", response_model=list[SlotSchema])
async def list_slots(
    tutor_id: str,
    uc: BookingSlotsUseCase = Depends(get_booking_slots_use_case),
):
    try:
        slots = await uc.list_slots(tutor_id)
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return [SlotSchema.from_entity(s) for s in slots]


@router.post("/tutors/{tutor_id}/slots")
async def create_slot(
    tutor_id: str,
    req: SlotRequestSchema,
    uc: BookingSlotsUseCase = Depends(get_booking_slots_use_case),
):
    return slot_response(await uc.create_slot(tutor_id, req.start, req.end), created=True)


@router.patch("/tutors/{tutor_id}/slots/{slot_id}")
async def toggle_slot(
    tutor_id: str,
    slot_id: str,
    req: SlotToggleSchema,
    uc: BookingSlotsUseCase = Depends(get_booking_slots_use_case),
):
    return slot_response(await uc.toggle_slot(tutor_id, slot_id, req.active))


@router.delete("/tutors/{tutor_id}/slots/{slot_id}")
async def delete_slot(
    tutor_id: str,
    slot_id: str,
    uc: BookingSlotsUseCase = Depends(get_booking_slots_use_case),
):
    return slot_response(await uc.delete_slot(tutor_id, slot_id))
