from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from tutortrack.application.dto.results import error_payload
from tutortrack.application.exceptions import (
    InvalidBookingRequest,
    MutationRejected,
    OverlapConflict,
    SchedulingError,
    StoreError,
)
from tutortrack.domain.entities.availability import SlotAvailability
from tutortrack.domain.entities.booking_slot import BookingSlot
from tutortrack.domain.entities.calendar_event import CalendarEvent, SkippedRecord
from tutortrack.domain.entities.session import Session


class ErrorSchema(BaseModel):
    type: str
    code: str
    message: str
    cause: str | None = None
    conflicting_ids: list[str] = Field(default_factory=list)

    @staticmethod
    def from_error(error: SchedulingError | None) -> "ErrorSchema | None":
        payload = error_payload(error)
        return ErrorSchema(**payload) if payload else None


class SessionSchema(BaseModel):
    id: str
    tutor_id: str
    student_id: str | None = None
    start_instant: datetime | None = None
    end_instant: datetime | None = None
    duration_minutes: int | None = None
    rate: float = 0.0
    paid: bool = False
    status: str
    color_tag: str | None = None
    notes: str | None = None
    recurrence_id: str | None = None
    unassigned_name: str | None = None

    @staticmethod
    def from_entity(session: Session) -> "SessionSchema":
        return SessionSchema(
            id=session.id,
            tutor_id=session.tutor_id,
            student_id=session.student_id,
            start_instant=session.start_instant,
            end_instant=session.end_instant,
            duration_minutes=session.duration_minutes,
            rate=session.rate,
            paid=session.paid,
            status=session.status,
            color_tag=session.color_tag,
            notes=session.notes,
            recurrence_id=session.recurrence_id,
            unassigned_name=session.unassigned_name,
        )


class CalendarEventSchema(BaseModel):
    id: str
    title: str
    start_local: str
    end_local: str
    background_color: str
    is_past: bool
    duration_minutes: int
    status: str
    recurrence_id: str | None = None
    paid: bool = False

    @staticmethod
    def from_entity(event: CalendarEvent) -> "CalendarEventSchema":
        return CalendarEventSchema(**event.__dict__)


class SkippedRecordSchema(BaseModel):
    session_id: str | None = None
    reason: str

    @staticmethod
    def from_entity(record: SkippedRecord) -> "SkippedRecordSchema":
        return SkippedRecordSchema(session_id=record.session_id, reason=record.reason)


class CalendarResponseSchema(BaseModel):
    timezone: str
    events: list[CalendarEventSchema]
    skipped: list[SkippedRecordSchema] = Field(default_factory=list)


class ScheduleRequestSchema(BaseModel):
    local_date: date
    local_time: str
    duration_minutes: int
    student_id: str | None = None
    rate: float = 0.0
    color_tag: str | None = None
    notes: str | None = None
    repeat_weekly: bool = False
    weeks: int = 1
    apply_notes_to_series: bool = False


class DragRequestSchema(BaseModel):
    new_start: datetime


class ResizeRequestSchema(BaseModel):
    new_end: datetime


class SessionPatchSchema(BaseModel):
    notes: str | None = None
    color_tag: str | None = None
    paid: bool | None = None
    apply_to_series: bool = False


class MutationResponseSchema(BaseModel):
    ok: bool
    action: str
    session: SessionSchema | None = None
    sessions: list[SessionSchema] = Field(default_factory=list)
    affected: int = 0
    error: ErrorSchema | None = None
    revert_to: SessionSchema | None = None


class SlotRequestSchema(BaseModel):
    start: datetime
    end: datetime


class SlotToggleSchema(BaseModel):
    active: bool


class SlotSchema(BaseModel):
    id: str
    tutor_id: str
    start_instant: datetime
    end_instant: datetime
    active: bool

    @staticmethod
    def from_entity(slot: BookingSlot) -> "SlotSchema":
        return SlotSchema(
            id=slot.id,
            tutor_id=slot.tutor_id,
            start_instant=slot.start_instant,
            end_instant=slot.end_instant,
            active=slot.active,
        )


class SlotResponseSchema(BaseModel):
    ok: bool
    slot: SlotSchema | None = None
    error: ErrorSchema | None = None


class BookableStartSchema(BaseModel):
    start_instant: datetime
    end_instant: datetime
    tutor_local: str
    visitor_local: str


class SlotAvailabilitySchema(BaseModel):
    slot_id: str
    slot_start: datetime
    slot_end: datetime
    starts: list[BookableStartSchema]

    @staticmethod
    def from_entity(item: SlotAvailability) -> "SlotAvailabilitySchema":
        return SlotAvailabilitySchema(
            slot_id=item.slot_id,
            slot_start=item.slot_start,
            slot_end=item.slot_end,
            starts=[BookableStartSchema(**s.__dict__) for s in item.starts],
        )


class AvailabilityResponseSchema(BaseModel):
    tutor_timezone: str
    visitor_timezone: str
    slots: list[SlotAvailabilitySchema]


class BookingRequestSchema(BaseModel):
    slot_id: str
    start: datetime
    name: str
    duration_minutes: int | None = Field(default=None, gt=0)


def status_for(error: SchedulingError | None) -> int:
    if isinstance(error, MutationRejected) and error.cause is not None:
        error = error.cause
    if isinstance(error, OverlapConflict):
        return 409
    if isinstance(error, StoreError):
        return 502
    if isinstance(error, InvalidBookingRequest):
        return 409
    return 422
