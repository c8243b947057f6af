from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from tutortrack.application.exceptions import InvalidRecurrenceRequest
from tutortrack.application.utils.instant_converter import (
    from_local_wall_clock,
    local_today,
    parse_date_input,
    parse_time_input,
)
from tutortrack.core.config import settings
from tutortrack.domain.entities.session import STATUS_CONFIRMED, SessionDraft


@dataclass(frozen=True)
class ScheduleRequest:
    """What the tutor fills in when scheduling: a local start plus series options."""

    local_date: date | str
    local_time: time | str
    duration_minutes: int
    student_id: str | None = None
    rate: float = 0.0
    color_tag: str | None = None
    notes: str | None = None
    repeat_weekly: bool = False
    weeks: int = 1
    apply_notes_to_series: bool = False


def validate_request(request: ScheduleRequest, zone: ZoneInfo | str, now: datetime | None = None) -> None:
    if not settings.MIN_SESSION_MINUTES <= request.duration_minutes <= settings.MAX_SESSION_MINUTES:
        raise InvalidRecurrenceRequest(
            f"Duration must be between {settings.MIN_SESSION_MINUTES} and {settings.MAX_SESSION_MINUTES} minutes"
        )
    if request.rate < 0:
        raise InvalidRecurrenceRequest("Rate must be a positive number")

    if not request.repeat_weekly:
        return

    if not 1 <= request.weeks <= settings.MAX_REPEAT_WEEKS:
        raise InvalidRecurrenceRequest(f"Weeks must be between 1 and {settings.MAX_REPEAT_WEEKS}")

    try:
        anchor = parse_date_input(request.local_date)
    except ValueError as e:
        raise InvalidRecurrenceRequest(f"Invalid start date: {request.local_date!r}") from e
    if anchor < local_today(zone, now):
        raise InvalidRecurrenceRequest("Recurring sessions can only be scheduled for today or future dates")


def generate_occurrences(
    tutor_id: str,
    request: ScheduleRequest,
    zone: ZoneInfo | str,
    now: datetime | None = None,
) -> list[SessionDraft]:
    """
    Expand a scheduling request into ordered session drafts.

    Occurrence k starts at the anchor's local date + 7k days, same local
    time-of-day, converted to UTC independently so DST changes between
    occurrences do not shift the local time.
    """
    validate_request(request, zone, now)

    try:
        anchor_date = parse_date_input(request.local_date)
        start_time = request.local_time if isinstance(request.local_time, time) else parse_time_input(request.local_time)
    except ValueError as e:
        raise InvalidRecurrenceRequest(str(e)) from e

    count = request.weeks if request.repeat_weekly else 1
    recurrence_id = str(uuid.uuid4()) if request.repeat_weekly else None
    duration = timedelta(minutes=request.duration_minutes)

    drafts: list[SessionDraft] = []
    for week in range(count):
        start_utc = from_local_wall_clock(anchor_date + timedelta(days=7 * week), start_time, zone)
        notes = request.notes if (week == 0 or request.apply_notes_to_series) else None
        drafts.append(
            SessionDraft(
                tutor_id=tutor_id,
                start_instant=start_utc,
                end_instant=start_utc + duration,
                student_id=request.student_id,
                rate=request.rate,
                paid=False,
                status=STATUS_CONFIRMED,
                color_tag=request.color_tag,
                notes=notes or None,
                recurrence_id=recurrence_id,
            )
        )
    return drafts
