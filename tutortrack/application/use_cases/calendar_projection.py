from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable
from zoneinfo import ZoneInfo

from tutortrack.application.utils.instant_converter import (
    format_local_time,
    get_zone,
    parse_instant,
    to_local_wall_clock,
)
from tutortrack.application.utils.overlap import intervals_intersect
from tutortrack.domain.entities.calendar_event import CalendarEvent, ProjectionResult, SkippedRecord
from tutortrack.domain.entities.session import STATUS_CONFIRMED, Session

COLOR_PENDING = "#f59e0b"
COLOR_UNPAID = "#ef4444"
COLOR_DEFAULT = "#3b82f6"

TITLE_PLACEHOLDER = "Unknown Student"
TITLE_PENDING_PLACEHOLDER = "Pending Request"


def event_title(session: Session) -> str:
    if session.student_name:
        return session.student_name
    if session.unassigned_name:
        return session.unassigned_name
    if session.is_pending:
        return TITLE_PENDING_PLACEHOLDER
    return TITLE_PLACEHOLDER


def event_color(session: Session) -> str:
    # first match wins
    if session.is_pending:
        return COLOR_PENDING
    if session.status == STATUS_CONFIRMED and not session.paid:
        return COLOR_UNPAID
    if session.color_tag:
        return session.color_tag
    return COLOR_DEFAULT


def display_time(session: Session, zone: ZoneInfo | str, time_format: str = "24h") -> str:
    """``"14:00 - 15:00"`` in the given zone; empty when the session has no interval."""
    if not session.has_interval:
        return ""
    start = format_local_time(session.start_instant, zone, time_format)
    end = format_local_time(session.end_instant, zone, time_format)
    return f"{start} - {end}"


class CalendarProjector:
    """Maps stored sessions to display events in a target zone. Holds no state between calls."""

    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def project(
        self,
        sessions: Iterable[Session],
        zone: ZoneInfo | str,
        now: datetime | None = None,
    ) -> ProjectionResult:
        tz = get_zone(zone)
        current = parse_instant(now) if now is not None else datetime.now(timezone.utc)

        renderable: list[Session] = []
        skipped: list[SkippedRecord] = []
        for session in sessions:
            reason = self._skip_reason(session)
            if reason:
                skipped.append(SkippedRecord(session_id=session.id, reason=reason))
                continue
            renderable.append(session)

        renderable.sort(key=lambda s: (s.start_instant, s.id))
        events = [self._to_event(s, tz, current) for s in renderable]

        if skipped:
            self._logger.warning(
                "Skipped sessions without a valid interval",
                extra={"skipped": len(skipped), "session_ids": [s.session_id for s in skipped]},
            )
        return ProjectionResult(events=events, skipped=skipped)

    def project_range(
        self,
        sessions: Iterable[Session],
        zone: ZoneInfo | str,
        window_start: datetime,
        window_end: datetime,
        now: datetime | None = None,
    ) -> ProjectionResult:
        result = self.project(sessions, zone, now)
        lower, upper = parse_instant(window_start), parse_instant(window_end)
        visible = [
            e for e in result.events
            if intervals_intersect(parse_instant(e.start_local), parse_instant(e.end_local), lower, upper)
        ]
        return ProjectionResult(events=visible, skipped=result.skipped)

    def _skip_reason(self, session: Session) -> str | None:
        if session.start_instant is None:
            return "missing start"
        if session.end_instant is None:
            return "missing end"
        if session.end_instant <= session.start_instant:
            return "end not after start"
        return None

    def _to_event(self, session: Session, tz: ZoneInfo, now: datetime) -> CalendarEvent:
        return CalendarEvent(
            id=session.id,
            title=event_title(session),
            start_local=to_local_wall_clock(session.start_instant, tz, "iso"),
            end_local=to_local_wall_clock(session.end_instant, tz, "iso"),
            background_color=event_color(session),
            # display only: past sessions stay editable
            is_past=session.end_instant < now,
            duration_minutes=session.duration_minutes,
            status=session.status,
            recurrence_id=session.recurrence_id,
            paid=session.paid,
        )
