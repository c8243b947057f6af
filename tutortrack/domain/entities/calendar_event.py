from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SkippedRecord:
    """Non-fatal diagnostic for a record the projector could not render."""

    session_id: str | None
    reason: str


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    start_local: str  # ISO wall clock with offset in the target zone
    end_local: str
    background_color: str
    is_past: bool
    duration_minutes: int
    status: str
    recurrence_id: str | None = None
    paid: bool = False


@dataclass(frozen=True)
class ProjectionResult:
    events: list[CalendarEvent] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)
