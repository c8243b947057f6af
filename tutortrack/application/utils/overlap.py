"""
Overlap policies.

Two policies are deliberately kept apart:

- strict overlap: true intersection of half-open [start, end) intervals. Used for
  tutor-created sessions, booking slots and drag/resize validation.
- buffered gap: a candidate start closer than the buffer to any existing start is
  rejected, whether or not the intervals intersect. Used for public booking.

Both are single passes and do not assume sorted input.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Protocol

from tutortrack.application.exceptions import OverlapConflict

DEFAULT_BOOKING_BUFFER = timedelta(minutes=30)


class HasInterval(Protocol):
    @property
    def start_instant(self) -> datetime | None: ...

    @property
    def end_instant(self) -> datetime | None: ...


@dataclass(frozen=True)
class Interval:
    start_instant: datetime
    end_instant: datetime
    id: str | None = None


def intervals_intersect(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # back-to-back intervals (a_end == b_start) do not intersect
    return a_start < b_end and b_start < a_end


def find_strict_conflicts(candidate: HasInterval, existing: Iterable[HasInterval]) -> list[HasInterval]:
    conflicts = []
    for item in existing:
        if item.start_instant is None or item.end_instant is None:
            continue
        if intervals_intersect(candidate.start_instant, candidate.end_instant, item.start_instant, item.end_instant):
            conflicts.append(item)
    return conflicts


def has_strict_overlap(candidate: HasInterval, existing: Iterable[HasInterval]) -> bool:
    for item in existing:
        if item.start_instant is None or item.end_instant is None:
            continue
        if intervals_intersect(candidate.start_instant, candidate.end_instant, item.start_instant, item.end_instant):
            return True
    return False


# The plain name refers to the strict policy.
has_overlap = has_strict_overlap


def ensure_no_overlap(candidate: HasInterval, existing: Iterable[HasInterval], what: str = "Session") -> None:
    conflicts = find_strict_conflicts(candidate, existing)
    if conflicts:
        ids = [str(getattr(c, "id", "")) for c in conflicts if getattr(c, "id", None)]
        raise OverlapConflict(f"{what} overlaps with {len(conflicts)} existing interval(s)", conflicting_ids=ids)


def violates_buffered_gap(
    candidate_start: datetime,
    existing_starts: Iterable[datetime | None],
    buffer: timedelta = DEFAULT_BOOKING_BUFFER,
) -> bool:
    for existing_start in existing_starts:
        if existing_start is None:
            continue
        if abs(candidate_start - existing_start) < buffer:
            return True
    return False


def clears_buffered_gap(
    candidate_start: datetime,
    existing_starts: Iterable[datetime | None],
    buffer: timedelta = DEFAULT_BOOKING_BUFFER,
) -> bool:
    return not violates_buffered_gap(candidate_start, existing_starts, buffer)
