from __future__ import annotations

from tutortrack.domain.entities.calendar_event import SkippedRecord


class SchedulingError(RuntimeError):
    """Base class for every error raised inside the scheduling core."""

    code = "scheduling_error"


class TimezoneNotReady(SchedulingError):
    """Raised when a local time is requested before the tutor's zone is resolved."""

    code = "timezone_not_ready"


class InvalidTimezone(SchedulingError):
    code = "invalid_timezone"


class InvalidInterval(SchedulingError):
    """Raised when an interval does not satisfy end > start."""

    code = "invalid_interval"


class InvalidRecurrenceRequest(SchedulingError):
    code = "invalid_recurrence_request"


class OverlapConflict(SchedulingError):
    """Raised when a candidate interval intersects existing ones."""

    code = "overlap_conflict"

    def __init__(self, message: str, conflicting_ids: list[str] | None = None) -> None:
        super().__init__(message)
        self.conflicting_ids = list(conflicting_ids or [])


class MutationRejected(SchedulingError):
    """Raised when a drag/resize/edit cannot be applied; the UI must revert."""

    code = "mutation_rejected"

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class InvalidBookingRequest(SchedulingError):
    """Raised when a public booking request is malformed or targets an unusable slot."""

    code = "invalid_booking_request"


class StoreError(SchedulingError):
    """Raised by store adapters when the persistence layer fails."""

    code = "store_error"


__all__ = [
    "SchedulingError",
    "TimezoneNotReady",
    "InvalidTimezone",
    "InvalidInterval",
    "InvalidRecurrenceRequest",
    "OverlapConflict",
    "MutationRejected",
    "InvalidBookingRequest",
    "StoreError",
    "SkippedRecord",
]
