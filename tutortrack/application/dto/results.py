from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tutortrack.application.exceptions import SchedulingError
from tutortrack.domain.entities.booking_slot import BookingSlot
from tutortrack.domain.entities.session import Session


@dataclass(frozen=True)
class MutationResult:
    """
    Outcome of a session write. Never raised; always returned.

    On failure ``revert_to`` holds the session as it was before the attempt so
    the calendar can roll the dragged/resized event back.
    """

    ok: bool
    action: str  # "drag", "resize", "update", "update_series", "set_paid", "confirm", "cancel", "cancel_series"
    session: Session | None = None
    affected: int = 0
    error: SchedulingError | None = None
    revert_to: Session | None = None

    @staticmethod
    def success(action: str, session: Session | None = None, affected: int = 1) -> "MutationResult":
        return MutationResult(ok=True, action=action, session=session, affected=affected)

    @staticmethod
    def failure(action: str, error: SchedulingError, revert_to: Session | None = None) -> "MutationResult":
        return MutationResult(ok=False, action=action, error=error, revert_to=revert_to, affected=0)


@dataclass(frozen=True)
class SchedulingResult:
    ok: bool
    sessions: list[Session] = field(default_factory=list)
    error: SchedulingError | None = None


@dataclass(frozen=True)
class SlotResult:
    ok: bool
    slot: BookingSlot | None = None
    error: SchedulingError | None = None


def error_payload(error: SchedulingError | None) -> dict[str, Any] | None:
    if error is None:
        return None
    payload: dict[str, Any] = {"type": type(error).__name__, "code": error.code, "message": str(error)}
    cause = getattr(error, "cause", None)
    if cause is not None:
        payload["cause"] = type(cause).__name__
        conflicting = getattr(cause, "conflicting_ids", None)
        if conflicting:
            payload["conflicting_ids"] = conflicting
    conflicting = getattr(error, "conflicting_ids", None)
    if conflicting:
        payload["conflicting_ids"] = conflicting
    return payload
