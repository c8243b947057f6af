from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

STATUS_CONFIRMED = "confirmed"
STATUS_PENDING = "pending"


@dataclass(frozen=True)
class SessionDraft:
    tutor_id: str
    start_instant: datetime
    end_instant: datetime
    student_id: str | None = None
    rate: float = 0.0
    paid: bool = False
    status: str = STATUS_CONFIRMED  # "confirmed", "pending"
    color_tag: str | None = None
    notes: str | None = None
    recurrence_id: str | None = None
    unassigned_name: str | None = None  # visitor-supplied label for public bookings

    @property
    def duration_minutes(self) -> int:
        return int((self.end_instant - self.start_instant).total_seconds() // 60)


@dataclass(frozen=True)
class Session:
    id: str
    tutor_id: str
    # Endpoints stay optional: rows read back from a store can be incomplete
    start_instant: datetime | None
    end_instant: datetime | None
    student_id: str | None = None
    rate: float = 0.0
    paid: bool = False
    status: str = STATUS_CONFIRMED
    color_tag: str | None = None
    notes: str | None = None
    recurrence_id: str | None = None
    created_at: datetime | None = None
    student_name: str | None = None
    unassigned_name: str | None = None

    @property
    def has_interval(self) -> bool:
        return self.start_instant is not None and self.end_instant is not None

    @property
    def duration_minutes(self) -> int | None:
        if not self.has_interval:
            return None
        return int((self.end_instant - self.start_instant).total_seconds() // 60)

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING
