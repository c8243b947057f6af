from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class BookableStart:
    start_instant: datetime
    end_instant: datetime
    tutor_local: str
    visitor_local: str


@dataclass(frozen=True)
class SlotAvailability:
    slot_id: str
    slot_start: datetime
    slot_end: datetime
    starts: list[BookableStart] = field(default_factory=list)
