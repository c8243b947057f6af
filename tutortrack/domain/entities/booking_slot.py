from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class BookingSlot:
    id: str
    tutor_id: str
    start_instant: datetime
    end_instant: datetime
    active: bool = True
    created_at: datetime | None = None
