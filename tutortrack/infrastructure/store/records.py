"""
Row <-> entity mapping shared by the store adapters.

Rows use the database column names (``session_start``, ``color`` ...). Older rows
carry a local ``date`` + ``time`` pair and a ``duration`` instead of the UTC
interval; they are normalized here so nothing past the store boundary needs to
know which representation a row used.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from tutortrack.application.utils.instant_converter import from_local_wall_clock, parse_instant, to_utc_iso
from tutortrack.domain.entities.booking_slot import BookingSlot
from tutortrack.domain.entities.session import STATUS_CONFIRMED, STATUS_PENDING, Session, SessionDraft

logger = logging.getLogger(__name__)

# entity field -> column
SESSION_COLUMNS = {
    "tutor_id": "tutor_id",
    "student_id": "student_id",
    "start_instant": "session_start",
    "end_instant": "session_end",
    "rate": "rate",
    "paid": "paid",
    "status": "status",
    "color_tag": "color",
    "notes": "notes",
    "recurrence_id": "recurrence_id",
    "unassigned_name": "unassigned_name",
}


def _optional_instant(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    try:
        return parse_instant(value)
    except (TypeError, ValueError):
        return None


def _legacy_interval(raw: dict[str, Any], legacy_zone: str) -> tuple[datetime | None, datetime | None]:
    local_date = raw.get("date")
    local_time = raw.get("time")
    if not (local_date and local_time):
        return None, None
    try:
        start = from_local_wall_clock(str(local_date), str(local_time)[:5], legacy_zone)
    except ValueError:
        logger.warning("Unparseable legacy session time", extra={"session_id": raw.get("id")})
        return None, None
    duration = raw.get("duration")
    if not duration:
        return start, None
    return start, start + timedelta(minutes=int(duration))


def normalize_status(value: Any) -> str:
    # Legacy rows used "scheduled"/"completed"; only "pending" changes behavior.
    return STATUS_PENDING if str(value or "").lower() == STATUS_PENDING else STATUS_CONFIRMED


def session_from_record(raw: dict[str, Any], legacy_zone: str) -> Session:
    start = _optional_instant(raw.get("session_start"))
    end = _optional_instant(raw.get("session_end"))
    if start is None and end is None:
        start, end = _legacy_interval(raw, legacy_zone)

    return Session(
        id=str(raw.get("id")),
        tutor_id=str(raw.get("tutor_id")),
        start_instant=start,
        end_instant=end,
        student_id=str(raw["student_id"]) if raw.get("student_id") is not None else None,
        rate=float(raw.get("rate") or 0),
        paid=bool(raw.get("paid", False)),
        status=normalize_status(raw.get("status")),
        color_tag=raw.get("color") or None,
        notes=raw.get("notes") or None,
        recurrence_id=raw.get("recurrence_id") or None,
        created_at=_optional_instant(raw.get("created_at")),
        student_name=raw.get("student_name") or None,
        unassigned_name=raw.get("unassigned_name") or None,
    )


def draft_to_record(draft: SessionDraft) -> dict[str, Any]:
    return {
        "tutor_id": draft.tutor_id,
        "student_id": draft.student_id,
        "session_start": to_utc_iso(draft.start_instant),
        "session_end": to_utc_iso(draft.end_instant),
        "duration": draft.duration_minutes,
        "rate": draft.rate,
        "paid": draft.paid,
        "status": draft.status,
        "color": draft.color_tag,
        "notes": draft.notes,
        "recurrence_id": draft.recurrence_id,
        "unassigned_name": draft.unassigned_name,
    }


def patch_to_record(patch: dict[str, Any]) -> dict[str, Any]:
    """Translate an entity-field patch into column names, keeping ``duration`` in sync."""
    record: dict[str, Any] = {}
    for key, value in patch.items():
        column = SESSION_COLUMNS.get(key)
        if column is None:
            raise KeyError(f"Field {key!r} cannot be patched")
        if isinstance(value, datetime):
            value = to_utc_iso(value)
        record[column] = value
    start, end = patch.get("start_instant"), patch.get("end_instant")
    if isinstance(start, datetime) and isinstance(end, datetime):
        record["duration"] = int((end - start).total_seconds() // 60)
    return record


def slot_from_record(raw: dict[str, Any]) -> BookingSlot:
    return BookingSlot(
        id=str(raw.get("id")),
        tutor_id=str(raw.get("tutor_id")),
        start_instant=parse_instant(raw["start_time"]),
        end_instant=parse_instant(raw["end_time"]),
        active=bool(raw.get("is_active", True)),
        created_at=_optional_instant(raw.get("created_at")),
    )


def slot_to_record(slot: BookingSlot) -> dict[str, Any]:
    return {
        "id": slot.id,
        "tutor_id": slot.tutor_id,
        "start_time": to_utc_iso(slot.start_instant),
        "end_time": to_utc_iso(slot.end_instant),
        "is_active": slot.active,
        "created_at": to_utc_iso(slot.created_at) if slot.created_at else None,
    }
