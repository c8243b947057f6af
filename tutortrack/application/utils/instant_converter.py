"""
Conversion between persisted UTC instants and local wall-clock strings.

Every call takes the zone explicitly. Daylight-saving policy:

- a wall-clock time inside a spring-forward gap does not exist; it maps to the
  transition instant, i.e. the first valid wall-clock minute after the gap
  (America/New_York 2025-03-09 02:30 -> 03:00 EDT -> 07:00Z);
- a wall-clock time inside a fall-back fold is ambiguous; it maps to the
  earlier of the two instants (fold=0).
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tutortrack.application.exceptions import InvalidInterval, InvalidTimezone
from tutortrack.domain.entities.tutor_profile import TIME_FORMAT_12H

UTC = timezone.utc

NAMED_FORMATS = {
    "time": "%H:%M",
    "date": "%Y-%m-%d",
    "datetime": "%Y-%m-%d %H:%M",
    "iso": "iso",
}

_TIME_24H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")
_TIME_12H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*(am|pm)\s*$", re.IGNORECASE)


def get_zone(zone: ZoneInfo | str) -> ZoneInfo:
    if isinstance(zone, ZoneInfo):
        return zone
    if not zone or not str(zone).strip():
        raise InvalidTimezone("Timezone name is empty")
    try:
        return ZoneInfo(str(zone).strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezone(f"Unknown timezone: {zone}") from e


def is_valid_timezone(name: str | None) -> bool:
    if not name:
        return False
    try:
        get_zone(name)
    except InvalidTimezone:
        return False
    return True


def parse_instant(value: datetime | str) -> datetime:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime. Naive input is UTC."""
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if not text:
            raise ValueError("Empty timestamp")
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_utc_iso(instant: datetime) -> str:
    return parse_instant(instant).isoformat().replace("+00:00", "Z")


def to_local_datetime(instant_utc: datetime, zone: ZoneInfo | str) -> datetime:
    return parse_instant(instant_utc).astimezone(get_zone(zone))


def to_local_wall_clock(instant_utc: datetime, zone: ZoneInfo | str, fmt: str = "datetime") -> str:
    """Render a UTC instant as wall-clock text in ``zone``.

    ``fmt`` is a strftime pattern or one of ``time``, ``date``, ``datetime``, ``iso``.
    """
    local = to_local_datetime(instant_utc, zone)
    pattern = NAMED_FORMATS.get(fmt, fmt)
    if pattern == "iso":
        return local.isoformat()
    return local.strftime(pattern)


def format_local_time(instant_utc: datetime, zone: ZoneInfo | str, time_format: str = "24h") -> str:
    """Time-of-day honoring the tutor's 24h/12h preference."""
    return format_time_display(to_local_wall_clock(instant_utc, zone, "time"), time_format)


def format_time_display(hhmm: str, time_format: str) -> str:
    if time_format != TIME_FORMAT_12H:
        return hhmm
    hour, minute = (int(part) for part in hhmm.split(":"))
    period = "PM" if hour >= 12 else "AM"
    display_hour = 12 if hour % 12 == 0 else hour % 12
    return f"{display_hour}:{minute:02d} {period}"


def parse_time_input(time_str: str) -> time:
    """Accept ``HH:MM`` or ``h:MM AM/PM``."""
    match = _TIME_24H.match(time_str)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
    else:
        match = _TIME_12H.match(time_str)
        if not match:
            raise ValueError(f"Unrecognized time: {time_str!r}")
        hour, minute = int(match.group(1)), int(match.group(2))
        if not 1 <= hour <= 12:
            raise ValueError(f"Unrecognized time: {time_str!r}")
        period = match.group(3).lower()
        if period == "am" and hour == 12:
            hour = 0
        elif period == "pm" and hour != 12:
            hour += 12
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Time out of range: {time_str!r}")
    return time(hour, minute)


def parse_date_input(date_str: str | date) -> date:
    if isinstance(date_str, datetime):
        return date_str.date()
    if isinstance(date_str, date):
        return date_str
    return date.fromisoformat(str(date_str).strip())


def localize(naive_local: datetime, zone: ZoneInfo | str) -> datetime:
    """Attach ``zone`` to a naive wall-clock datetime following the DST policy above."""
    tz = get_zone(zone)
    naive_local = naive_local.replace(tzinfo=None, second=0, microsecond=0)
    candidate = naive_local.replace(tzinfo=tz, fold=0)
    if _wall_clock_exists(candidate):
        return candidate

    # Inside a gap: the transition lies between the two readings of the wall time.
    after_offset = naive_local.replace(tzinfo=tz, fold=1).utcoffset()
    before_offset = candidate.utcoffset()
    low = (naive_local - max(before_offset, after_offset)).replace(tzinfo=UTC)
    high = (naive_local - min(before_offset, after_offset)).replace(tzinfo=UTC)
    while high - low > timedelta(minutes=1):
        mid = low + timedelta(minutes=((high - low) // timedelta(minutes=1)) // 2)
        if mid.astimezone(tz).utcoffset() == before_offset:
            low = mid
        else:
            high = mid
    return high.astimezone(tz)


def _wall_clock_exists(aware_local: datetime) -> bool:
    round_trip = aware_local.astimezone(UTC).astimezone(aware_local.tzinfo)
    return round_trip.replace(tzinfo=None) == aware_local.replace(tzinfo=None)


def from_local_wall_clock(date_str: str | date, time_str: str | time, zone: ZoneInfo | str) -> datetime:
    """Interpret a local (date, time) pair in ``zone`` and return the UTC instant."""
    local_date = parse_date_input(date_str)
    local_time = time_str if isinstance(time_str, time) else parse_time_input(time_str)
    return localize(datetime.combine(local_date, local_time), zone).astimezone(UTC)


def duration_minutes(start_utc: datetime, end_utc: datetime) -> int:
    start = parse_instant(start_utc)
    end = parse_instant(end_utc)
    if end <= start:
        raise InvalidInterval(f"Interval end {to_utc_iso(end)} is not after start {to_utc_iso(start)}")
    return int(round((end - start).total_seconds() / 60))


def local_today(zone: ZoneInfo | str, now: datetime | None = None) -> date:
    current = parse_instant(now) if now is not None else datetime.now(UTC)
    return current.astimezone(get_zone(zone)).date()
