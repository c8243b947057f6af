"""
Tests for UTC <-> local wall-clock conversion and the daylight-saving policy.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from tutortrack.application.exceptions import InvalidInterval, InvalidTimezone
from tutortrack.application.utils.instant_converter import (
    duration_minutes,
    format_local_time,
    format_time_display,
    from_local_wall_clock,
    get_zone,
    local_today,
    parse_instant,
    parse_time_input,
    to_local_wall_clock,
    to_utc_iso,
)

UTC = timezone.utc


def test_round_trip_kyiv_summer():
    instant = from_local_wall_clock("2025-06-10", "14:00", "Europe/Kyiv")
    assert instant == datetime(2025, 6, 10, 11, 0, tzinfo=UTC)
    assert to_local_wall_clock(instant, "Europe/Kyiv") == "2025-06-10 14:00"
    assert to_local_wall_clock(instant, "Europe/Kyiv", "time") == "14:00"
    assert to_local_wall_clock(instant, "Europe/Kyiv", "iso") == "2025-06-10T14:00:00+03:00"


@pytest.mark.parametrize("zone_name", ["America/New_York", "Europe/Kyiv", "Australia/Lord_Howe"])
def test_minute_round_trip_across_a_year(zone_name):
    # Lord Howe moves its clocks by 30 minutes; fold=1 is the second reading of a repeated wall time
    zone = ZoneInfo(zone_name)
    instant = datetime(2025, 1, 1, tzinfo=UTC)
    mismatches = []
    while instant < datetime(2026, 1, 1, tzinfo=UTC):
        if not instant.astimezone(zone).fold:
            local_date, local_time = to_local_wall_clock(instant, zone).split(" ")
            if from_local_wall_clock(local_date, local_time, zone) != instant:
                mismatches.append(instant)
        instant += timedelta(minutes=15)

    assert mismatches == []


def test_same_instant_renders_differently_per_zone():
    instant = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)
    assert to_local_wall_clock(instant, "Europe/Kyiv", "time") == "14:00"
    assert to_local_wall_clock(instant, "America/New_York", "time") == "07:00"
    assert to_local_wall_clock(instant, "UTC", "date") == "2025-01-15"


def test_spring_forward_gap_maps_to_transition_instant():
    # 02:30 does not exist in New York on 2025-03-09
    instant = from_local_wall_clock("2025-03-09", "02:30", "America/New_York")
    assert instant == datetime(2025, 3, 9, 7, 0, tzinfo=UTC)
    assert to_local_wall_clock(instant, "America/New_York") == "2025-03-09 03:00"


def test_fall_back_fold_maps_to_earlier_instant():
    # 01:30 happens twice in New York on 2025-11-02; EDT reading comes first
    instant = from_local_wall_clock("2025-11-02", "01:30", "America/New_York")
    assert instant == datetime(2025, 11, 2, 5, 30, tzinfo=UTC)


def test_parse_instant_treats_naive_as_utc():
    assert parse_instant("2025-06-10T11:00:00") == datetime(2025, 6, 10, 11, 0, tzinfo=UTC)
    assert parse_instant("2025-06-10T14:00:00+03:00") == datetime(2025, 6, 10, 11, 0, tzinfo=UTC)
    assert parse_instant("2025-06-10T11:00:00Z") == datetime(2025, 6, 10, 11, 0, tzinfo=UTC)


def test_to_utc_iso_uses_z_suffix():
    assert to_utc_iso(datetime(2025, 6, 10, 11, 0, tzinfo=UTC)) == "2025-06-10T11:00:00Z"


def test_duration_requires_end_after_start():
    start = datetime(2025, 6, 10, 11, 0, tzinfo=UTC)
    assert duration_minutes(start, datetime(2025, 6, 10, 12, 30, tzinfo=UTC)) == 90
    with pytest.raises(InvalidInterval):
        duration_minutes(start, start)


def test_unknown_zone_rejected():
    with pytest.raises(InvalidTimezone):
        get_zone("Mars/Olympus_Mons")
    with pytest.raises(InvalidTimezone):
        get_zone("")


def test_time_input_accepts_12h_and_24h():
    assert parse_time_input("14:30") == time(14, 30)
    assert parse_time_input("2:30 pm") == time(14, 30)
    assert parse_time_input("12:05 AM") == time(0, 5)
    assert parse_time_input("12:00 PM") == time(12, 0)
    with pytest.raises(ValueError):
        parse_time_input("25:00")
    with pytest.raises(ValueError):
        parse_time_input("noon")


def test_12h_display():
    assert format_time_display("14:05", "12h") == "2:05 PM"
    assert format_time_display("00:30", "12h") == "12:30 AM"
    assert format_time_display("14:05", "24h") == "14:05"
    instant = datetime(2025, 6, 10, 11, 0, tzinfo=UTC)
    assert format_local_time(instant, "Europe/Kyiv", "12h") == "2:00 PM"


def test_local_today_uses_zone():
    now = datetime(2025, 6, 10, 22, 30, tzinfo=UTC)
    assert local_today("Europe/Kyiv", now).isoformat() == "2025-06-11"
    assert local_today("America/New_York", now).isoformat() == "2025-06-10"
