"""
Tests for weekly series expansion.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from tutortrack.application.exceptions import InvalidRecurrenceRequest
from tutortrack.application.utils.instant_converter import to_local_datetime
from tutortrack.application.utils.recurrence import ScheduleRequest, generate_occurrences

UTC = timezone.utc


def test_series_keeps_local_time_across_spring_forward():
    request = ScheduleRequest(
        local_date="2025-03-02",
        local_time="09:00",
        duration_minutes=60,
        repeat_weekly=True,
        weeks=4,
    )
    drafts = generate_occurrences("tutor-1", request, "America/New_York", now=datetime(2025, 3, 1, tzinfo=UTC))

    assert len(drafts) == 4
    locals_ = [to_local_datetime(d.start_instant, "America/New_York") for d in drafts]
    assert all(dt.strftime("%H:%M") == "09:00" for dt in locals_)
    assert len({dt.weekday() for dt in locals_}) == 1
    assert [dt.date() for dt in locals_] == [
        date(2025, 3, 2),
        date(2025, 3, 9),
        date(2025, 3, 16),
        date(2025, 3, 23),
    ]
    # UTC hour shifts once DST starts on 2025-03-09
    assert [d.start_instant.hour for d in drafts] == [14, 13, 13, 13]


def test_series_in_kyiv_summer():
    request = ScheduleRequest(
        local_date="2025-06-10",
        local_time="14:00",
        duration_minutes=60,
        repeat_weekly=True,
        weeks=3,
    )
    drafts = generate_occurrences("tutor-1", request, "Europe/Kyiv", now=datetime(2025, 6, 1, tzinfo=UTC))

    assert [d.start_instant for d in drafts] == [
        datetime(2025, 6, 10, 11, 0, tzinfo=UTC),
        datetime(2025, 6, 17, 11, 0, tzinfo=UTC),
        datetime(2025, 6, 24, 11, 0, tzinfo=UTC),
    ]
    assert all(d.duration_minutes == 60 for d in drafts)
    recurrence_ids = {d.recurrence_id for d in drafts}
    assert len(recurrence_ids) == 1
    assert None not in recurrence_ids


def test_single_session_has_no_recurrence_id():
    request = ScheduleRequest(local_date="2025-06-10", local_time="2:00 PM", duration_minutes=45)
    drafts = generate_occurrences("tutor-1", request, "Europe/Kyiv", now=datetime(2025, 6, 1, tzinfo=UTC))

    assert len(drafts) == 1
    assert drafts[0].recurrence_id is None
    assert drafts[0].end_instant == datetime(2025, 6, 10, 11, 45, tzinfo=UTC)


def test_notes_only_on_first_occurrence_by_default():
    base = dict(local_date="2025-06-10", local_time="14:00", duration_minutes=60, repeat_weekly=True, weeks=3)
    now = datetime(2025, 6, 1, tzinfo=UTC)

    drafts = generate_occurrences("t", ScheduleRequest(notes="Bring workbook", **base), "Europe/Kyiv", now)
    assert [d.notes for d in drafts] == ["Bring workbook", None, None]

    drafts = generate_occurrences(
        "t", ScheduleRequest(notes="Bring workbook", apply_notes_to_series=True, **base), "Europe/Kyiv", now
    )
    assert [d.notes for d in drafts] == ["Bring workbook"] * 3


def test_series_cannot_start_in_the_past():
    request = ScheduleRequest(
        local_date="2025-06-10", local_time="14:00", duration_minutes=60, repeat_weekly=True, weeks=2
    )
    with pytest.raises(InvalidRecurrenceRequest):
        generate_occurrences("t", request, "Europe/Kyiv", now=datetime(2025, 6, 20, tzinfo=UTC))


def test_one_off_session_may_be_in_the_past():
    request = ScheduleRequest(local_date="2025-06-10", local_time="14:00", duration_minutes=60)
    drafts = generate_occurrences("t", request, "Europe/Kyiv", now=datetime(2025, 6, 20, tzinfo=UTC))
    assert len(drafts) == 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"duration_minutes": 10},
        {"duration_minutes": 481},
        {"rate": -5.0},
        {"repeat_weekly": True, "weeks": 13},
        {"repeat_weekly": True, "weeks": 0},
    ],
)
def test_invalid_requests_rejected(overrides):
    fields = dict(local_date="2025-06-10", local_time="14:00", duration_minutes=60)
    fields.update(overrides)
    with pytest.raises(InvalidRecurrenceRequest):
        generate_occurrences("t", ScheduleRequest(**fields), "Europe/Kyiv", now=datetime(2025, 6, 1, tzinfo=UTC))
