"""
Tests for drag, resize and edit operations on stored sessions.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from tutortrack.application.exceptions import InvalidInterval, MutationRejected, OverlapConflict
from tutortrack.application.use_cases.schedule_sessions import ScheduleSessionsUseCase
from tutortrack.application.use_cases.session_mutations import SessionMutationsUseCase
from tutortrack.application.utils.recurrence import ScheduleRequest
from tutortrack.domain.entities.session import STATUS_CONFIRMED, STATUS_PENDING, SessionDraft
from tutortrack.infrastructure.store.memory_store import MemorySessionStore

UTC = timezone.utc


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 6, day, hour, minute, tzinfo=UTC)


async def seed(store: MemorySessionStore, *intervals, tutor_id: str = "tutor-1", **kwargs):
    drafts = [SessionDraft(tutor_id=tutor_id, start_instant=s, end_instant=e, **kwargs) for s, e in intervals]
    return await store.insert(drafts)


@pytest.mark.asyncio
async def test_drag_keeps_duration():
    store = MemorySessionStore()
    [session] = await seed(store, (at(10, 11), at(10, 12, 30)))
    notified = []
    uc = SessionMutationsUseCase(store, on_mutation=notified.append)

    result = await uc.drag("tutor-1", session.id, at(11, 8))

    assert result.ok
    assert result.session.start_instant == at(11, 8)
    assert result.session.end_instant == at(11, 9, 30)
    assert (await store.get(session.id)).duration_minutes == 90
    assert notified == ["tutor-1"]


@pytest.mark.asyncio
async def test_drag_overlapping_itself_is_allowed():
    store = MemorySessionStore()
    [session] = await seed(store, (at(10, 11), at(10, 12)))

    result = await SessionMutationsUseCase(store).drag("tutor-1", session.id, at(10, 11, 30))

    assert result.ok


@pytest.mark.asyncio
async def test_drag_onto_another_session_is_rejected_with_revert():
    store = MemorySessionStore()
    first, second = await seed(store, (at(10, 11), at(10, 12)), (at(10, 14), at(10, 15)))

    result = await SessionMutationsUseCase(store).drag("tutor-1", first.id, at(10, 14, 30))

    assert not result.ok
    assert isinstance(result.error, MutationRejected)
    assert isinstance(result.error.cause, OverlapConflict)
    assert result.error.cause.conflicting_ids == [second.id]
    assert result.revert_to == first
    assert (await store.get(first.id)).start_instant == at(10, 11)


@pytest.mark.asyncio
async def test_back_to_back_drag_is_allowed():
    store = MemorySessionStore()
    first, _ = await seed(store, (at(10, 11), at(10, 12)), (at(10, 14), at(10, 15)))

    result = await SessionMutationsUseCase(store).drag("tutor-1", first.id, at(10, 13))

    assert result.ok


@pytest.mark.asyncio
async def test_drag_to_local_wall_clock():
    store = MemorySessionStore()
    [session] = await seed(store, (at(10, 11), at(10, 12)))

    result = await SessionMutationsUseCase(store).drag_to_local(
        "tutor-1", session.id, "2030-06-12", "16:00", "Europe/Kyiv"
    )

    assert result.ok
    assert result.session.start_instant == at(12, 13)


@pytest.mark.asyncio
async def test_drag_rejected_for_other_tutor():
    store = MemorySessionStore()
    [session] = await seed(store, (at(10, 11), at(10, 12)))

    result = await SessionMutationsUseCase(store).drag("tutor-2", session.id, at(11, 11))

    assert not result.ok
    assert result.revert_to == session


@pytest.mark.asyncio
async def test_missing_session_is_rejected():
    result = await SessionMutationsUseCase(MemorySessionStore()).drag("tutor-1", "nope", at(11, 11))

    assert not result.ok
    assert result.revert_to is None


@pytest.mark.asyncio
async def test_resize_recomputes_duration():
    store = MemorySessionStore()
    [session] = await seed(store, (at(10, 11), at(10, 12)))

    result = await SessionMutationsUseCase(store).resize("tutor-1", session.id, at(10, 12, 45), now=at(1, 0))

    assert result.ok
    assert result.session.duration_minutes == 105


@pytest.mark.asyncio
async def test_resize_rules():
    store = MemorySessionStore()
    session, _ = await seed(store, (at(10, 11), at(10, 12)), (at(10, 13), at(10, 14)))
    uc = SessionMutationsUseCase(store)

    too_short = await uc.resize("tutor-1", session.id, at(10, 11, 10), now=at(1, 0))
    assert not too_short.ok

    inverted = await uc.resize("tutor-1", session.id, at(10, 10), now=at(1, 0))
    assert not inverted.ok
    assert isinstance(inverted.error.cause, InvalidInterval)

    into_next = await uc.resize("tutor-1", session.id, at(10, 13, 30), now=at(1, 0))
    assert isinstance(into_next.error.cause, OverlapConflict)

    past = await uc.resize("tutor-1", session.id, at(10, 12, 30), now=at(20, 0))
    assert not past.ok
    assert past.revert_to == session

    assert (await store.get(session.id)).end_instant == at(10, 12)


@pytest.mark.asyncio
async def test_series_detail_edit_applies_to_later_occurrences():
    store = MemorySessionStore()
    schedule = ScheduleSessionsUseCase(store)
    request = ScheduleRequest(
        local_date="2030-06-03", local_time="10:00", duration_minutes=60, repeat_weekly=True, weeks=3
    )
    created = (await schedule.execute("tutor-1", request, "UTC", now=at(1, 0))).sessions
    uc = SessionMutationsUseCase(store)

    result = await uc.update_details("tutor-1", created[1].id, {"color_tag": "#10b981"}, apply_to_series=True)

    assert result.ok
    assert result.affected == 2
    colors = [(await store.get(s.id)).color_tag for s in created]
    assert colors == [None, "#10b981", "#10b981"]


@pytest.mark.asyncio
async def test_single_detail_edit_and_disallowed_fields():
    store = MemorySessionStore()
    [session] = await seed(store, (at(10, 11), at(10, 12)))
    uc = SessionMutationsUseCase(store)

    result = await uc.update_details("tutor-1", session.id, {"notes": "Chapter 4"})
    assert result.ok
    assert result.session.notes == "Chapter 4"

    rejected = await uc.update_details("tutor-1", session.id, {"rate": 99})
    assert not rejected.ok
    assert (await store.get(session.id)).rate == 0.0


@pytest.mark.asyncio
async def test_set_paid_and_confirm_request():
    store = MemorySessionStore()
    [session] = await seed(store, (at(10, 11), at(10, 12)), status=STATUS_PENDING, unassigned_name="Sam")
    uc = SessionMutationsUseCase(store)

    confirmed = await uc.confirm_request("tutor-1", session.id, "student-9")
    assert confirmed.ok
    assert confirmed.session.status == STATUS_CONFIRMED
    assert confirmed.session.student_id == "student-9"

    paid = await uc.set_paid("tutor-1", session.id, True)
    assert paid.session.paid is True


@pytest.mark.asyncio
async def test_confirm_rejects_sessions_that_are_not_pending():
    store = MemorySessionStore()
    [session] = await seed(store, (at(10, 11), at(10, 12)), student_id="student-1")

    result = await SessionMutationsUseCase(store).confirm_request("tutor-1", session.id, "student-9")

    assert not result.ok
    assert isinstance(result.error, MutationRejected)
    assert result.revert_to == session
    assert (await store.get(session.id)).student_id == "student-1"


@pytest.mark.asyncio
async def test_other_tutors_session_cannot_be_changed():
    store = MemorySessionStore()
    [session] = await seed(
        store, (at(10, 11), at(10, 12)), tutor_id="tutor-2", status=STATUS_PENDING, unassigned_name="Sam"
    )
    notified = []
    uc = SessionMutationsUseCase(store, on_mutation=notified.append)

    results = [
        await uc.cancel("tutor-1", session.id),
        await uc.update_details("tutor-1", session.id, {"notes": "Not yours"}),
        await uc.set_paid("tutor-1", session.id, True),
        await uc.confirm_request("tutor-1", session.id, "student-9"),
    ]

    for result in results:
        assert not result.ok
        assert isinstance(result.error, MutationRejected)
        assert result.revert_to == session
    assert await store.get(session.id) == session
    assert notified == []


@pytest.mark.asyncio
async def test_cancel_series_only_removes_future_occurrences():
    store = MemorySessionStore()
    schedule = ScheduleSessionsUseCase(store)
    request = ScheduleRequest(
        local_date="2030-06-03", local_time="10:00", duration_minutes=60, repeat_weekly=True, weeks=4
    )
    created = (await schedule.execute("tutor-1", request, "UTC", now=at(1, 0))).sessions
    notified = []
    uc = SessionMutationsUseCase(store, on_mutation=notified.append)

    result = await uc.cancel_series("tutor-1", created[0].recurrence_id, now=at(12, 0))

    assert result.ok
    assert result.affected == 2
    remaining = await store.query("tutor-1")
    assert sorted(s.start_instant for s in remaining) == [at(3, 10), at(10, 10)]
    assert notified == ["tutor-1"]


@pytest.mark.asyncio
async def test_cancel_single_session():
    store = MemorySessionStore()
    [session] = await seed(store, (at(10, 11), at(10, 12)))
    uc = SessionMutationsUseCase(store)

    result = await uc.cancel("tutor-1", session.id)

    assert result.ok
    assert await store.get(session.id) is None
    assert not (await uc.cancel("tutor-1", session.id)).ok


@pytest.mark.asyncio
async def test_failing_listener_does_not_fail_mutation():
    async def boom(tutor_id: str) -> None:
        raise RuntimeError("listener down")

    store = MemorySessionStore()
    [session] = await seed(store, (at(10, 11), at(10, 12)))

    result = await SessionMutationsUseCase(store, on_mutation=boom).drag(
        "tutor-1", session.id, at(10, 11) + timedelta(hours=3)
    )
    assert result.ok
