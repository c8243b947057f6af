"""
Tests for tutor-side booking slot management.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tutortrack.application.exceptions import InvalidInterval, OverlapConflict, StoreError
from tutortrack.application.use_cases.booking_slots import BookingSlotsUseCase
from tutortrack.infrastructure.store.memory_store import MemoryBookingSlotStore

UTC = timezone.utc


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 2, 5, hour, minute, tzinfo=UTC)


@pytest.mark.asyncio
async def test_create_slot_and_reject_overlap():
    uc = BookingSlotsUseCase(MemoryBookingSlotStore())

    created = await uc.create_slot("tutor-1", at(9), at(11))
    assert created.ok

    overlapping = await uc.create_slot("tutor-1", at(10), at(12))
    assert not overlapping.ok
    assert isinstance(overlapping.error, OverlapConflict)
    assert overlapping.error.conflicting_ids == [created.slot.id]

    adjacent = await uc.create_slot("tutor-1", at(11), at(12))
    assert adjacent.ok

    assert [s.start_instant for s in await uc.list_slots("tutor-1")] == [at(9), at(11)]


@pytest.mark.asyncio
async def test_create_slot_requires_end_after_start():
    result = await BookingSlotsUseCase(MemoryBookingSlotStore()).create_slot("tutor-1", at(11), at(11))

    assert not result.ok
    assert isinstance(result.error, InvalidInterval)


@pytest.mark.asyncio
async def test_inactive_slots_do_not_block_but_reactivation_is_checked():
    uc = BookingSlotsUseCase(MemoryBookingSlotStore())
    first = (await uc.create_slot("tutor-1", at(9), at(11))).slot

    assert (await uc.toggle_slot("tutor-1", first.id, False)).slot.active is False
    assert (await uc.create_slot("tutor-1", at(10), at(12))).ok

    reactivated = await uc.toggle_slot("tutor-1", first.id, True)
    assert not reactivated.ok
    assert isinstance(reactivated.error, OverlapConflict)


@pytest.mark.asyncio
async def test_slots_are_scoped_to_their_tutor():
    uc = BookingSlotsUseCase(MemoryBookingSlotStore())
    slot = (await uc.create_slot("tutor-1", at(9), at(10))).slot

    assert (await uc.create_slot("tutor-2", at(9), at(10))).ok

    foreign = await uc.delete_slot("tutor-2", slot.id)
    assert not foreign.ok
    assert isinstance(foreign.error, StoreError)

    deleted = await uc.delete_slot("tutor-1", slot.id)
    assert deleted.ok
    assert await uc.list_slots("tutor-1") == []
