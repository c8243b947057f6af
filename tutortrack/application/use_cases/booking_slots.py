from __future__ import annotations

import logging
from datetime import datetime

from tutortrack.application.dto.results import SlotResult
from tutortrack.application.exceptions import InvalidInterval, OverlapConflict, SchedulingError, StoreError
from tutortrack.application.ports.booking_slot_store import BookingSlotStorePort
from tutortrack.application.utils.instant_converter import duration_minutes, parse_instant
from tutortrack.application.utils.overlap import Interval, ensure_no_overlap
from tutortrack.domain.entities.booking_slot import BookingSlot


class BookingSlotsUseCase:
    """Tutor-side management of public booking slots. Active slots never overlap."""

    def __init__(self, slots: BookingSlotStorePort) -> None:
        self._slots = slots
        self._logger = logging.getLogger(__name__)

    async def list_slots(self, tutor_id: str) -> list[BookingSlot]:
        return await self._slots.list_slots(tutor_id)

    async def create_slot(self, tutor_id: str, start: datetime, end: datetime) -> SlotResult:
        try:
            start_utc, end_utc = parse_instant(start), parse_instant(end)
            duration_minutes(start_utc, end_utc)
            active = await self._slots.list_slots(tutor_id, active_only=True)
            ensure_no_overlap(Interval(start_utc, end_utc), active, what="Slot")
            slot = await self._slots.insert_slot(tutor_id, start_utc, end_utc)
        except (InvalidInterval, OverlapConflict, StoreError) as e:
            self._logger.warning("Slot not created", extra={"tutor_id": tutor_id, "reason": str(e)})
            return SlotResult(ok=False, error=e)

        self._logger.info("Slot created", extra={"tutor_id": tutor_id, "slot_id": slot.id})
        return SlotResult(ok=True, slot=slot)

    async def toggle_slot(self, tutor_id: str, slot_id: str, active: bool) -> SlotResult:
        try:
            slot = await self._owned_slot(tutor_id, slot_id)
            if active and not slot.active:
                others = [s for s in await self._slots.list_slots(tutor_id, active_only=True) if s.id != slot_id]
                ensure_no_overlap(slot, others, what="Slot")
            updated = await self._slots.set_active(slot_id, active)
        except SchedulingError as e:
            self._logger.warning("Slot not toggled", extra={"tutor_id": tutor_id, "reason": str(e)})
            return SlotResult(ok=False, error=e)
        return SlotResult(ok=True, slot=updated)

    async def delete_slot(self, tutor_id: str, slot_id: str) -> SlotResult:
        try:
            slot = await self._owned_slot(tutor_id, slot_id)
            await self._slots.delete_slot(slot_id)
        except SchedulingError as e:
            self._logger.warning("Slot not deleted", extra={"tutor_id": tutor_id, "reason": str(e)})
            return SlotResult(ok=False, error=e)
        return SlotResult(ok=True, slot=slot)

    async def _owned_slot(self, tutor_id: str, slot_id: str) -> BookingSlot:
        slot = await self._slots.get_slot(slot_id)
        if slot is None or slot.tutor_id != tutor_id:
            raise StoreError(f"Booking slot {slot_id} not found")
        return slot
