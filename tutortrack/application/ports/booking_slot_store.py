from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from tutortrack.domain.entities.booking_slot import BookingSlot


class BookingSlotStorePort(ABC):
    @abstractmethod
    async def list_slots(self, tutor_id: str, active_only: bool = False) -> list[BookingSlot]:
        raise NotImplementedError

    @abstractmethod
    async def get_slot(self, slot_id: str) -> BookingSlot | None:
        raise NotImplementedError

    @abstractmethod
    async def insert_slot(self, tutor_id: str, start: datetime, end: datetime) -> BookingSlot:
        raise NotImplementedError

    @abstractmethod
    async def set_active(self, slot_id: str, active: bool) -> BookingSlot:
        raise NotImplementedError

    @abstractmethod
    async def delete_slot(self, slot_id: str) -> None:
        raise NotImplementedError
