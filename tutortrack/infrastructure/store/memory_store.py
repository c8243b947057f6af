from __future__ import annotations

import inspect
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from tutortrack.application.exceptions import StoreError
from tutortrack.application.ports.booking_slot_store import BookingSlotStorePort
from tutortrack.application.ports.session_store import ChangeListener, SessionStorePort, Unsubscribe
from tutortrack.application.ports.tutor_profile import TutorProfilePort
from tutortrack.application.utils.instant_converter import to_utc_iso
from tutortrack.application.utils.overlap import intervals_intersect
from tutortrack.core.config import settings
from tutortrack.domain.entities.booking_slot import BookingSlot
from tutortrack.domain.entities.session import Session, SessionDraft
from tutortrack.domain.entities.tutor_profile import TutorProfile
from tutortrack.infrastructure.store.records import (
    draft_to_record,
    patch_to_record,
    session_from_record,
    slot_from_record,
    slot_to_record,
)


class ChangeFeed:
    """Per-tutor listener registry shared by the store adapters."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[ChangeListener]] = {}
        self._logger = logging.getLogger(__name__)

    def subscribe(self, tutor_id: str, on_change: ChangeListener) -> Unsubscribe:
        self._listeners.setdefault(tutor_id, []).append(on_change)

        def unsubscribe() -> None:
            listeners = self._listeners.get(tutor_id, [])
            if on_change in listeners:
                listeners.remove(on_change)

        return unsubscribe

    async def publish(self, tutor_ids: set[str]) -> None:
        for tutor_id in tutor_ids:
            for listener in list(self._listeners.get(tutor_id, [])):
                try:
                    result = listener(tutor_id)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    self._logger.error("Change listener failed", extra={"tutor_id": tutor_id, "error": str(e)})


class MemorySessionStore(SessionStorePort):
    def __init__(self, legacy_timezone: str | None = None) -> None:
        self._rows: dict[str, dict[str, Any]] = {}
        self._legacy_timezone = legacy_timezone or settings.DEFAULT_TIMEZONE
        self._feed = ChangeFeed()

    def seed_records(self, records: list[dict[str, Any]]) -> None:
        """Load raw rows as-is (legacy rows included)."""
        for record in records:
            row = dict(record)
            row.setdefault("id", str(uuid.uuid4()))
            self._rows[str(row["id"])] = row

    def _to_session(self, row: dict[str, Any]) -> Session:
        return session_from_record(row, self._legacy_timezone)

    async def query(
        self,
        tutor_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Session]:
        sessions = [self._to_session(row) for row in self._rows.values() if str(row.get("tutor_id")) == tutor_id]
        if start is None and end is None:
            return sessions
        lower = start or datetime.min.replace(tzinfo=timezone.utc)
        upper = end or datetime.max.replace(tzinfo=timezone.utc)
        # rows without an interval are still returned so callers can report them
        return [
            s for s in sessions
            if not s.has_interval or intervals_intersect(s.start_instant, s.end_instant, lower, upper)
        ]

    async def get(self, session_id: str) -> Session | None:
        row = self._rows.get(session_id)
        return self._to_session(row) if row else None

    async def insert(self, drafts: list[SessionDraft]) -> list[Session]:
        created_at = to_utc_iso(datetime.now(timezone.utc))
        rows = []
        for draft in drafts:
            row = draft_to_record(draft)
            row["id"] = str(uuid.uuid4())
            row["created_at"] = created_at
            rows.append(row)
        for row in rows:
            self._rows[row["id"]] = row
        await self._feed.publish({d.tutor_id for d in drafts})
        return [self._to_session(row) for row in rows]

    async def update(self, session_id: str, patch: dict[str, Any]) -> Session:
        row = self._rows.get(session_id)
        if row is None:
            raise StoreError(f"Session {session_id} not found")
        try:
            row.update(patch_to_record(patch))
        except KeyError as e:
            raise StoreError(str(e)) from e
        await self._feed.publish({str(row.get("tutor_id"))})
        return self._to_session(row)

    async def update_series(
        self,
        recurrence_id: str,
        patch: dict[str, Any],
        from_instant: datetime | None = None,
    ) -> int:
        try:
            record_patch = patch_to_record(patch)
        except KeyError as e:
            raise StoreError(str(e)) from e
        touched: set[str] = set()
        count = 0
        for row in self._rows.values():
            if row.get("recurrence_id") != recurrence_id:
                continue
            session = self._to_session(row)
            if from_instant is not None and (session.start_instant is None or session.start_instant < from_instant):
                continue
            row.update(record_patch)
            touched.add(str(row.get("tutor_id")))
            count += 1
        await self._feed.publish(touched)
        return count

    async def delete(self, session_id: str) -> None:
        row = self._rows.pop(session_id, None)
        if row is None:
            raise StoreError(f"Session {session_id} not found")
        await self._feed.publish({str(row.get("tutor_id"))})

    def subscribe(self, tutor_id: str, on_change: ChangeListener) -> Unsubscribe:
        return self._feed.subscribe(tutor_id, on_change)


class MemoryBookingSlotStore(BookingSlotStorePort):
    def __init__(self) -> None:
        self._rows: dict[str, dict[str, Any]] = {}

    async def list_slots(self, tutor_id: str, active_only: bool = False) -> list[BookingSlot]:
        slots = [slot_from_record(row) for row in self._rows.values() if str(row.get("tutor_id")) == tutor_id]
        if active_only:
            slots = [s for s in slots if s.active]
        return sorted(slots, key=lambda s: s.start_instant)

    async def get_slot(self, slot_id: str) -> BookingSlot | None:
        row = self._rows.get(slot_id)
        return slot_from_record(row) if row else None

    async def insert_slot(self, tutor_id: str, start: datetime, end: datetime) -> BookingSlot:
        slot = BookingSlot(
            id=str(uuid.uuid4()),
            tutor_id=tutor_id,
            start_instant=start,
            end_instant=end,
            active=True,
            created_at=datetime.now(timezone.utc),
        )
        self._rows[slot.id] = slot_to_record(slot)
        return slot

    async def set_active(self, slot_id: str, active: bool) -> BookingSlot:
        row = self._rows.get(slot_id)
        if row is None:
            raise StoreError(f"Booking slot {slot_id} not found")
        row["is_active"] = active
        return slot_from_record(row)

    async def delete_slot(self, slot_id: str) -> None:
        if self._rows.pop(slot_id, None) is None:
            raise StoreError(f"Booking slot {slot_id} not found")


class MemoryTutorProfileStore(TutorProfilePort):
    def __init__(self, profiles: list[TutorProfile] | None = None) -> None:
        self._profiles = {p.id: p for p in profiles or []}

    def put(self, profile: TutorProfile) -> None:
        self._profiles[profile.id] = profile

    async def get_profile(self, tutor_id: str) -> TutorProfile | None:
        return self._profiles.get(tutor_id)
