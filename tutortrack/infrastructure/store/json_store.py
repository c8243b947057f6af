from __future__ import annotations

import asyncio
import json
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from tutortrack.application.exceptions import StoreError
from tutortrack.application.ports.booking_slot_store import BookingSlotStorePort
from tutortrack.application.ports.session_store import ChangeListener, SessionStorePort, Unsubscribe
from tutortrack.application.utils.instant_converter import to_utc_iso
from tutortrack.application.utils.overlap import intervals_intersect
from tutortrack.core.config import settings
from tutortrack.domain.entities.booking_slot import BookingSlot
from tutortrack.domain.entities.session import Session, SessionDraft
from tutortrack.infrastructure.store.memory_store import ChangeFeed
from tutortrack.infrastructure.store.records import (
    draft_to_record,
    patch_to_record,
    session_from_record,
    slot_from_record,
)


class _JsonTutorFiles:
    """
    One JSON document per tutor holding its session and slot rows.

    File access and the per-tutor locks run in a worker thread so the event
    loop is never blocked on disk.
    """

    def __init__(self, data_dir: str | None = None) -> None:
        self._data_dir = Path(data_dir or settings.DATA_DIR)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, threading.Lock] = {}
        self._lock_lock = threading.Lock()  # Lock for managing locks dict

    def _get_lock(self, tutor_id: str) -> threading.Lock:
        with self._lock_lock:
            if tutor_id not in self._locks:
                self._locks[tutor_id] = threading.Lock()
            return self._locks[tutor_id]

    def _get_file_path(self, tutor_id: str) -> Path:
        return self._data_dir / f"{tutor_id}.json"

    def _tutor_ids(self) -> list[str]:
        return [path.stem for path in self._data_dir.glob("*.json")]

    def _load(self, tutor_id: str) -> dict[str, Any]:
        file_path = self._get_file_path(tutor_id)
        if not file_path.exists():
            return {"tutor_id": tutor_id, "sessions": [], "booking_slots": [], "version": 1}
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise StoreError(f"Unreadable data file for tutor {tutor_id}") from e
        data.setdefault("sessions", [])
        data.setdefault("booking_slots", [])
        data.setdefault("version", 1)
        return data

    def _save(self, tutor_id: str, data: dict[str, Any]) -> None:
        """Write to a temp file then rename, so readers never see a partial document."""
        file_path = self._get_file_path(tutor_id)
        temp_path = file_path.with_suffix(".json.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_path.replace(file_path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)
            raise StoreError(f"Could not write data file for tutor {tutor_id}") from e

    def _read_locked(self, tutor_id: str) -> dict[str, Any]:
        with self._get_lock(tutor_id):
            return self._load(tutor_id)

    def _modify_locked(self, tutor_id: str, change: Callable[[dict[str, Any]], Any]) -> Any:
        """Load, apply ``change`` and save under the tutor's lock; ``change`` returning None skips the save."""
        with self._get_lock(tutor_id):
            data = self._load(tutor_id)
            result = change(data)
            if result is not None:
                self._save(tutor_id, data)
            return result

    def _find_owner(self, key: str, row_id: str) -> str | None:
        for tutor_id in self._tutor_ids():
            data = self._read_locked(tutor_id)
            if any(str(row.get("id")) == row_id for row in data[key]):
                return tutor_id
        return None

    async def _read(self, tutor_id: str) -> dict[str, Any]:
        return await asyncio.to_thread(self._read_locked, tutor_id)

    async def _modify(self, tutor_id: str, change: Callable[[dict[str, Any]], Any]) -> Any:
        return await asyncio.to_thread(self._modify_locked, tutor_id, change)

    async def _owner_of(self, key: str, row_id: str) -> str | None:
        return await asyncio.to_thread(self._find_owner, key, row_id)


class JsonSessionStore(_JsonTutorFiles, SessionStorePort):
    def __init__(self, data_dir: str | None = None, legacy_timezone: str | None = None) -> None:
        super().__init__(data_dir)
        self._legacy_timezone = legacy_timezone or settings.DEFAULT_TIMEZONE
        self._feed = ChangeFeed()

    def _to_session(self, row: dict[str, Any]) -> Session:
        return session_from_record(row, self._legacy_timezone)

    async def query(
        self,
        tutor_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Session]:
        data = await self._read(tutor_id)
        sessions = [self._to_session(row) for row in data["sessions"]]
        if start is None and end is None:
            return sessions
        lower = start or datetime.min.replace(tzinfo=timezone.utc)
        upper = end or datetime.max.replace(tzinfo=timezone.utc)
        return [
            s for s in sessions
            if not s.has_interval or intervals_intersect(s.start_instant, s.end_instant, lower, upper)
        ]

    async def get(self, session_id: str) -> Session | None:
        tutor_id = await self._owner_of("sessions", session_id)
        if tutor_id is None:
            return None
        for session in await self.query(tutor_id):
            if session.id == session_id:
                return session
        return None

    async def insert(self, drafts: list[SessionDraft]) -> list[Session]:
        created_at = to_utc_iso(datetime.now(timezone.utc))
        by_tutor: dict[str, list[dict[str, Any]]] = {}
        rows = []
        for draft in drafts:
            row = draft_to_record(draft)
            row["id"] = str(uuid.uuid4())
            row["created_at"] = created_at
            rows.append(row)
            by_tutor.setdefault(draft.tutor_id, []).append(row)

        def append_rows(new_rows: list[dict[str, Any]]) -> Callable[[dict[str, Any]], bool]:
            def append(data: dict[str, Any]) -> bool:
                data["sessions"].extend(new_rows)
                return True

            return append

        for tutor_id, tutor_rows in by_tutor.items():
            await self._modify(tutor_id, append_rows(tutor_rows))

        await self._feed.publish(set(by_tutor))
        return [self._to_session(row) for row in rows]

    async def update(self, session_id: str, patch: dict[str, Any]) -> Session:
        tutor_id = await self._owner_of("sessions", session_id)
        if tutor_id is None:
            raise StoreError(f"Session {session_id} not found")
        try:
            record_patch = patch_to_record(patch)
        except KeyError as e:
            raise StoreError(str(e)) from e

        def apply(data: dict[str, Any]) -> dict[str, Any] | None:
            for row in data["sessions"]:
                if str(row.get("id")) == session_id:
                    row.update(record_patch)
                    return row
            return None

        updated = await self._modify(tutor_id, apply)
        if updated is None:
            raise StoreError(f"Session {session_id} not found")

        await self._feed.publish({tutor_id})
        return self._to_session(updated)

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

        def apply(data: dict[str, Any]) -> int | None:
            changed = 0
            for row in data["sessions"]:
                if row.get("recurrence_id") != recurrence_id:
                    continue
                session = self._to_session(row)
                if from_instant is not None and (
                    session.start_instant is None or session.start_instant < from_instant
                ):
                    continue
                row.update(record_patch)
                changed += 1
            return changed or None

        touched: set[str] = set()
        count = 0
        for tutor_id in await asyncio.to_thread(self._tutor_ids):
            changed = await self._modify(tutor_id, apply)
            if changed:
                touched.add(tutor_id)
                count += changed

        await self._feed.publish(touched)
        return count

    async def delete(self, session_id: str) -> None:
        tutor_id = await self._owner_of("sessions", session_id)
        if tutor_id is None:
            raise StoreError(f"Session {session_id} not found")

        def remove(data: dict[str, Any]) -> bool:
            data["sessions"] = [row for row in data["sessions"] if str(row.get("id")) != session_id]
            return True

        await self._modify(tutor_id, remove)
        await self._feed.publish({tutor_id})

    def subscribe(self, tutor_id: str, on_change: ChangeListener) -> Unsubscribe:
        return self._feed.subscribe(tutor_id, on_change)


class JsonBookingSlotStore(_JsonTutorFiles, BookingSlotStorePort):
    async def list_slots(self, tutor_id: str, active_only: bool = False) -> list[BookingSlot]:
        data = await self._read(tutor_id)
        slots = [slot_from_record(row) for row in data["booking_slots"]]
        if active_only:
            slots = [s for s in slots if s.active]
        return sorted(slots, key=lambda s: s.start_instant)

    async def get_slot(self, slot_id: str) -> BookingSlot | None:
        tutor_id = await self._owner_of("booking_slots", slot_id)
        if tutor_id is None:
            return None
        for slot in await self.list_slots(tutor_id):
            if slot.id == slot_id:
                return slot
        return None

    async def insert_slot(self, tutor_id: str, start: datetime, end: datetime) -> BookingSlot:
        row = {
            "id": str(uuid.uuid4()),
            "tutor_id": tutor_id,
            "start_time": to_utc_iso(start),
            "end_time": to_utc_iso(end),
            "is_active": True,
            "created_at": to_utc_iso(datetime.now(timezone.utc)),
        }

        def append(data: dict[str, Any]) -> bool:
            data["booking_slots"].append(row)
            return True

        await self._modify(tutor_id, append)
        return slot_from_record(row)

    async def set_active(self, slot_id: str, active: bool) -> BookingSlot:
        tutor_id = await self._owner_of("booking_slots", slot_id)
        if tutor_id is None:
            raise StoreError(f"Booking slot {slot_id} not found")

        def toggle(data: dict[str, Any]) -> dict[str, Any] | None:
            for row in data["booking_slots"]:
                if str(row.get("id")) == slot_id:
                    row["is_active"] = active
                    return row
            return None

        row = await self._modify(tutor_id, toggle)
        if row is None:
            raise StoreError(f"Booking slot {slot_id} not found")
        return slot_from_record(row)

    async def delete_slot(self, slot_id: str) -> None:
        tutor_id = await self._owner_of("booking_slots", slot_id)
        if tutor_id is None:
            raise StoreError(f"Booking slot {slot_id} not found")

        def remove(data: dict[str, Any]) -> bool:
            data["booking_slots"] = [row for row in data["booking_slots"] if str(row.get("id")) != slot_id]
            return True

        await self._modify(tutor_id, remove)
