from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from tutortrack.application.exceptions import StoreError
from tutortrack.application.ports.booking_slot_store import BookingSlotStorePort
from tutortrack.application.ports.session_store import ChangeListener, SessionStorePort, Unsubscribe
from tutortrack.application.ports.tutor_profile import TutorProfilePort
from tutortrack.application.utils.instant_converter import to_utc_iso
from tutortrack.core.config import settings
from tutortrack.domain.entities.booking_slot import BookingSlot
from tutortrack.domain.entities.session import Session, SessionDraft
from tutortrack.domain.entities.tutor_profile import TutorProfile
from tutortrack.infrastructure.store.memory_store import ChangeFeed
from tutortrack.infrastructure.store.records import (
    draft_to_record,
    patch_to_record,
    session_from_record,
    slot_from_record,
)

SESSION_SELECT = (
    "id,tutor_id,student_id,session_start,session_end,date,time,duration,rate,paid,"
    "status,color,notes,recurrence_id,created_at,unassigned_name,students(name)"
)


class PostgrestClient:
    """Thin async wrapper over a PostgREST endpoint (the REST face of the sessions database)."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.POSTGREST_URL or "").rstrip("/")
        self._api_key = api_key or settings.POSTGREST_API_KEY
        self._client = client or httpx.AsyncClient(timeout=settings.POSTGREST_TIMEOUT_SECONDS)
        self._logger = logging.getLogger(__name__)

        if not self._base_url:
            raise ValueError("POSTGREST_URL is required for the PostgREST store")

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        payload: Any = None,
        prefer: str | None = None,
    ) -> Any:
        url = f"{self._base_url}/{table}"
        try:
            response = await self._client.request(
                method, url, params=params, json=payload, headers=self._headers(prefer)
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self._logger.error(
                "PostgREST request failed",
                extra={"table": table, "status": e.response.status_code, "error": e.response.text},
            )
            raise StoreError(f"{method} {table} failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            self._logger.error("PostgREST request failed", extra={"table": table, "error": str(e)})
            raise StoreError(f"{method} {table} failed: {e}") from e

        if not response.content:
            return None
        return response.json()


def _flatten_student(row: dict[str, Any]) -> dict[str, Any]:
    student = row.pop("students", None)
    if isinstance(student, dict) and student.get("name"):
        row["student_name"] = student["name"]
    return row


class PostgrestSessionStore(SessionStorePort):
    """
    Session store backed by PostgREST.

    ``subscribe`` only reports writes made through this adapter; changes made
    elsewhere are picked up by the calendar feed's periodic poll.
    """

    def __init__(self, client: PostgrestClient, legacy_timezone: str | None = None) -> None:
        self._client = client
        self._legacy_timezone = legacy_timezone or settings.DEFAULT_TIMEZONE
        self._feed = ChangeFeed()

    def _to_session(self, row: dict[str, Any]) -> Session:
        return session_from_record(_flatten_student(dict(row)), self._legacy_timezone)

    async def query(
        self,
        tutor_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Session]:
        params = {"select": SESSION_SELECT, "tutor_id": f"eq.{tutor_id}", "order": "session_start.asc"}
        clauses = []
        if end is not None:
            clauses.append(f"session_start.lt.{to_utc_iso(end)}")
        if start is not None:
            clauses.append(f"session_end.gt.{to_utc_iso(start)}")
        if clauses:
            # legacy rows have no session_start; keep them so they get normalized here
            params["or"] = f"(session_start.is.null,and({','.join(clauses)}))"
        rows = await self._client.request("GET", "sessions", params=params)
        return [self._to_session(row) for row in rows or []]

    async def get(self, session_id: str) -> Session | None:
        rows = await self._client.request(
            "GET", "sessions", params={"select": SESSION_SELECT, "id": f"eq.{session_id}"}
        )
        return self._to_session(rows[0]) if rows else None

    async def insert(self, drafts: list[SessionDraft]) -> list[Session]:
        rows = await self._client.request(
            "POST",
            "sessions",
            payload=[draft_to_record(d) for d in drafts],
            prefer="return=representation",
        )
        await self._feed.publish({d.tutor_id for d in drafts})
        return [self._to_session(row) for row in rows or []]

    async def update(self, session_id: str, patch: dict[str, Any]) -> Session:
        try:
            record_patch = patch_to_record(patch)
        except KeyError as e:
            raise StoreError(str(e)) from e
        rows = await self._client.request(
            "PATCH",
            "sessions",
            params={"id": f"eq.{session_id}"},
            payload=record_patch,
            prefer="return=representation",
        )
        if not rows:
            raise StoreError(f"Session {session_id} not found")
        session = self._to_session(rows[0])
        await self._feed.publish({session.tutor_id})
        return session

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
        params = {"recurrence_id": f"eq.{recurrence_id}"}
        if from_instant is not None:
            params["session_start"] = f"gte.{to_utc_iso(from_instant)}"
        rows = await self._client.request(
            "PATCH", "sessions", params=params, payload=record_patch, prefer="return=representation"
        )
        rows = rows or []
        await self._feed.publish({str(row.get("tutor_id")) for row in rows})
        return len(rows)

    async def delete(self, session_id: str) -> None:
        rows = await self._client.request(
            "DELETE", "sessions", params={"id": f"eq.{session_id}"}, prefer="return=representation"
        )
        if not rows:
            raise StoreError(f"Session {session_id} not found")
        await self._feed.publish({str(row.get("tutor_id")) for row in rows})

    def subscribe(self, tutor_id: str, on_change: ChangeListener) -> Unsubscribe:
        return self._feed.subscribe(tutor_id, on_change)


class PostgrestBookingSlotStore(BookingSlotStorePort):
    def __init__(self, client: PostgrestClient) -> None:
        self._client = client

    async def list_slots(self, tutor_id: str, active_only: bool = False) -> list[BookingSlot]:
        params = {"tutor_id": f"eq.{tutor_id}", "order": "start_time.asc"}
        if active_only:
            params["is_active"] = "eq.true"
        rows = await self._client.request("GET", "booking_slots", params=params)
        return [slot_from_record(row) for row in rows or []]

    async def get_slot(self, slot_id: str) -> BookingSlot | None:
        rows = await self._client.request("GET", "booking_slots", params={"id": f"eq.{slot_id}"})
        return slot_from_record(rows[0]) if rows else None

    async def insert_slot(self, tutor_id: str, start: datetime, end: datetime) -> BookingSlot:
        rows = await self._client.request(
            "POST",
            "booking_slots",
            payload={
                "tutor_id": tutor_id,
                "start_time": to_utc_iso(start),
                "end_time": to_utc_iso(end),
                "is_active": True,
            },
            prefer="return=representation",
        )
        if not rows:
            raise StoreError("Booking slot insert returned no row")
        return slot_from_record(rows[0])

    async def set_active(self, slot_id: str, active: bool) -> BookingSlot:
        rows = await self._client.request(
            "PATCH",
            "booking_slots",
            params={"id": f"eq.{slot_id}"},
            payload={"is_active": active},
            prefer="return=representation",
        )
        if not rows:
            raise StoreError(f"Booking slot {slot_id} not found")
        return slot_from_record(rows[0])

    async def delete_slot(self, slot_id: str) -> None:
        rows = await self._client.request(
            "DELETE", "booking_slots", params={"id": f"eq.{slot_id}"}, prefer="return=representation"
        )
        if not rows:
            raise StoreError(f"Booking slot {slot_id} not found")


class PostgrestTutorProfileStore(TutorProfilePort):
    def __init__(self, client: PostgrestClient) -> None:
        self._client = client

    async def get_profile(self, tutor_id: str) -> TutorProfile | None:
        rows = await self._client.request(
            "GET",
            "tutors",
            params={"select": "id,timezone,currency,time_format", "id": f"eq.{tutor_id}"},
        )
        if not rows:
            return None
        row = rows[0]
        return TutorProfile(
            id=str(row.get("id")),
            timezone=row.get("timezone"),
            currency=row.get("currency") or "USD",
            time_format=row.get("time_format") or "24h",
        )
