from __future__ import annotations

import inspect
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo

from tutortrack.application.dto.results import SchedulingResult
from tutortrack.application.exceptions import InvalidBookingRequest, SchedulingError, StoreError
from tutortrack.application.ports.booking_slot_store import BookingSlotStorePort
from tutortrack.application.ports.session_store import SessionStorePort
from tutortrack.application.utils.instant_converter import (
    get_zone,
    is_valid_timezone,
    parse_instant,
    to_local_wall_clock,
)
from tutortrack.application.utils.overlap import violates_buffered_gap
from tutortrack.core.config import settings
from tutortrack.domain.entities.availability import BookableStart, SlotAvailability
from tutortrack.domain.entities.booking_slot import BookingSlot
from tutortrack.domain.entities.session import STATUS_PENDING, SessionDraft

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100


def resolve_visitor_zone(detected: str | None, override: str | None = None, default: str | None = None) -> str:
    """A visitor's explicit choice wins over the browser-detected zone."""
    for candidate in (override, detected):
        if is_valid_timezone(candidate):
            return candidate.strip()
    return default or settings.DEFAULT_TIMEZONE


class PublicBookingUseCase:
    """
    Bookable start times for visitors and the pending sessions they request.

    Slots are only read; availability is recomputed on every call. Starts are
    checked with the buffered-gap policy, not strict overlap.
    """

    def __init__(
        self,
        sessions: SessionStorePort,
        slots: BookingSlotStorePort,
        buffer_minutes: int | None = None,
        step_minutes: int | None = None,
        on_mutation: Callable[[str], Awaitable[None] | None] | None = None,
    ) -> None:
        self._sessions = sessions
        self._slots = slots
        self._buffer = timedelta(minutes=buffer_minutes or settings.BOOKING_BUFFER_MINUTES)
        self._step = timedelta(minutes=step_minutes or settings.BOOKING_STEP_MINUTES)
        self._min_duration = settings.MIN_SESSION_MINUTES
        self._on_mutation = on_mutation
        self._logger = logging.getLogger(__name__)

    async def availability(
        self,
        tutor_id: str,
        tutor_zone: ZoneInfo | str,
        visitor_zone: ZoneInfo | str,
        now: datetime | None = None,
    ) -> list[SlotAvailability]:
        current = parse_instant(now) if now is not None else datetime.now(timezone.utc)
        tutor_tz, visitor_tz = get_zone(tutor_zone), get_zone(visitor_zone)

        slots = [s for s in await self._slots.list_slots(tutor_id, active_only=True) if s.end_instant > current]
        existing_starts = [s.start_instant for s in await self._sessions.query(tutor_id)]

        result = []
        for slot in sorted(slots, key=lambda s: s.start_instant):
            starts = [
                BookableStart(
                    start_instant=start,
                    end_instant=start + self._step,
                    tutor_local=to_local_wall_clock(start, tutor_tz),
                    visitor_local=to_local_wall_clock(start, visitor_tz),
                )
                for start in self._aligned_starts(slot, self._step)
                if start > current and not violates_buffered_gap(start, existing_starts, self._buffer)
            ]
            result.append(
                SlotAvailability(slot_id=slot.id, slot_start=slot.start_instant, slot_end=slot.end_instant, starts=starts)
            )
        return result

    async def request_booking(
        self,
        tutor_id: str,
        slot_id: str,
        start: datetime,
        visitor_name: str,
        duration_minutes: int | None = None,
        now: datetime | None = None,
    ) -> SchedulingResult:
        current = parse_instant(now) if now is not None else datetime.now(timezone.utc)
        name = (visitor_name or "").strip()
        duration = self._step if duration_minutes is None else timedelta(minutes=duration_minutes)

        try:
            if duration_minutes is not None and duration_minutes < self._min_duration:
                raise InvalidBookingRequest(f"Bookings must be at least {self._min_duration} minutes long")
            if not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
                raise InvalidBookingRequest(
                    f"Name must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters"
                )
            candidate = parse_instant(start)
            slot = await self._slots.get_slot(slot_id)
            self._validate_slot(slot, tutor_id, candidate, duration, current)

            existing_starts = [s.start_instant for s in await self._sessions.query(tutor_id)]
            if violates_buffered_gap(candidate, existing_starts, self._buffer):
                raise InvalidBookingRequest("This time is no longer available")

            sessions = await self._sessions.insert(
                [
                    SessionDraft(
                        tutor_id=tutor_id,
                        start_instant=candidate,
                        end_instant=candidate + duration,
                        student_id=None,
                        rate=0.0,
                        paid=False,
                        status=STATUS_PENDING,
                        notes=f"Booking request from {name}",
                        unassigned_name=name,
                    )
                ]
            )
        except StoreError as e:
            self._logger.error("Failed to store booking request", extra={"tutor_id": tutor_id, "error": str(e)})
            return SchedulingResult(ok=False, error=e)
        except SchedulingError as e:
            self._logger.warning("Booking request rejected", extra={"tutor_id": tutor_id, "reason": str(e)})
            return SchedulingResult(ok=False, error=e)

        if self._on_mutation is not None:
            try:
                result = self._on_mutation(tutor_id)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._logger.error("Mutation listener failed", extra={"tutor_id": tutor_id, "error": str(e)})

        self._logger.info(
            "Booking request created",
            extra={"tutor_id": tutor_id, "session_id": sessions[0].id if sessions else None},
        )
        return SchedulingResult(ok=True, sessions=sessions)

    def _validate_slot(
        self,
        slot: BookingSlot | None,
        tutor_id: str,
        start: datetime,
        duration: timedelta,
        now: datetime,
    ) -> None:
        if slot is None or slot.tutor_id != tutor_id:
            raise InvalidBookingRequest("Selected slot not found")
        if not slot.active:
            raise InvalidBookingRequest("Selected slot is no longer offered")
        if start <= now:
            raise InvalidBookingRequest("Selected time is in the past")
        if start < slot.start_instant or start + duration > slot.end_instant:
            raise InvalidBookingRequest("Selected time is outside the slot")
        if (start - slot.start_instant) % self._step:
            raise InvalidBookingRequest(f"Start must be aligned to {int(self._step.total_seconds() // 60)} minutes")

    @staticmethod
    def _aligned_starts(slot: BookingSlot, step: timedelta) -> list[datetime]:
        starts = []
        start = slot.start_instant
        while start + step <= slot.end_instant:
            starts.append(start)
            start += step
        return starts
