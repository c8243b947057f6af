from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

from tutortrack.application.exceptions import StoreError, TimezoneNotReady
from tutortrack.application.ports.session_store import SessionStorePort, Unsubscribe
from tutortrack.application.use_cases.calendar_projection import CalendarProjector
from tutortrack.application.use_cases.timezone_resolver import TimezoneResolver
from tutortrack.core.config import settings
from tutortrack.domain.entities.calendar_event import ProjectionResult

EventsListener = Callable[[ProjectionResult], Awaitable[None] | None]


class CalendarFeed:
    """
    Keeps one tutor's projected calendar current.

    Re-projection is triggered by mutation success (``notify_mutation``), a soft
    poll and the store's change feed. Triggers may arrive in any order; refreshes
    are serialized and listeners only hear about results that differ from the
    previous one.
    """

    def __init__(
        self,
        tutor_id: str,
        store: SessionStorePort,
        resolver: TimezoneResolver,
        on_events: EventsListener,
        projector: CalendarProjector | None = None,
        poll_seconds: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._tutor_id = tutor_id
        self._store = store
        self._resolver = resolver
        self._on_events = on_events
        self._projector = projector or CalendarProjector()
        self._poll_seconds = settings.CALENDAR_POLL_SECONDS if poll_seconds is None else poll_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = asyncio.Lock()
        self._poll_task: asyncio.Task | None = None
        self._unsubscribe: Unsubscribe | None = None
        self._last: ProjectionResult | None = None
        self._logger = logging.getLogger(__name__)

    @property
    def last_result(self) -> ProjectionResult | None:
        return self._last

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._unsubscribe = self._store.subscribe(self._tutor_id, self._on_store_change)
        self._poll_task = asyncio.create_task(self._poll_loop())
        await self.refresh("start")

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

    async def notify_mutation(self, tutor_id: str) -> None:
        if tutor_id == self._tutor_id:
            await self.refresh("mutation")

    async def refresh(self, reason: str = "manual") -> ProjectionResult | None:
        async with self._lock:
            try:
                zone = self._resolver.zone
            except TimezoneNotReady:
                self._logger.info("Calendar refresh deferred", extra={"tutor_id": self._tutor_id, "reason": "timezone not ready"})
                return None
            try:
                sessions = await self._store.query(self._tutor_id)
            except StoreError as e:
                self._logger.error("Calendar refresh failed", extra={"tutor_id": self._tutor_id, "error": str(e)})
                return None

            result = self._projector.project(sessions, zone, self._clock())
            if result == self._last:
                return result
            self._last = result

        self._logger.debug(
            "Calendar re-projected",
            extra={"tutor_id": self._tutor_id, "reason": reason, "skipped": result.skipped_count},
        )
        outcome = self._on_events(result)
        if inspect.isawaitable(outcome):
            await outcome
        return result

    async def _on_store_change(self, tutor_id: str) -> None:
        await self.refresh("change_feed")

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_seconds)
            await self.refresh("poll")
