from __future__ import annotations

import inspect
import logging
from datetime import datetime
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo

from tutortrack.application.dto.results import SchedulingResult
from tutortrack.application.exceptions import (
    InvalidRecurrenceRequest,
    InvalidTimezone,
    OverlapConflict,
    StoreError,
)
from tutortrack.application.ports.session_store import SessionStorePort
from tutortrack.application.utils.overlap import find_strict_conflicts
from tutortrack.application.utils.recurrence import ScheduleRequest, generate_occurrences


class ScheduleSessionsUseCase:
    """Create one session or a weekly series from a tutor's scheduling form."""

    def __init__(
        self,
        store: SessionStorePort,
        on_mutation: Callable[[str], Awaitable[None] | None] | None = None,
    ) -> None:
        self._store = store
        self._on_mutation = on_mutation
        self._logger = logging.getLogger(__name__)

    async def execute(
        self,
        tutor_id: str,
        request: ScheduleRequest,
        zone: ZoneInfo | str,
        now: datetime | None = None,
    ) -> SchedulingResult:
        try:
            drafts = generate_occurrences(tutor_id, request, zone, now)
        except (InvalidRecurrenceRequest, InvalidTimezone) as e:
            self._logger.warning("Scheduling request rejected", extra={"tutor_id": tutor_id, "reason": str(e)})
            return SchedulingResult(ok=False, error=e)

        try:
            existing = await self._store.query(
                tutor_id, start=drafts[0].start_instant, end=drafts[-1].end_instant
            )
            conflicting_ids: list[str] = []
            for draft in drafts:
                conflicting_ids.extend(s.id for s in find_strict_conflicts(draft, existing))
            if conflicting_ids:
                raise OverlapConflict(
                    "Session overlaps with an existing session", conflicting_ids=sorted(set(conflicting_ids))
                )
            sessions = await self._store.insert(drafts)
        except OverlapConflict as e:
            self._logger.warning(
                "Scheduling request overlaps",
                extra={"tutor_id": tutor_id, "reason": str(e), "session_ids": e.conflicting_ids},
            )
            return SchedulingResult(ok=False, error=e)
        except StoreError as e:
            self._logger.error("Failed to store sessions", extra={"tutor_id": tutor_id, "error": str(e)})
            return SchedulingResult(ok=False, error=e)

        if self._on_mutation is not None:
            try:
                result = self._on_mutation(tutor_id)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._logger.error("Mutation listener failed", extra={"tutor_id": tutor_id, "error": str(e)})

        self._logger.info(
            "Sessions scheduled",
            extra={
                "tutor_id": tutor_id,
                "recurrence_id": drafts[0].recurrence_id,
                "count": len(sessions),
            },
        )
        return SchedulingResult(ok=True, sessions=sessions)
