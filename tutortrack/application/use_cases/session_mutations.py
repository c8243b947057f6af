from __future__ import annotations

import inspect
import logging
from datetime import date, datetime, time, timezone
from typing import Any, Awaitable, Callable
from zoneinfo import ZoneInfo

from tutortrack.application.dto.results import MutationResult
from tutortrack.application.exceptions import (
    InvalidInterval,
    MutationRejected,
    OverlapConflict,
    SchedulingError,
    StoreError,
)
from tutortrack.application.ports.session_store import SessionStorePort
from tutortrack.application.utils.instant_converter import duration_minutes, from_local_wall_clock, parse_instant
from tutortrack.application.utils.overlap import Interval, ensure_no_overlap
from tutortrack.core.config import settings
from tutortrack.domain.entities.session import STATUS_CONFIRMED, STATUS_PENDING, Session

MutationListener = Callable[[str], Awaitable[None] | None]

EDITABLE_DETAILS = ("notes", "color_tag")


class SessionMutationsUseCase:
    """
    Drag, resize and edit operations on stored sessions.

    The overlap check reads the store immediately before each write. Another
    writer can still slip in between that read and the write; this
    check-then-act window is accepted and no locking is done here.
    """

    def __init__(
        self,
        store: SessionStorePort,
        on_mutation: MutationListener | None = None,
        min_duration_minutes: int | None = None,
    ) -> None:
        self._store = store
        self._on_mutation = on_mutation
        self._min_duration = min_duration_minutes or settings.MIN_SESSION_MINUTES
        self._logger = logging.getLogger(__name__)

    async def drag(
        self,
        tutor_id: str,
        session_id: str,
        new_start: datetime,
    ) -> MutationResult:
        """Move a session to ``new_start`` keeping its duration."""
        original = await self._load(session_id)
        if isinstance(original, MutationResult):
            return original
        if not original.has_interval:
            return self._reject("drag", "Session has no interval to move", original)

        start = parse_instant(new_start)
        end = start + (original.end_instant - original.start_instant)
        return await self._move(tutor_id, original, start, end, "drag")

    async def drag_to_local(
        self,
        tutor_id: str,
        session_id: str,
        local_date: date | str,
        local_time: time | str,
        zone: ZoneInfo | str,
    ) -> MutationResult:
        try:
            new_start = from_local_wall_clock(local_date, local_time, zone)
        except (ValueError, SchedulingError) as e:
            return self._reject("drag", f"Invalid drop target: {e}", None, cause=e)
        return await self.drag(tutor_id, session_id, new_start)

    async def resize(
        self,
        tutor_id: str,
        session_id: str,
        new_end: datetime,
        now: datetime | None = None,
    ) -> MutationResult:
        """Change the end of a session; the duration is recomputed from the new end."""
        original = await self._load(session_id)
        if isinstance(original, MutationResult):
            return original
        if not original.has_interval:
            return self._reject("resize", "Session has no interval to resize", original)

        current = parse_instant(now) if now is not None else datetime.now(timezone.utc)
        if original.end_instant < current:
            return self._reject("resize", "Past sessions cannot be resized", original)

        end = parse_instant(new_end)
        try:
            minutes = duration_minutes(original.start_instant, end)
        except InvalidInterval as e:
            return self._reject("resize", str(e), original, cause=e)
        if minutes < self._min_duration:
            return self._reject(
                "resize", f"Sessions must be at least {self._min_duration} minutes long", original
            )
        return await self._move(tutor_id, original, original.start_instant, end, "resize")

    async def update_details(
        self,
        tutor_id: str,
        session_id: str,
        patch: dict[str, Any],
        apply_to_series: bool = False,
    ) -> MutationResult:
        """
        Edit notes/color on one session, or on this and every later session of its series.

        Past sessions stay editable.
        """
        original = await self._load_owned(tutor_id, session_id, "update")
        if isinstance(original, MutationResult):
            return original

        unknown = set(patch) - set(EDITABLE_DETAILS)
        if unknown:
            return self._reject("update", f"Fields cannot be edited here: {sorted(unknown)}", original)

        try:
            if apply_to_series and original.recurrence_id:
                count = await self._store.update_series(
                    original.recurrence_id, patch, from_instant=original.start_instant
                )
                await self._notify(original.tutor_id)
                self._logger.info(
                    "Series updated",
                    extra={"recurrence_id": original.recurrence_id, "affected": count},
                )
                return MutationResult.success("update_series", session=None, affected=count)

            updated = await self._store.update(session_id, patch)
        except StoreError as e:
            return self._reject("update", "Could not save session changes", original, cause=e)

        await self._notify(original.tutor_id)
        return MutationResult.success("update", session=updated)

    async def set_paid(self, tutor_id: str, session_id: str, paid: bool) -> MutationResult:
        original = await self._load_owned(tutor_id, session_id, "set_paid")
        if isinstance(original, MutationResult):
            return original
        return await self._patch(original, {"paid": paid}, "set_paid")

    async def confirm_request(self, tutor_id: str, session_id: str, student_id: str) -> MutationResult:
        """Turn a pending public booking into a confirmed session for ``student_id``."""
        original = await self._load_owned(tutor_id, session_id, "confirm")
        if isinstance(original, MutationResult):
            return original
        if original.status != STATUS_PENDING:
            return self._reject("confirm", "Only pending booking requests can be confirmed", original)
        return await self._patch(original, {"status": STATUS_CONFIRMED, "student_id": student_id}, "confirm")

    async def cancel(self, tutor_id: str, session_id: str) -> MutationResult:
        original = await self._load_owned(tutor_id, session_id, "cancel")
        if isinstance(original, MutationResult):
            return original
        try:
            await self._store.delete(session_id)
        except StoreError as e:
            return self._reject("cancel", "Could not cancel session", original, cause=e)
        await self._notify(original.tutor_id)
        self._logger.info("Session cancelled", extra={"tutor_id": original.tutor_id, "session_id": session_id})
        return MutationResult.success("cancel", session=original)

    async def cancel_series(
        self,
        tutor_id: str,
        recurrence_id: str,
        now: datetime | None = None,
    ) -> MutationResult:
        """Delete every occurrence of a series that has not started yet."""
        current = parse_instant(now) if now is not None else datetime.now(timezone.utc)
        deleted = 0
        try:
            sessions = await self._store.query(tutor_id)
            targets = [
                s for s in sessions
                if s.recurrence_id == recurrence_id and s.start_instant is not None and s.start_instant >= current
            ]
            for session in targets:
                await self._store.delete(session.id)
                deleted += 1
        except StoreError as e:
            self._logger.error(
                "Series cancel failed",
                extra={"recurrence_id": recurrence_id, "affected": deleted, "error": str(e)},
            )
            if deleted:
                await self._notify(tutor_id)
            return self._reject("cancel_series", f"Series cancel stopped after {deleted} session(s)", None, cause=e)

        await self._notify(tutor_id)
        self._logger.info("Series cancelled", extra={"recurrence_id": recurrence_id, "affected": deleted})
        return MutationResult.success("cancel_series", affected=deleted)

    async def _move(
        self,
        tutor_id: str,
        original: Session,
        start: datetime,
        end: datetime,
        action: str,
    ) -> MutationResult:
        if original.tutor_id != tutor_id:
            return self._reject(action, "Session belongs to another tutor", original)

        candidate = Interval(start_instant=start, end_instant=end, id=original.id)
        try:
            existing = await self._store.query(tutor_id)
            ensure_no_overlap(candidate, [s for s in existing if s.id != original.id])
            updated = await self._store.update(original.id, {"start_instant": start, "end_instant": end})
        except OverlapConflict as e:
            return self._reject(action, "Session overlaps with another session", original, cause=e)
        except StoreError as e:
            return self._reject(action, "Could not save session changes", original, cause=e)

        await self._notify(tutor_id)
        self._logger.info(
            "Session moved",
            extra={
                "tutor_id": tutor_id,
                "session_id": original.id,
                "action": action,
                "start": start.isoformat(),
                "end": end.isoformat(),
            },
        )
        return MutationResult.success(action, session=updated)

    async def _patch(self, original: Session, patch: dict[str, Any], action: str) -> MutationResult:
        try:
            updated = await self._store.update(original.id, patch)
        except StoreError as e:
            return self._reject(action, "Could not save session changes", original, cause=e)
        await self._notify(original.tutor_id)
        return MutationResult.success(action, session=updated)

    async def _load(self, session_id: str) -> Session | MutationResult:
        try:
            session = await self._store.get(session_id)
        except StoreError as e:
            return self._reject("load", "Could not read session", None, cause=e)
        if session is None:
            return self._reject("load", f"Session {session_id} not found", None)
        return session

    async def _load_owned(self, tutor_id: str, session_id: str, action: str) -> Session | MutationResult:
        session = await self._load(session_id)
        if isinstance(session, Session) and session.tutor_id != tutor_id:
            return self._reject(action, "Session belongs to another tutor", session)
        return session

    async def _notify(self, tutor_id: str) -> None:
        if self._on_mutation is None:
            return
        try:
            result = self._on_mutation(tutor_id)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._logger.error("Mutation listener failed", extra={"tutor_id": tutor_id, "error": str(e)})

    def _reject(
        self,
        action: str,
        message: str,
        original: Session | None,
        cause: Exception | None = None,
    ) -> MutationResult:
        self._logger.warning(
            "Mutation rejected",
            extra={
                "action": action,
                "session_id": original.id if original else None,
                "reason": message,
            },
        )
        return MutationResult.failure(action, MutationRejected(message, cause=cause), revert_to=original)
