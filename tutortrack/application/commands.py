"""
Typed commands between the scheduling core and its UI shell.

The shell enqueues commands; ``CommandQueue.run`` dispatches each to the handler
registered for its type.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Union

from tutortrack.application.dto.results import MutationResult
from tutortrack.application.use_cases.session_mutations import SessionMutationsUseCase


@dataclass(frozen=True)
class OpenScheduleDialog:
    """Ask the shell to open the scheduling form prefilled with a local start."""

    tutor_id: str
    local_date: str
    local_time: str | None = None


@dataclass(frozen=True)
class CancelSession:
    tutor_id: str
    session_id: str


@dataclass(frozen=True)
class CancelSeries:
    tutor_id: str
    recurrence_id: str
    now: datetime | None = None


@dataclass(frozen=True)
class RefreshCalendar:
    tutor_id: str


Command = Union[OpenScheduleDialog, CancelSession, CancelSeries, RefreshCalendar]
Handler = Callable[[Any], Awaitable[Any] | Any]


class CommandQueue:
    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[Command] = asyncio.Queue(maxsize=maxsize)
        self._handlers: dict[type, Handler] = {}
        self._logger = logging.getLogger(__name__)

    def register(self, command_type: type, handler: Handler) -> None:
        self._handlers[command_type] = handler

    def register_mutations(self, mutations: SessionMutationsUseCase) -> None:
        """Route cancel commands to the mutation handlers."""
        self.register(CancelSession, lambda c: mutations.cancel(c.tutor_id, c.session_id))
        self.register(CancelSeries, lambda c: mutations.cancel_series(c.tutor_id, c.recurrence_id, c.now))

    async def put(self, command: Command) -> None:
        await self._queue.put(command)

    def put_nowait(self, command: Command) -> None:
        self._queue.put_nowait(command)

    def pending(self) -> int:
        return self._queue.qsize()

    async def join(self) -> None:
        await self._queue.join()

    async def dispatch(self, command: Command) -> Any:
        handler = self._handlers.get(type(command))
        if handler is None:
            self._logger.warning("No handler for command", extra={"command": type(command).__name__})
            return None
        result = handler(command)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, MutationResult) and not result.ok:
            self._logger.info(
                "Command failed",
                extra={"command": type(command).__name__, "reason": str(result.error)},
            )
        return result

    async def drain(self) -> list[Any]:
        """Dispatch everything currently queued and return the handler results in order."""
        results = []
        while not self._queue.empty():
            command = self._queue.get_nowait()
            try:
                results.append(await self.dispatch(command))
            finally:
                self._queue.task_done()
        return results

    async def run(self) -> None:
        """Dispatch commands until cancelled."""
        while True:
            command = await self._queue.get()
            try:
                await self.dispatch(command)
            except Exception as e:
                self._logger.exception("Command handler failed", extra={"command": type(command).__name__, "error": str(e)})
            finally:
                self._queue.task_done()
