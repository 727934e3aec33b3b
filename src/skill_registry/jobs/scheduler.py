"""Deferred execution of self-rescheduling batch tasks."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from skill_registry.exceptions import ConfigurationError
from skill_registry.observability.logger import get_logger

logger = get_logger("scheduler")


@dataclass
class BatchTask:
    """One page of work. Handlers enqueue a follow-up task with the next cursor."""

    name: str
    cursor: str | None = None
    state: dict = field(default_factory=dict)


BatchHandler = Callable[[BatchTask], Awaitable[None]]
FailureHandler = Callable[[BatchTask, Exception], None]


class AsyncioScheduler:
    def __init__(self) -> None:
        self._handlers: dict[str, BatchHandler] = {}
        self._on_failure: dict[str, FailureHandler] = {}
        self._running: set[asyncio.Task] = set()

    def register(
        self, name: str, handler: BatchHandler, on_failure: FailureHandler | None = None
    ) -> None:
        self._handlers[name] = handler
        if on_failure is not None:
            self._on_failure[name] = on_failure

    def enqueue(self, task: BatchTask) -> None:
        handler = self._handlers.get(task.name)
        if handler is None:
            raise ConfigurationError(f"No handler registered for batch task {task.name!r}")
        running = asyncio.get_running_loop().create_task(self._run(handler, task))
        self._running.add(running)
        running.add_done_callback(self._running.discard)

    async def _run(self, handler: BatchHandler, task: BatchTask) -> None:
        try:
            await handler(task)
        except Exception as e:
            logger.error("batch_task_failed", task=task.name, cursor=task.cursor, error=str(e))
            on_failure = self._on_failure.get(task.name)
            if on_failure is not None:
                on_failure(task, e)

    @property
    def pending(self) -> int:
        return len(self._running)

    async def drain(self) -> None:
        """Wait until no task is running, including tasks enqueued while waiting."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
