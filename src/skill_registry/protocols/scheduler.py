"""Protocol for deferred batch task scheduling."""

from __future__ import annotations

from typing import Protocol

from skill_registry.jobs.scheduler import BatchHandler, BatchTask, FailureHandler


class Scheduler(Protocol):
    def register(
        self, name: str, handler: BatchHandler, on_failure: FailureHandler | None = None
    ) -> None: ...

    def enqueue(self, task: BatchTask) -> None: ...
