"""Task queue supervising the agent's background work.

One worker per task class drains that class's queue, so tasks of the same
kind run one at a time while different kinds run concurrently.  Submitting
never blocks.  Stopping gives running tasks ``task_stop_timeout`` seconds
to finish before cancelling them.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mamiya.errors import UnknownTaskError
from mamiya.logger import get_logger

if TYPE_CHECKING:
    from mamiya.agent import Agent
    from mamiya.tasks.base import Task

logger = get_logger("task_queue")


@dataclass
class _Lane:
    """Queue and worker state for one task class."""

    task_class: type[Task]
    queue: deque[dict[str, Any]] = field(default_factory=deque)
    wakeup: asyncio.Event = field(default_factory=asyncio.Event)
    working: dict[str, Any] | None = None
    worker: asyncio.Task[None] | None = None


class TaskQueue:
    """Runs submitted tasks from a fixed, ordered set of task classes.

    Example:
        queue = TaskQueue(agent, [Fetch, Clean])
        await queue.start()
        queue.submit("fetch", {"app": "blog", "pkg": "1.0"})
        queue.status()  # {"fetch": {"queue": [], "working": {...}}, "clean": {...}}
        await queue.stop()
    """

    def __init__(self, agent: Agent, task_classes: Iterable[type[Task]]) -> None:
        self._agent = agent
        self._lanes: dict[str, _Lane] = {
            task_class.identifier: _Lane(task_class=task_class) for task_class in task_classes
        }
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def task_classes(self) -> tuple[type[Task], ...]:
        return tuple(lane.task_class for lane in self._lanes.values())

    def knows(self, task_name: str) -> bool:
        return task_name in self._lanes

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        loop = asyncio.get_running_loop()
        for name, lane in self._lanes.items():
            lane.worker = loop.create_task(self._work(lane), name=f"task-queue-{name}")
        logger.debug("Task queue started with %s", ", ".join(self._lanes) or "no tasks")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False

        workers = [lane.worker for lane in self._lanes.values() if lane.worker is not None]
        for lane in self._lanes.values():
            lane.wakeup.set()

        timeout = self._agent.config.task_stop_timeout
        _, pending = await asyncio.wait(workers, timeout=timeout) if workers else (set(), set())
        if pending:
            logger.warning("Cancelling %d task worker(s) still running after %ss", len(pending), timeout)
            for worker in pending:
                worker.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        for lane in self._lanes.values():
            lane.worker = None
            lane.working = None
        logger.debug("Task queue stopped")

    def submit(self, task_name: str, args: Mapping[str, Any]) -> None:
        """Enqueue a task without waiting for it.

        Raises:
            UnknownTaskError: If no task class has this identifier.
        """
        lane = self._lanes.get(task_name)
        if lane is None:
            raise UnknownTaskError(task_name)

        lane.queue.append(dict(args))
        lane.wakeup.set()
        logger.debug("Queued task %s", task_name, extra={"fields": {"queued": len(lane.queue)}})

    def status(self) -> dict[str, dict[str, Any]]:
        return {
            name: {"queue": list(lane.queue), "working": lane.working}
            for name, lane in self._lanes.items()
        }

    async def _work(self, lane: _Lane) -> None:
        while self._running:
            if not lane.queue:
                lane.wakeup.clear()
                await lane.wakeup.wait()
                continue

            args = lane.queue.popleft()
            lane.working = args
            try:
                await lane.task_class(self._agent, args).execute()
            except Exception:
                logger.exception("Task %s crashed outside its own error handling", lane.task_class.identifier)
            finally:
                lane.working = None
