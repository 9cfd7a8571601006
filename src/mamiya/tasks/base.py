"""Base class for work executed by the task queue."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, ClassVar

from mamiya.logger import get_logger

if TYPE_CHECKING:
    from mamiya.agent import Agent


class Task:
    """A unit of work submitted under its ``identifier``.

    ``execute`` announces the task to the cluster before and after running
    it, as ``mamiya:task:start``, ``mamiya:task:finish`` or
    ``mamiya:task:error``.  Exceptions raised by ``run`` are logged and
    reported, never propagated to the queue worker.

    Subclasses implement ``run``; ``before``/``after``/``errored`` are
    optional hooks.
    """

    identifier: ClassVar[str] = ""

    def __init__(self, agent: Agent, args: Mapping[str, Any]) -> None:
        self.agent = agent
        self.args = dict(args)
        self.error: BaseException | None = None
        self.logger = get_logger(f"tasks.{self.identifier or type(self).__name__.lower()}")

    @property
    def task(self) -> dict[str, Any]:
        """The args with ``task`` set, as reported in notifications."""
        return {**self.args, "task": self.identifier}

    async def execute(self) -> None:
        await self._notify("start")
        try:
            await self.before()
            await self.run()
        except Exception as e:
            self.error = e
            self.logger.error(
                "Task %s failed: %s", self.identifier, e,
                exc_info=True, extra={"fields": {"args": self.args}},
            )
            await self.errored(e)
            await self._notify("error", error=f"{type(e).__name__}: {e}")
        else:
            await self._notify("finish")
        finally:
            await self.after()

    async def before(self) -> None:
        pass

    async def run(self) -> None:
        raise NotImplementedError

    async def errored(self, error: Exception) -> None:
        pass

    async def after(self) -> None:
        pass

    async def _notify(self, action: str, **extra: Any) -> None:
        try:
            await self.agent.trigger("task", action=action, coalesce=False, task=self.task, **extra)
        except Exception:
            self.logger.warning("Unable to announce task %s %s", self.identifier, action, exc_info=True)
