"""Handler for ``mamiya:task`` commands."""

from __future__ import annotations


from mamiya.handlers.base import Handler, action
from mamiya.logger import get_logger

logger = get_logger("handlers.task")


class Task(Handler):
    """Submit the task named in the payload to the local task queue.

    The whole payload becomes the task's arguments::

        mamiya:task  {"task": "fetch", "app": "blog", "pkg": "1.0", "name": "deploy-01"}
    """

    @action()
    async def run(self) -> None:
        task_name = self.payload.get("task")
        queue = self.agent.task_queue

        if not isinstance(task_name, str) or not queue.knows(task_name):
            logger.debug("Ignoring task %r: not available on this node", task_name)
            return

        queue.submit(task_name, self.payload)
