"""Tasks run by the agent's task queue."""

from mamiya.tasks.base import Task
from mamiya.tasks.clean import Clean
from mamiya.tasks.fetch import Fetch, PackageFetcher

DEFAULT_TASKS: tuple[type[Task], ...] = (Fetch, Clean)

__all__ = [
    "Clean",
    "DEFAULT_TASKS",
    "Fetch",
    "PackageFetcher",
    "Task",
]
