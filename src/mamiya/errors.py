"""Exception hierarchy for the mamiya agent."""

from __future__ import annotations


class MamiyaError(Exception):
    """Base class for every error raised by mamiya."""


class ConfigError(MamiyaError):
    """Configuration file or value is invalid."""


class PayloadDecodeError(MamiyaError):
    """An event payload could not be decoded into a mapping."""


class GossipError(MamiyaError):
    """The gossip adapter failed to start or never became ready."""


class UnknownTaskError(MamiyaError):
    """A task was submitted under a name the task queue does not know."""

    def __init__(self, task_name: str) -> None:
        super().__init__(f"Unknown task: {task_name!r}")
        self.task_name = task_name


class FetchError(MamiyaError):
    """A package could not be fetched into local storage."""
