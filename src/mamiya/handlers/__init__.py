"""Inbound command handlers."""

from mamiya.handlers.base import (
    DEFAULT_ACTION,
    Handler,
    HandlerRegistry,
    action,
    handler_identifier,
)
from mamiya.handlers.task import Task


def default_handlers() -> HandlerRegistry:
    """Registry holding the handlers every agent ships with."""
    return HandlerRegistry([Task])


__all__ = [
    "DEFAULT_ACTION",
    "Handler",
    "HandlerRegistry",
    "Task",
    "action",
    "default_handlers",
    "handler_identifier",
]
