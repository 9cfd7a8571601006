"""Event handler base class and registry.

A handler is a short-lived object built for one inbound command.  Its
actions are coroutine methods marked with ``@action``::

    class Pkg(Handler):
        @action("run")
        async def run(self) -> None: ...

        @action("fetch-success")
        async def fetch_success(self) -> None: ...

Handlers are looked up by the capitalized camel-case form of the command
type (``pkg`` -> ``Pkg``, ``fetch-all`` -> ``FetchAll``) in a
``HandlerRegistry``.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from mamiya.agent import Agent
    from mamiya.gossip import UserEvent
    from mamiya.router import ParsedCommand

DEFAULT_ACTION = "run"

_DASHED = re.compile(r"-.")


def handler_identifier(command_type: str) -> str:
    """Map a kebab-case command type to its handler identifier.

    Examples:
        handler_identifier("task")  # "Task"
        handler_identifier("fetch-all")  # "FetchAll"
        handler_identifier("PKG")  # "Pkg"
    """
    return _DASHED.sub(lambda m: m.group()[1].upper(), command_type.capitalize())


def action(name: str = DEFAULT_ACTION):
    """Decorator to expose a coroutine method as a handler action.

    Usage:
        class Task(Handler):
            @action()
            async def run(self) -> None:
                ...
    """
    def decorator(fn):
        fn._action_name = name
        return fn
    return decorator


class Handler:
    """Base class for inbound command handlers."""

    _actions: ClassVar[dict[str, str]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        actions: dict[str, str] = {}
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                name = getattr(value, "_action_name", None)
                if name is not None:
                    actions[name] = attr
        cls._actions = actions

    def __init__(self, agent: Agent, event: UserEvent, command: ParsedCommand) -> None:
        self.agent = agent
        self.event = event
        self.command = command

    @property
    def payload(self) -> dict[str, Any]:
        return self.command.payload

    @classmethod
    def actions(cls) -> frozenset[str]:
        return frozenset(cls._actions)

    def supports(self, action_name: str) -> bool:
        return action_name in self._actions

    async def invoke(self, action_name: str) -> None:
        method: Callable[[], Awaitable[Any]] = getattr(self, self._actions[action_name])
        await method()


class HandlerRegistry:
    """Explicit mapping from handler identifier to handler class.

    Example:
        registry = HandlerRegistry([Task])
        registry.resolve("task")  # Task
        registry.resolve("deploy")  # None
    """

    def __init__(self, handlers: Iterable[type[Handler]] = ()) -> None:
        self._handlers: dict[str, type[Handler]] = {}
        for handler_cls in handlers:
            self.register(handler_cls)

    def register(self, handler_cls: type[Handler], identifier: str | None = None) -> type[Handler]:
        """Bind *handler_cls* under *identifier* (default: its class name)."""
        self._handlers[identifier or handler_cls.__name__] = handler_cls
        return handler_cls

    def resolve(self, command_type: str) -> type[Handler] | None:
        return self._handlers.get(handler_identifier(command_type))

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
