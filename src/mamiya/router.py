"""Inbound user event routing.

Turns untyped gossip user events into handler invocations::

    mamiya:task          -> Task(...).invoke("run")
    mamiya:pkg:remove    -> Pkg(...).invoke("remove")

Anything outside the ``mamiya:`` namespace, filtered out, without a
handler, or naming an action the handler lacks is skipped.  Nodes in a
cluster may run different agent versions, so none of these are errors.

A handler that raises is logged at CRITICAL with its traceback and
swallowed: one bad command must not take the node offline.  Routers built
with ``raise_errors=True`` re-raise instead, so tests can assert on the
failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

from mamiya.codec import PayloadCodec
from mamiya.errors import PayloadDecodeError
from mamiya.handlers.base import DEFAULT_ACTION, HandlerRegistry
from mamiya.logger import get_logger
from mamiya.patterns import EventFilter

if TYPE_CHECKING:
    from mamiya.agent import Agent
    from mamiya.gossip import UserEvent

logger = get_logger("router")

NAMESPACE = "mamiya"
NAMESPACE_PREFIX = f"{NAMESPACE}:"


class DispatchResult(Enum):
    """Outcome of routing one user event."""

    DISPATCHED = auto()
    IGNORED = auto()  # Outside the namespace
    MALFORMED = auto()  # Payload is not a mapping
    FILTERED = auto()  # Rejected by the event filter
    UNHANDLED = auto()  # No handler for the type
    UNSUPPORTED = auto()  # Handler lacks the action
    FAILED = auto()  # Handler raised


@dataclass(frozen=True, slots=True)
class ParsedCommand:
    """A namespaced user event split into type, action and payload."""

    namespace: str
    type: str
    action: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def method(self) -> str:
        return self.action or DEFAULT_ACTION


def split_event_name(name: str) -> tuple[str, str | None] | None:
    """Split ``"mamiya:<type>[:<action>]"`` into ``(type, action)``.

    Returns ``None`` when *name* is outside the namespace or has an empty
    type.  Only the first ``:`` after the type separates the action, so
    ``"mamiya:pkg:fetch:x"`` yields ``("pkg", "fetch:x")``.

    Examples:
        split_event_name("mamiya:task")  # ("task", None)
        split_event_name("mamiya:pkg:remove")  # ("pkg", "remove")
        split_event_name("deploy:start")  # None
    """
    if not name.startswith(NAMESPACE_PREFIX):
        return None

    remainder = name[len(NAMESPACE_PREFIX):]
    command_type, sep, command_action = remainder.partition(":")
    if not command_type:
        return None
    return command_type, (command_action or None) if sep else None


def event_name(command_type: str, action: str | None = None) -> str:
    """Inverse of :func:`split_event_name`."""
    name = f"{NAMESPACE_PREFIX}{command_type}"
    if action:
        name += f":{action}"
    return name


class EventRouter:
    """Dispatch user events to handlers on behalf of an agent."""

    def __init__(
        self,
        agent: Agent,
        handlers: HandlerRegistry,
        *,
        codec: PayloadCodec | None = None,
        events_only: EventFilter | None = None,
        raise_errors: bool = False,
    ) -> None:
        self._agent = agent
        self._handlers = handlers
        self._codec = codec or PayloadCodec()
        self._events_only = events_only
        self._raise_errors = raise_errors

    @property
    def handlers(self) -> HandlerRegistry:
        return self._handlers

    @property
    def events_only(self) -> EventFilter | None:
        return self._events_only

    def parse(self, event: UserEvent) -> ParsedCommand | None:
        """Parse *event* into a command, or ``None`` if it is not ours.

        Raises:
            PayloadDecodeError: If a namespaced event carries a bad payload.
        """
        parts = split_event_name(event.name)
        if parts is None:
            return None

        command_type, command_action = parts
        payload = self._codec.decode(event.payload)
        return ParsedCommand(
            namespace=NAMESPACE,
            type=command_type,
            action=command_action,
            payload=payload,
        )

    async def dispatch(self, event: UserEvent) -> DispatchResult:
        try:
            command = self.parse(event)
        except PayloadDecodeError as e:
            logger.warning(
                "Discarded event[%s] with invalid payload: %s", event.name, e,
                extra={"fields": {"origin": event.origin}},
            )
            return DispatchResult.MALFORMED

        if command is None:
            return DispatchResult.IGNORED

        if self._events_only is not None and not self._events_only.accepts(command.type):
            return DispatchResult.FILTERED

        handler_cls = self._handlers.resolve(command.type)
        if handler_cls is None:
            return DispatchResult.UNHANDLED

        logger.debug(
            "Received user event %s", command.type,
            extra={"fields": {"action": command.method, "payload": command.payload}},
        )

        try:
            handler = handler_cls(self._agent, event, command)
            if not handler.supports(command.method):
                logger.debug(
                    "Handler %s doesn't respond to %s, skipping",
                    handler_cls.__name__, command.method,
                )
                return DispatchResult.UNSUPPORTED

            await handler.invoke(command.method)
        except Exception:
            logger.critical(
                "Error during handling event[%s]", event.name,
                exc_info=True,
                extra={"fields": {"handler": handler_cls.__name__, "origin": event.origin}},
            )
            if self._raise_errors:
                raise
            return DispatchResult.FAILED

        return DispatchResult.DISPATCHED
