"""
Gossip adapter interface and an in-process implementation.

The agent never talks to the network directly.  It consumes a
``GossipAdapter``: node identity, a tag map advertised to the cluster, user
event broadcast/delivery and query responders.  Production deployments plug
in an adapter for their transport; ``LocalCluster`` / ``LocalGossip`` wire
several agents together inside one event loop.

Example:
    cluster = LocalCluster()
    node = LocalGossip(cluster, "app-01")
    await node.start()
    await node.wait_until_ready(timeout=1.0)
    await node.broadcast("mamiya:task", b'{"task":"clean"}')
    responses = await cluster.query("mamiya:status")
"""

from __future__ import annotations

import asyncio
import atexit
from collections import deque
from collections.abc import Awaitable, Callable, MutableMapping
from dataclasses import dataclass
from typing import Protocol, TypeAlias

from mamiya.errors import GossipError
from mamiya.logger import get_logger

logger = get_logger("gossip")


@dataclass(frozen=True, slots=True)
class UserEvent:
    """A user event as delivered by the gossip transport."""

    name: str
    payload: bytes
    origin: str | None = None
    coalesce: bool = True


@dataclass(frozen=True, slots=True)
class Query:
    """A query addressed to this node."""

    name: str
    payload: bytes = b""
    origin: str | None = None


UserEventCallback: TypeAlias = Callable[[UserEvent], Awaitable[object]]
QueryResponder: TypeAlias = Callable[[Query], bytes]


class GossipAdapter(Protocol):
    """What the agent needs from a gossip transport."""

    @property
    def name(self) -> str: ...

    @property
    def tags(self) -> MutableMapping[str, str]: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def wait_until_ready(self, timeout: float | None = None) -> None: ...

    def auto_stop(self) -> None: ...

    def on_user_event(self, callback: UserEventCallback) -> None: ...

    async def broadcast(self, name: str, payload: bytes, *, coalesce: bool = True) -> None: ...

    def respond(self, query_name: str, responder: QueryResponder) -> None: ...


class LocalCluster:
    """In-process membership hub for ``LocalGossip`` nodes."""

    def __init__(self) -> None:
        self._members: dict[str, LocalGossip] = {}

    @property
    def members(self) -> dict[str, LocalGossip]:
        return dict(self._members)

    def tags_of(self, name: str) -> dict[str, str]:
        return dict(self._members[name].tags)

    def _join(self, node: LocalGossip) -> None:
        if node.name in self._members and self._members[node.name] is not node:
            raise GossipError(f"Node name already taken: {node.name}")
        self._members[node.name] = node
        logger.debug("Member joined: %s", node.name)

    def _leave(self, node: LocalGossip) -> None:
        if self._members.get(node.name) is node:
            del self._members[node.name]
            logger.debug("Member left: %s", node.name)

    def _broadcast(self, event: UserEvent) -> None:
        for member in list(self._members.values()):
            member._enqueue(event)

    async def query(self, name: str, payload: bytes = b"", origin: str | None = None) -> dict[str, bytes]:
        """Ask every member holding a responder for *name*; return responses by node."""
        query = Query(name=name, payload=payload, origin=origin)
        responses: dict[str, bytes] = {}
        for member in list(self._members.values()):
            responder = member._responders.get(name)
            if responder is None:
                continue
            try:
                responses[member.name] = responder(query)
            except Exception:
                logger.exception("Query responder failed on %s for %s", member.name, name)
        return responses


class LocalGossip:
    """``GossipAdapter`` backed by a ``LocalCluster``.

    Events are delivered to the registered callback from a single delivery
    task per node, in broadcast order.  A coalescing broadcast replaces an
    undelivered coalescing event of the same name instead of queueing
    behind it.
    """

    def __init__(self, cluster: LocalCluster, name: str) -> None:
        self._cluster = cluster
        self._name = name
        self._tags: dict[str, str] = {}
        self._callbacks: list[UserEventCallback] = []
        self._responders: dict[str, QueryResponder] = {}
        self._pending: deque[UserEvent] = deque()
        self._wakeup = asyncio.Event()
        self._ready = asyncio.Event()
        self._delivery: asyncio.Task[None] | None = None
        self._auto_stop_registered = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def tags(self) -> dict[str, str]:
        return self._tags

    @property
    def running(self) -> bool:
        return self._delivery is not None

    async def start(self) -> None:
        if self._delivery is not None:
            return
        self._cluster._join(self)
        self._delivery = asyncio.get_running_loop().create_task(
            self._deliver(), name=f"gossip-delivery-{self._name}"
        )
        self._ready.set()

    async def stop(self) -> None:
        if self._delivery is None:
            return
        self._cluster._leave(self)
        self._ready.clear()
        task, self._delivery = self._delivery, None
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self._pending.clear()
        self._wakeup.clear()

    async def wait_until_ready(self, timeout: float | None = None) -> None:
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=timeout)
        except TimeoutError as e:
            raise GossipError(f"{self._name} did not become ready within {timeout}s") from e

    def auto_stop(self) -> None:
        if self._auto_stop_registered:
            return
        atexit.register(self._cluster._leave, self)
        self._auto_stop_registered = True

    def on_user_event(self, callback: UserEventCallback) -> None:
        self._callbacks.append(callback)

    async def broadcast(self, name: str, payload: bytes, *, coalesce: bool = True) -> None:
        if self._delivery is None:
            raise GossipError(f"{self._name} is not running")
        self._cluster._broadcast(
            UserEvent(name=name, payload=payload, origin=self._name, coalesce=coalesce)
        )

    def respond(self, query_name: str, responder: QueryResponder) -> None:
        self._responders[query_name] = responder

    def _enqueue(self, event: UserEvent) -> None:
        if event.coalesce:
            for i, pending in enumerate(self._pending):
                if pending.coalesce and pending.name == event.name:
                    self._pending[i] = event
                    return
        self._pending.append(event)
        self._wakeup.set()

    async def idle(self) -> None:
        """Wait until every queued event has been handed to the callbacks."""
        while self._delivery is not None and (self._pending or self._wakeup.is_set()):
            await asyncio.sleep(0)

    async def _deliver(self) -> None:
        while True:
            await self._wakeup.wait()
            while self._pending:
                event = self._pending.popleft()
                for callback in self._callbacks:
                    try:
                        await callback(event)
                    except Exception:
                        logger.exception("User event callback failed on %s", self._name)
            self._wakeup.clear()
