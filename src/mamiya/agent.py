"""The per-node mamiya agent.

An ``Agent`` joins the cluster through a gossip adapter, routes inbound
``mamiya:*`` user events to handlers, runs background tasks, advertises its
health in the ``mamiya`` tag and answers ``mamiya:status`` queries.

Lifecycle::

    CREATED -> STARTING -> RUNNING -> TERMINATING -> STOPPED

Example:
    agent = Agent(load_config(), gossip)
    loop.add_signal_handler(signal.SIGTERM, agent.stop)
    await agent.run()  # returns after agent.stop()
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from enum import Enum, auto
from typing import Any, TypeAlias

from mamiya.codec import PayloadCodec
from mamiya.config import AgentConfig
from mamiya.gossip import GossipAdapter, Query, UserEvent
from mamiya.handlers import HandlerRegistry, default_handlers
from mamiya.logger import get_logger
from mamiya.packages import existing_packages
from mamiya.patterns import EventFilter, FilterEntry
from mamiya.router import DispatchResult, EventRouter, event_name
from mamiya.status import READY, STATUS_TAG, StatusSnapshot, format_status_tag
from mamiya.task_queue import TaskQueue
from mamiya.tasks import DEFAULT_TASKS, PackageFetcher, Task
from mamiya.version import VERSION

logger = get_logger("agent")

STATUS_QUERY = event_name("status")

TagCondition: TypeAlias = Callable[["Agent"], str | None]


class AgentState(Enum):
    """Lifecycle states of an agent."""

    CREATED = auto()
    STARTING = auto()
    RUNNING = auto()
    TERMINATING = auto()
    STOPPED = auto()


class Agent:
    """Event-driven orchestration loop for one cluster node.

    Args:
        config: Agent settings.
        gossip: Transport adapter; not yet started.
        events_only: Command types this node accepts. ``None`` accepts all.
        handlers: Handler registry; defaults to the built-in handlers.
        task_classes: Task classes the queue knows; defaults to fetch and clean.
        fetcher: Package transfer backend used by the fetch task.
        raise_errors: Re-raise handler failures instead of logging them.
        tag_conditions: Callables reporting extra tokens for the ``mamiya``
            tag; a node with no conditions advertises ``ready``.
    """

    def __init__(
        self,
        config: AgentConfig,
        gossip: GossipAdapter,
        *,
        events_only: EventFilter | Iterable[FilterEntry] | None = None,
        handlers: HandlerRegistry | None = None,
        task_classes: Sequence[type[Task]] | None = None,
        fetcher: PackageFetcher | None = None,
        raise_errors: bool = False,
        tag_conditions: Sequence[TagCondition] = (),
    ) -> None:
        self.config = config
        self.gossip = gossip
        self.fetcher = fetcher
        self.codec = PayloadCodec(config.serializer)
        self.tag_conditions = tuple(tag_conditions)
        self.state = AgentState.CREATED

        if events_only is not None and not isinstance(events_only, EventFilter):
            events_only = EventFilter(events_only)

        self.task_queue = TaskQueue(self, DEFAULT_TASKS if task_classes is None else task_classes)
        self.router = EventRouter(
            self,
            handlers if handlers is not None else default_handlers(),
            codec=self.codec,
            events_only=events_only,
            raise_errors=raise_errors,
        )
        self._terminate = threading.Event()

        gossip.on_user_event(self._on_user_event)
        gossip.respond(STATUS_QUERY, self._respond_status)

    @property
    def name(self) -> str:
        return self.gossip.name

    @property
    def terminating(self) -> bool:
        return self._terminate.is_set()

    async def run(self) -> None:
        """Start, then poll for :meth:`stop` until asked to terminate."""
        logger.info("Starting...")
        await self.start()
        logger.info("Started.")

        try:
            while not self._terminate.is_set():
                await asyncio.sleep(self.config.poll_interval)
        finally:
            logger.info("Terminating...")
            self.state = AgentState.TERMINATING
            try:
                await self.terminate()
            finally:
                self.state = AgentState.STOPPED
            logger.info("Stopped.")

    def stop(self) -> None:
        """Ask :meth:`run` to terminate. Safe from any thread or signal handler."""
        self._terminate.set()

    async def start(self) -> None:
        """Join the cluster and start the task queue.

        On failure, whatever was started is stopped again before the error
        propagates, leaving the agent ``STOPPED``.
        """
        self.state = AgentState.STARTING
        try:
            await self._gossip_start()
            await self._task_queue_start()
            await self.update_tags()
        except BaseException:
            logger.error("Start failed, leaving the cluster")
            try:
                await self.terminate()
            finally:
                self.state = AgentState.STOPPED
            raise
        self.state = AgentState.RUNNING

    async def terminate(self) -> None:
        try:
            try:
                await self.gossip.stop()
            finally:
                await self.task_queue.stop()
        finally:
            self._terminate.clear()

    async def update_tags(self) -> None:
        """Advertise this node's condition tokens in the ``mamiya`` tag."""
        self.gossip.tags[STATUS_TAG] = format_status_tag(self.condition_tokens())

    def condition_tokens(self) -> tuple[str, ...]:
        tokens = tuple(token for token in (cond(self) for cond in self.tag_conditions) if token)
        return tokens or (READY,)

    def status(self, include_packages: bool = True) -> StatusSnapshot:
        """Returns agent status. Used for ``mamiya:status`` queries."""
        return StatusSnapshot(
            name=self.name,
            version=VERSION,
            queues=self.task_queue.status(),
            packages=self.existing_packages() if include_packages else None,
        )

    def existing_packages(self) -> dict[str, list[str]]:
        """Valid packages (tarball and json both present) by app name."""
        return existing_packages(self.config.packages_dir)

    async def trigger(
        self,
        type: str,
        action: str | None = None,
        coalesce: bool = True,
        payload: Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> None:
        """Broadcast ``mamiya:<type>[:<action>]`` with a payload and our node name.

        The payload is *payload* merged with *fields*; use *payload* for keys
        that collide with this method's own arguments.
        """
        await self.gossip.broadcast(
            event_name(type, action),
            self.codec.encode({**(payload or {}), **fields, "name": self.name}),
            coalesce=coalesce,
        )

    async def order_task(self, task: str, coalesce: bool = False, **payload: Any) -> None:
        """Ask every node to run *task* via ``mamiya:task``."""
        await self.trigger("task", coalesce=coalesce, task=task, **payload)

    async def distribute(self, app: str, package: str) -> None:
        """Ask every node to fetch *package* of *app*."""
        await self.order_task("fetch", app=app, pkg=package)

    async def _gossip_start(self) -> None:
        logger.debug("Starting gossip adapter")
        await self.gossip.start()
        await self.gossip.wait_until_ready(timeout=self.config.ready_timeout)
        self.gossip.auto_stop()
        logger.debug("Gossip adapter became ready")

    async def _task_queue_start(self) -> None:
        logger.debug("Starting task queue")
        await self.task_queue.start()

    async def _on_user_event(self, event: UserEvent) -> DispatchResult:
        return await self.router.dispatch(event)

    def _respond_status(self, query: Query) -> bytes:
        snapshot = self.status(include_packages=self.config.status_query_packages)
        return self.codec.encode(snapshot.to_dict())
