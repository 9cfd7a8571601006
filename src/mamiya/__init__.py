"""mamiya - per-node agent for gossip-coordinated package deployment.

Each node runs one ``Agent``.  Agents exchange ``mamiya:*`` user events
over a gossip transport, advertise their health in the ``mamiya`` tag, and
answer ``mamiya:status`` queries with a snapshot of their task queue and
locally stored packages.

Basic usage:
    from mamiya import Agent, AgentConfig, LocalCluster, LocalGossip

    async def main():
        cluster = LocalCluster()
        agent = Agent(AgentConfig(packages_dir=Path("packages")), LocalGossip(cluster, "app-01"))
        await agent.start()
        await agent.distribute("blog", "2024.01.02")
        ...
        await agent.terminate()
"""

from mamiya.agent import STATUS_QUERY, Agent, AgentState
from mamiya.codec import PayloadCodec
from mamiya.config import AgentConfig, discover_config, load_config
from mamiya.errors import (
    ConfigError,
    FetchError,
    GossipError,
    MamiyaError,
    PayloadDecodeError,
    UnknownTaskError,
)
from mamiya.gossip import GossipAdapter, LocalCluster, LocalGossip, Query, UserEvent
from mamiya.handlers import Handler, HandlerRegistry, action, default_handlers
from mamiya.packages import existing_packages
from mamiya.patterns import EventFilter
from mamiya.router import DispatchResult, EventRouter, ParsedCommand
from mamiya.status import StatusSnapshot, format_status_tag, parse_status_tag
from mamiya.task_queue import TaskQueue
from mamiya.tasks import Clean, Fetch, PackageFetcher, Task
from mamiya.version import VERSION

__version__ = VERSION

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentState",
    "Clean",
    "ConfigError",
    "DispatchResult",
    "EventFilter",
    "EventRouter",
    "Fetch",
    "FetchError",
    "GossipAdapter",
    "GossipError",
    "Handler",
    "HandlerRegistry",
    "LocalCluster",
    "LocalGossip",
    "MamiyaError",
    "PackageFetcher",
    "ParsedCommand",
    "PayloadCodec",
    "PayloadDecodeError",
    "Query",
    "STATUS_QUERY",
    "StatusSnapshot",
    "Task",
    "TaskQueue",
    "UnknownTaskError",
    "UserEvent",
    "VERSION",
    "action",
    "default_handlers",
    "discover_config",
    "existing_packages",
    "format_status_tag",
    "load_config",
    "parse_status_tag",
]
