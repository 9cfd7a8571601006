"""Shared fixtures and fakes for mamiya tests."""

import json
from pathlib import Path
from typing import Any

import pytest

from mamiya import Agent, AgentConfig, GossipError, LocalCluster, LocalGossip, UserEvent


class RecordingGossip:
    """Gossip adapter fake that records every call made by the agent."""

    def __init__(self, name: str = "node-1", *, fail_start: bool = False, never_ready: bool = False):
        self._name = name
        self._tags: dict[str, str] = {}
        self.fail_start = fail_start
        self.never_ready = never_ready
        self.calls: list[str] = []
        self.broadcasts: list[tuple[str, bytes, bool]] = []
        self.callbacks: list[Any] = []
        self.responders: dict[str, Any] = {}
        self.started = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def tags(self) -> dict[str, str]:
        return self._tags

    async def start(self) -> None:
        self.calls.append("start")
        if self.fail_start:
            raise GossipError("unable to join cluster")
        self.started = True

    async def stop(self) -> None:
        self.calls.append("stop")
        self.started = False

    async def wait_until_ready(self, timeout: float | None = None) -> None:
        self.calls.append("wait_until_ready")
        if self.never_ready:
            raise GossipError(f"not ready within {timeout}s")

    def auto_stop(self) -> None:
        self.calls.append("auto_stop")

    def on_user_event(self, callback) -> None:
        self.callbacks.append(callback)

    async def broadcast(self, name: str, payload: bytes, *, coalesce: bool = True) -> None:
        self.broadcasts.append((name, payload, coalesce))

    def respond(self, query_name: str, responder) -> None:
        self.responders[query_name] = responder

    async def deliver(self, name: str, payload: Any = None) -> list[Any]:
        """Deliver a user event to every callback; dicts are JSON-encoded."""
        if payload is None:
            payload = {}
        if not isinstance(payload, bytes):
            payload = json.dumps(payload).encode()
        event = UserEvent(name=name, payload=payload, origin="peer")
        return [await callback(event) for callback in self.callbacks]

    def decoded_broadcasts(self) -> list[tuple[str, dict[str, Any]]]:
        return [(name, json.loads(payload)) for name, payload, _ in self.broadcasts]

    def count(self, call: str) -> int:
        return self.calls.count(call)


@pytest.fixture
def packages_dir(tmp_path: Path) -> Path:
    path = tmp_path / "packages"
    path.mkdir()
    return path


@pytest.fixture
def config(packages_dir: Path) -> AgentConfig:
    return AgentConfig(packages_dir=packages_dir, poll_interval=0.05, ready_timeout=1.0, task_stop_timeout=1.0)


@pytest.fixture
def gossip() -> RecordingGossip:
    return RecordingGossip()


@pytest.fixture
def agent(config: AgentConfig, gossip: RecordingGossip) -> Agent:
    return Agent(config, gossip, raise_errors=True)


@pytest.fixture
async def cluster():
    """A local cluster; every node still running at teardown is stopped."""
    local = LocalCluster()
    yield local
    for member in list(local.members.values()):
        await member.stop()


@pytest.fixture
def local_gossip(cluster: LocalCluster) -> LocalGossip:
    return LocalGossip(cluster, "node-1")
