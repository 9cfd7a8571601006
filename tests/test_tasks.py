"""Tests for the built-in tasks."""

from pathlib import Path

import pytest

from mamiya import Agent, AgentConfig, Clean, Fetch, FetchError, Task

from tests.conftest import RecordingGossip
from tests.utils import make_package


class CopyFetcher:
    """Fetcher writing package files, optionally leaving out the metadata."""

    def __init__(self, complete: bool = True):
        self.complete = complete
        self.fetched: list[tuple[str, str, Path]] = []

    async def fetch(self, app: str, package: str, destination: Path) -> None:
        self.fetched.append((app, package, destination))
        (destination / f"{package}.tar.gz").write_bytes(b"tarball")
        if self.complete:
            (destination / f"{package}.json").write_text("{}")


class Exploding(Task):
    identifier = "exploding"

    async def run(self) -> None:
        raise ValueError("disk full")


def make_agent(config: AgentConfig, gossip: RecordingGossip, **kwargs) -> Agent:
    return Agent(config, gossip, raise_errors=True, **kwargs)


class TestTaskNotifications:
    """Tests for Task.execute notifications."""

    @pytest.mark.asyncio
    async def test_start_and_finish(self, config, gossip: RecordingGossip):
        agent = make_agent(config, gossip)
        await Clean(agent, {"task": "clean"}).execute()

        names = [name for name, _ in gossip.decoded_broadcasts()]
        assert names == ["mamiya:task:start", "mamiya:task:finish"]
        _, payload = gossip.decoded_broadcasts()[0]
        assert payload == {"task": {"task": "clean"}, "name": "node-1"}
        assert all(coalesce is False for _, _, coalesce in gossip.broadcasts)

    @pytest.mark.asyncio
    async def test_error(self, config, gossip: RecordingGossip):
        agent = make_agent(config, gossip, task_classes=[Exploding])
        task = Exploding(agent, {"attempt": 1})

        await task.execute()

        assert isinstance(task.error, ValueError)
        name, payload = gossip.decoded_broadcasts()[-1]
        assert name == "mamiya:task:error"
        assert payload["error"] == "ValueError: disk full"
        assert payload["task"] == {"attempt": 1, "task": "exploding"}


class TestFetch:
    """Tests for the fetch task."""

    @pytest.mark.asyncio
    async def test_fetches_and_queues_clean(self, config, gossip: RecordingGossip, packages_dir: Path):
        fetcher = CopyFetcher()
        agent = make_agent(config, gossip, fetcher=fetcher)

        await Fetch(agent, {"app": "blog", "pkg": "1.0"}).execute()

        assert fetcher.fetched == [("blog", "1.0", packages_dir / "blog")]
        assert agent.existing_packages() == {"blog": ["1.0"]}
        names = [name for name, _ in gossip.decoded_broadcasts()]
        assert names == ["mamiya:task:start", "mamiya:pkg:fetch-success", "mamiya:task:finish"]
        assert agent.task_queue.status()["clean"]["queue"] == [{}]

    @pytest.mark.asyncio
    async def test_skips_existing_package(self, config, gossip: RecordingGossip, packages_dir: Path):
        make_package(packages_dir, "blog", "1.0")
        fetcher = CopyFetcher()
        agent = make_agent(config, gossip, fetcher=fetcher)

        await Fetch(agent, {"app": "blog", "pkg": "1.0"}).execute()

        assert fetcher.fetched == []
        assert gossip.decoded_broadcasts()[-1][0] == "mamiya:task:finish"

    @pytest.mark.asyncio
    async def test_incomplete_fetch_is_an_error(self, config, gossip: RecordingGossip):
        agent = make_agent(config, gossip, fetcher=CopyFetcher(complete=False))
        task = Fetch(agent, {"app": "blog", "pkg": "1.0"})

        await task.execute()

        assert isinstance(task.error, FetchError)
        assert gossip.decoded_broadcasts()[-1][0] == "mamiya:task:error"

    @pytest.mark.asyncio
    async def test_requires_fetcher(self, config, gossip: RecordingGossip):
        task = Fetch(make_agent(config, gossip), {"app": "blog", "pkg": "1.0"})

        await task.execute()

        assert isinstance(task.error, FetchError)
        assert "fetcher" in str(task.error)

    @pytest.mark.asyncio
    async def test_requires_app_and_pkg(self, config, gossip: RecordingGossip):
        task = Fetch(make_agent(config, gossip, fetcher=CopyFetcher()), {"app": "blog"})

        await task.execute()

        assert isinstance(task.error, FetchError)


class TestClean:
    """Tests for the clean task."""

    @pytest.mark.asyncio
    async def test_keeps_newest_packages(self, packages_dir: Path, gossip: RecordingGossip):
        config = AgentConfig(packages_dir=packages_dir, keep_packages=2)
        for package in ("1", "2", "3", "4"):
            make_package(packages_dir, "blog", package)
        make_package(packages_dir, "api", "1")
        agent = make_agent(config, gossip)

        await Clean(agent, {}).execute()

        assert agent.existing_packages() == {"api": ["1"], "blog": ["3", "4"]}
        assert not (packages_dir / "blog" / "1.tar.gz").exists()
        assert not (packages_dir / "blog" / "1.json").exists()
        removed = [
            (payload["app"], payload["pkg"])
            for name, payload in gossip.decoded_broadcasts()
            if name == "mamiya:pkg:remove"
        ]
        assert removed == [("blog", "1"), ("blog", "2")]

    @pytest.mark.asyncio
    async def test_leaves_incomplete_packages_alone(self, packages_dir: Path, gossip: RecordingGossip):
        config = AgentConfig(packages_dir=packages_dir, keep_packages=1)
        make_package(packages_dir, "blog", "0", metadata=False)
        make_package(packages_dir, "blog", "1")
        agent = make_agent(config, gossip)

        await Clean(agent, {}).execute()

        assert (packages_dir / "blog" / "0.tar.gz").exists()
        assert agent.existing_packages() == {"blog": ["1"]}
