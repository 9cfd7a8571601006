"""Fetch a package into local storage."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from mamiya.errors import FetchError
from mamiya.packages import existing_packages
from mamiya.tasks.base import Task


class PackageFetcher(Protocol):
    """Transfers a package's tarball and metadata into *destination*.

    *destination* is ``<packages_dir>/<app>``; on success it must contain
    ``<package>.tar.gz`` and ``<package>.json``.
    """

    async def fetch(self, app: str, package: str, destination: Path) -> None: ...


class Fetch(Task):
    """Download ``pkg`` of ``app`` unless it is already present.

    Announces ``mamiya:pkg:fetch-success`` and queues a ``clean`` so old
    packages are pruned after each new one arrives.
    """

    identifier = "fetch"

    async def run(self) -> None:
        app = self.args.get("app")
        package = self.args.get("pkg")
        if not app or not package:
            raise FetchError(f"fetch requires app and pkg, got {self.args!r}")

        packages_dir = self.agent.config.packages_dir
        if package in existing_packages(packages_dir).get(app, []):
            self.logger.info("Skipping fetch: %s/%s already exists", app, package)
            return

        fetcher = self.agent.fetcher
        if fetcher is None:
            raise FetchError("no package fetcher configured on this agent")

        destination = packages_dir / app
        destination.mkdir(parents=True, exist_ok=True)

        self.logger.info("Fetching %s/%s", app, package)
        await fetcher.fetch(app, package, destination)

        if package not in existing_packages(packages_dir).get(app, []):
            raise FetchError(f"{app}/{package} is incomplete after fetch")

        self.logger.info("Fetched %s/%s", app, package)
        await self.agent.trigger(
            "pkg", action="fetch-success", coalesce=False, app=app, pkg=package,
        )
        if self.agent.task_queue.knows("clean"):
            self.agent.task_queue.submit("clean", {})
