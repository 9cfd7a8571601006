"""Prune old packages from local storage."""

from __future__ import annotations

from mamiya.packages import existing_packages, package_paths
from mamiya.tasks.base import Task


class Clean(Task):
    """Keep the newest ``keep_packages`` valid packages per app.

    Package base names sort chronologically by convention, so the
    lexicographically smallest are removed first.  Each removal is
    announced as ``mamiya:pkg:remove``.
    """

    identifier = "clean"

    async def run(self) -> None:
        config = self.agent.config
        for app, packages in existing_packages(config.packages_dir).items():
            for package in packages[: max(len(packages) - config.keep_packages, 0)]:
                for path in package_paths(config.packages_dir, app, package):
                    path.unlink(missing_ok=True)
                self.logger.info("Removed %s/%s", app, package)
                await self.agent.trigger(
                    "pkg", action="remove", coalesce=False, app=app, pkg=package,
                )
