"""Test utilities for mamiya tests."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from pathlib import Path


async def retry_until(
    condition: Callable[[], bool | Awaitable[bool]],
    *,
    timeout: float = 5.0,
    interval: float = 0.01,
    message: str = "Condition not met within timeout",
) -> None:
    """Wait until a condition is met, with timeout.

    Raises:
        TimeoutError: If condition is not met within timeout
    """
    start = time.time()
    while time.time() - start < timeout:
        result = condition()

        if asyncio.iscoroutine(result):
            result = await result

        if result:
            return

        await asyncio.sleep(interval)
    raise TimeoutError(message)


def make_package(packages_dir: Path, app: str, package: str, *, tarball: bool = True, metadata: bool = True) -> None:
    """Create package files under ``packages_dir/app``."""
    app_dir = packages_dir / app
    app_dir.mkdir(parents=True, exist_ok=True)
    if tarball:
        (app_dir / f"{package}.tar.gz").write_bytes(b"tarball")
    if metadata:
        (app_dir / f"{package}.json").write_text('{"application": "%s"}' % app)
