"""Package registry scanning.

A package lives under ``<packages_dir>/<app>/`` as a tarball and a metadata
document sharing a base name::

    packages/
        blog/
            2024.01.02.tar.gz
            2024.01.02.json

Only pairs are valid.  The scan is recomputed on every call because the
filesystem is the source of truth and tasks mutate it concurrently.
"""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path

TARBALL_SUFFIX = ".tar.gz"
METADATA_SUFFIX = ".json"


def split_package_name(filename: str) -> tuple[str, str] | None:
    """Split ``"1.0.tar.gz"`` into ``("1.0", ".tar.gz")``.

    Returns ``None`` for files that are not package members.
    """
    for suffix in (TARBALL_SUFFIX, METADATA_SUFFIX):
        if filename.endswith(suffix) and len(filename) > len(suffix):
            return filename[: -len(suffix)], suffix
    return None


def package_paths(packages_dir: Path, app: str, package: str) -> tuple[Path, Path]:
    """Return the ``(tarball, metadata)`` paths for a package."""
    app_dir = packages_dir / app
    return app_dir / f"{package}{TARBALL_SUFFIX}", app_dir / f"{package}{METADATA_SUFFIX}"


def _list_dir(path: Path) -> list[Path]:
    try:
        return list(path.iterdir())
    except (FileNotFoundError, NotADirectoryError):
        return []


def _valid_packages(app_dir: Path) -> list[str]:
    suffixes_by_base: dict[str, set[str]] = defaultdict(set)
    for entry in _list_dir(app_dir):
        parts = split_package_name(entry.name)
        if parts is None:
            continue
        base, suffix = parts
        suffixes_by_base[base].add(suffix)

    return sorted(
        base
        for base, suffixes in suffixes_by_base.items()
        if TARBALL_SUFFIX in suffixes and METADATA_SUFFIX in suffixes
    )


def existing_packages(packages_dir: Path) -> dict[str, list[str]]:
    """Return valid package base names by app name.

    Every immediate subdirectory of *packages_dir* is an app and appears in
    the result, with an empty list when it holds no valid package.  A
    missing *packages_dir* yields ``{}``.

    Example:
        existing_packages(Path("packages"))  # {"blog": ["1.0", "1.1"]}
    """
    result: dict[str, list[str]] = {}
    for entry in sorted(_list_dir(packages_dir)):
        if not entry.is_dir():
            continue
        result[entry.name] = _valid_packages(entry)
    return result
