"""TOML-based configuration for the mamiya agent.

Provides ``load_config`` / ``discover_config`` for loading the ``[agent]``
table of ``mamiya.toml`` into a frozen ``AgentConfig``.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Literal, TypeAlias

from mamiya.errors import ConfigError


__all__ = [
    "AgentConfig",
    "SerializerKind",
    "discover_config",
    "load_config",
]


SerializerKind: TypeAlias = Literal["json", "msgpack"]

_SERIALIZERS: frozenset[str] = frozenset({"json", "msgpack"})


@dataclass(frozen=True)
class AgentConfig:
    """Settings for a single agent process.

    Parameters
    ----------
    packages_dir : Path
        Directory holding ``<app>/<package>.tar.gz`` and ``.json`` pairs.
    keep_packages : int
        Valid packages retained per app by the ``clean`` task.
    poll_interval : float
        Seconds between checks of the termination flag in ``Agent.run``.
    ready_timeout : float | None
        Seconds to wait for the gossip adapter to become ready.
        ``None`` waits forever.
    task_stop_timeout : float
        Seconds ``TaskQueue.stop`` lets running tasks finish before
        cancelling them.
    status_query_packages : bool
        Whether the ``mamiya:status`` query response includes packages.
    serializer : SerializerKind
        Encoding of event and query payloads: ``"json"`` or ``"msgpack"``.

    Examples
    --------
    >>> AgentConfig(packages_dir=Path("/var/lib/mamiya/packages"))
    AgentConfig(packages_dir=PosixPath('/var/lib/mamiya/packages'), ...)
    """

    packages_dir: Path
    keep_packages: int = 3
    poll_interval: float = 1.0
    ready_timeout: float | None = 30.0
    task_stop_timeout: float = 10.0
    status_query_packages: bool = True
    serializer: SerializerKind = "json"

    def __post_init__(self) -> None:
        if not isinstance(self.packages_dir, Path):
            object.__setattr__(self, "packages_dir", Path(self.packages_dir))
        if self.serializer not in _SERIALIZERS:
            msg = f"serializer must be one of {sorted(_SERIALIZERS)}, got {self.serializer!r}"
            raise ConfigError(msg)
        if self.keep_packages < 1:
            msg = f"keep_packages must be at least 1, got {self.keep_packages}"
            raise ConfigError(msg)
        if self.poll_interval <= 0:
            msg = f"poll_interval must be positive, got {self.poll_interval}"
            raise ConfigError(msg)


def discover_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``mamiya.toml``.

    Parameters
    ----------
    start : Path | None
        Directory to start searching from.

    Returns
    -------
    Path | None
        Path to the discovered config file, or ``None`` if not found.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / "mamiya.toml"
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(path: Path | None = None) -> AgentConfig:
    """Load an ``AgentConfig`` from the ``[agent]`` table of a TOML file.

    If *path* is ``None``, auto-discovers ``mamiya.toml`` by walking up from
    the current working directory.

    Parameters
    ----------
    path : Path | None
        Explicit path to a TOML config file.

    Returns
    -------
    AgentConfig

    Raises
    ------
    FileNotFoundError
        If no file is given and none is discovered, or the given one is missing.
    ConfigError
        If the file is not valid TOML, lacks ``packages_dir``, or holds
        unknown keys.

    Examples
    --------
    >>> config = load_config(Path("mamiya.toml"))
    >>> config.keep_packages
    3
    """
    if path is None:
        path = discover_config()
        if path is None:
            msg = "mamiya.toml not found in the current directory or its parents"
            raise FileNotFoundError(msg)

    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        try:
            raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"{path}: {e}") from e

    agent_raw: dict[str, Any] = raw.get("agent", {})
    if "packages_dir" not in agent_raw:
        raise ConfigError(f"{path}: [agent] packages_dir is required")

    known = {f.name for f in fields(AgentConfig)}
    unknown = sorted(set(agent_raw) - known)
    if unknown:
        raise ConfigError(f"{path}: unknown [agent] keys: {', '.join(unknown)}")

    packages_dir = Path(agent_raw["packages_dir"])
    if not packages_dir.is_absolute():
        packages_dir = path.parent / packages_dir

    return AgentConfig(**{**agent_raw, "packages_dir": packages_dir})
