"""Node status snapshot and the ``mamiya`` tag format."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

STATUS_TAG = "mamiya"
READY = "ready"


@dataclass(frozen=True, slots=True)
class StatusSnapshot:
    """Point-in-time view of a node, served to ``mamiya:status`` queries.

    ``packages`` is ``None`` when the snapshot was taken without scanning
    the package directory, and is then omitted from :meth:`to_dict`.
    """

    name: str
    version: str
    queues: dict[str, Any]
    packages: dict[str, list[str]] | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "queues": self.queues,
        }
        if self.packages is not None:
            result["packages"] = self.packages
        return result


def format_status_tag(tokens: Iterable[str]) -> str:
    """Join condition tokens into the advertised tag value.

    The value is comma-delimited with a leading and trailing comma, so
    peers can test membership with ``",ready," in tag`` regardless of
    position.  Duplicates are dropped, first occurrence wins.  No tokens
    means ``","``.

    Examples:
        format_status_tag(["ready"])  # ",ready,"
        format_status_tag(["fetching", "ready", "fetching"])  # ",fetching,ready,"
    """
    ordered = list(dict.fromkeys(token for token in tokens if token))
    return "," + "".join(f"{token}," for token in ordered)


def parse_status_tag(value: str) -> tuple[str, ...]:
    """Inverse of :func:`format_status_tag`."""
    return tuple(token for token in value.split(",") if token)
