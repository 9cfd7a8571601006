"""Payload codec for user events and query responses.

Peers exchange flat mappings.  JSON is the default wire encoding; msgpack
is available for clusters where every node is configured for it.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import msgpack

from mamiya.config import SerializerKind
from mamiya.errors import PayloadDecodeError


class PayloadCodec:
    """Encode mappings to bytes and decode them back.

    Example:
        codec = PayloadCodec("json")
        data = codec.encode({"app": "blog"})
        codec.decode(data)  # {"app": "blog"}
    """

    def __init__(self, serializer: SerializerKind = "json") -> None:
        self.serializer = serializer

    def encode(self, payload: Mapping[str, Any]) -> bytes:
        match self.serializer:
            case "msgpack":
                return msgpack.packb(dict(payload), use_bin_type=True)
            case _:
                return json.dumps(dict(payload), separators=(",", ":")).encode()

    def decode(self, data: bytes | str | None) -> dict[str, Any]:
        """Decode *data* into a dict.

        Raises:
            PayloadDecodeError: If the bytes are not valid for the serializer
                or do not hold a mapping.
        """
        if data is None:
            raise PayloadDecodeError("payload is empty")

        try:
            match self.serializer:
                case "msgpack":
                    if isinstance(data, str):
                        data = data.encode()
                    value = msgpack.unpackb(data, raw=False)
                case _:
                    value = json.loads(data)
        except (ValueError, TypeError, RecursionError, msgpack.UnpackException) as e:
            raise PayloadDecodeError(f"unable to parse payload as {self.serializer}: {e}") from e

        if not isinstance(value, dict):
            raise PayloadDecodeError(
                f"payload must be a mapping, got {type(value).__name__}"
            )
        return value
