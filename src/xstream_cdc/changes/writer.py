"""Change writer protocol and a JSON-lines implementation."""

from __future__ import annotations

import json
from typing import IO, Protocol, runtime_checkable

from xstream_cdc.changes.models import Change


@runtime_checkable
class ChangeWriter(Protocol):
    """Receives each built change exactly once."""

    def write(self, change: Change) -> None:
        ...


class JsonLinesChangeWriter:
    """Writes one JSON document per change to a text stream."""

    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream
        self.written = 0

    def write(self, change: Change) -> None:
        self._stream.write(json.dumps(change.to_dict(), default=str))
        self._stream.write("\n")
        self.written += 1

    def flush(self) -> None:
        self._stream.flush()
