"""Raw logical change record interface.

The capture loop hands the change builder objects satisfying ``RowRecord``.
``RowChange`` is a plain in-memory implementation used when records are
replayed from JSON lines (``xstream-cdc translate``) and in tests.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Protocol, runtime_checkable

from xstream_cdc.errors import ValidationError

ATTRIBUTE_ROW_ID = "ROW_ID"


class NativeType(IntEnum):
    """Native column data type tags reported with each column value."""

    NUMBER = 2
    DATE = 12
    RAW = 23
    CHAR = 96
    BINARY_FLOAT = 100
    BINARY_DOUBLE = 101
    CLOB = 112
    BLOB = 113
    TIMESTAMP = 180
    TIMESTAMPTZ = 181
    INTERVALYM = 182
    INTERVALDS = 183
    TIMESTAMPLTZ = 231


class CommandType:
    """Command keywords reported by the stream."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOB_WRITE = "LOB WRITE"
    LOB_TRIM = "LOB TRIM"
    LOB_ERASE = "LOB ERASE"


_DATETIME_TYPES = (NativeType.DATE, NativeType.TIMESTAMP, NativeType.TIMESTAMPLTZ)


@runtime_checkable
class RawColumn(Protocol):
    column_name: str
    column_data_type: int
    column_data: Any


@runtime_checkable
class ChunkColumn(Protocol):
    column_name: str
    is_last_chunk: bool


@runtime_checkable
class ChunkSource(Protocol):
    """Upstream stream handle that yields trailing chunk payloads."""

    def receive_chunk(self) -> ChunkColumn:
        """Block until the next chunk of the current record is available."""
        ...


@runtime_checkable
class RowRecord(Protocol):
    """A single row-level logical change record."""

    source_database_name: str
    object_owner: str
    object_name: str
    source_time: datetime | None
    position: bytes
    command_type: str
    transaction_id: str
    new_values: Sequence[RawColumn]
    old_values: Sequence[RawColumn]
    has_chunk_data: bool

    def get_attribute(self, name: str) -> Any:
        """Return a native record attribute such as the row id, or None."""
        ...


@dataclass(slots=True)
class ColumnData:
    column_name: str
    column_data_type: int
    column_data: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ColumnData:
        type_tag = data["type"]
        if isinstance(type_tag, str):
            try:
                type_tag = NativeType[type_tag.upper()]
            except KeyError:
                msg = f"unknown column type {type_tag!r}"
                raise ValueError(msg) from None
        value = data.get("value")
        if value is not None and type_tag in _DATETIME_TYPES:
            value = datetime.fromisoformat(value)
        elif value is not None and type_tag in (NativeType.RAW, NativeType.BLOB):
            value = bytes.fromhex(value)
        return cls(
            column_name=data["name"],
            column_data_type=int(type_tag),
            column_data=value,
        )


@dataclass(slots=True)
class ChunkData:
    column_name: str
    is_last_chunk: bool = False
    column_data: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ChunkData:
        try:
            return cls(data["name"], bool(data.get("last", False)))
        except (KeyError, TypeError) as exc:
            msg = f"Invalid chunk entry {data!r}: {exc!r}"
            raise ValidationError(msg) from exc


class ChunkQueue:
    """ChunkSource over chunks queued ahead of the record that owns them."""

    def __init__(self, chunks: Iterable[ChunkColumn] = ()) -> None:
        self._chunks: deque[ChunkColumn] = deque(chunks)
        self.received = 0

    def extend(self, chunks: Iterable[ChunkColumn]) -> None:
        self._chunks.extend(chunks)

    def clear(self) -> None:
        self._chunks.clear()

    def __len__(self) -> int:
        return len(self._chunks)

    def receive_chunk(self) -> ChunkColumn:
        if not self._chunks:
            msg = "chunk stream exhausted before the last chunk"
            raise EOFError(msg)
        self.received += 1
        return self._chunks.popleft()


@dataclass(slots=True)
class RowChange:
    """In-memory row change record."""

    source_database_name: str
    object_owner: str
    object_name: str
    command_type: str
    source_time: datetime | None
    position: bytes
    transaction_id: str = ""
    new_values: Sequence[RawColumn] = field(default_factory=list)
    old_values: Sequence[RawColumn] = field(default_factory=list)
    has_chunk_data: bool = False
    attributes: dict[str, Any] = field(default_factory=dict)

    def get_attribute(self, name: str) -> Any:
        return self.attributes.get(name)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RowChange:
        """Build a record from its JSON form.

        ``position`` is hex text, ``source_time`` ISO-8601 and each column
        ``{"name": ..., "type": "CHAR", "value": ...}``. Missing fields and
        unparseable values raise ValidationError.
        """
        try:
            source_time = data.get("source_time")
            attributes = dict(data.get("attributes") or {})
            if "row_id" in data:
                attributes[ATTRIBUTE_ROW_ID] = data["row_id"]
            return cls(
                source_database_name=data["database"],
                object_owner=data["owner"],
                object_name=data["table"],
                command_type=data["command"],
                source_time=datetime.fromisoformat(source_time) if source_time else None,
                position=bytes.fromhex(data.get("position", "")),
                transaction_id=data.get("transaction_id", ""),
                new_values=[ColumnData.from_dict(c) for c in data.get("new_values", [])],
                old_values=[ColumnData.from_dict(c) for c in data.get("old_values", [])],
                has_chunk_data=bool(data.get("chunks")),
                attributes=attributes,
            )
        except KeyError as exc:
            msg = f"Record is missing field {exc}"
            raise ValidationError(msg) from exc
        except (ValueError, TypeError, AttributeError) as exc:
            msg = f"Record has an invalid value: {exc}"
            raise ValidationError(msg) from exc
