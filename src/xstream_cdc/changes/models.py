"""Normalized change model handed to change writers."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from xstream_cdc.errors import ValidationError
from xstream_cdc.metadata.base import ColumnSchema

POSITION_KEY = "position"
METADATA_COMMAND_KEY = "command"
METADATA_TRANSACTIONID_KEY = "transactionID"


class ChangeType(StrEnum):
    """Change types emitted downstream. Deletes are reported as updates."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"


@dataclass(frozen=True, slots=True)
class ChangeKey:
    """Identity of the table a change belongs to."""

    database_name: str
    schema_name: str
    table_name: str

    def __post_init__(self) -> None:
        for name in ("database_name", "schema_name", "table_name"):
            if not getattr(self, name):
                msg = f"ChangeKey.{name} cannot be empty."
                raise ValidationError(msg)

    def __str__(self) -> str:
        return f"{self.database_name}.{self.schema_name}.{self.table_name}"


@dataclass(frozen=True, slots=True)
class ColumnValue:
    """A single converted column.

    ``value`` is None for null columns; ``schema`` is None for columns the
    table metadata does not declare.
    """

    column_name: str
    schema: ColumnSchema | None
    value: Any = None


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, bytes):
        return value.hex()
    return value


@dataclass(frozen=True, slots=True)
class Change:
    """A normalized row change built from one logical change record."""

    database_name: str
    schema_name: str
    table_name: str
    change_type: ChangeType
    timestamp: int
    metadata: Mapping[str, str]
    source_offset: Mapping[str, Any]
    source_partition: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )
    key_columns: Sequence[ColumnValue] = ()
    value_columns: Sequence[ColumnValue] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))
        object.__setattr__(
            self, "source_offset", MappingProxyType(dict(self.source_offset))
        )
        object.__setattr__(
            self, "source_partition", MappingProxyType(dict(self.source_partition))
        )
        object.__setattr__(self, "key_columns", tuple(self.key_columns))
        object.__setattr__(self, "value_columns", tuple(self.value_columns))

    @property
    def change_key(self) -> ChangeKey:
        return ChangeKey(self.database_name, self.schema_name, self.table_name)

    @property
    def position(self) -> str:
        return str(self.source_offset[POSITION_KEY])

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly representation of the change."""
        return {
            "database": self.database_name,
            "schema": self.schema_name,
            "table": self.table_name,
            "change_type": str(self.change_type),
            "timestamp": self.timestamp,
            "metadata": dict(self.metadata),
            "source_partition": dict(self.source_partition),
            "source_offset": dict(self.source_offset),
            "key": {c.column_name: _jsonable(c.value) for c in self.key_columns},
            "value": {c.column_name: _jsonable(c.value) for c in self.value_columns},
            "schemas": {
                c.column_name: str(c.schema) if c.schema is not None else None
                for c in self.value_columns
            },
        }
