"""Table metadata types and the provider protocol.

A provider maps a ChangeKey to the column schemas and key column set of
the captured table. The change builder treats providers as read-only and
potentially slow (they may query the source).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from xstream_cdc.changes.models import ChangeKey

ROWID_FIELD = "__ROWID"


class SchemaType(StrEnum):
    """Canonical column types a converted value may carry."""

    STRING = "string"
    BOOLEAN = "boolean"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    DECIMAL = "decimal"
    BYTES = "bytes"
    DATE = "date"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True, slots=True)
class ColumnSchema:
    """Canonical type descriptor for a single column."""

    type: SchemaType
    optional: bool = True
    name: str | None = None
    parameters: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", SchemaType(self.type))
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    def __hash__(self) -> int:
        return hash((self.type, self.optional, self.name, tuple(self.parameters.items())))

    def __str__(self) -> str:
        suffix = "" if self.optional else " not null"
        if self.parameters:
            params = ",".join(f"{k}={v}" for k, v in self.parameters.items())
            return f"{self.type}({params}){suffix}"
        return f"{self.type}{suffix}"

    @classmethod
    def from_value(cls, data: str | Mapping[str, Any]) -> ColumnSchema:
        """Build a schema from ``"string"`` or ``{"type": "decimal", ...}``."""
        if isinstance(data, str):
            return cls(type=SchemaType(data))
        return cls(
            type=SchemaType(data["type"]),
            optional=bool(data.get("optional", True)),
            name=data.get("name"),
            parameters={k: str(v) for k, v in (data.get("parameters") or {}).items()},
        )


@dataclass(frozen=True, slots=True)
class TableMetadata:
    """Column schemas and key column names for one table."""

    column_schemas: Mapping[str, ColumnSchema]
    key_columns: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "column_schemas", MappingProxyType(dict(self.column_schemas))
        )
        object.__setattr__(self, "key_columns", frozenset(self.key_columns))

    @property
    def has_row_id(self) -> bool:
        return ROWID_FIELD in self.column_schemas


@runtime_checkable
class TableMetadataProvider(Protocol):
    """Looks up the metadata for a captured table."""

    def table_metadata(self, change_key: ChangeKey) -> TableMetadata | None:
        """Return metadata for *change_key*, or None when the table is unknown."""
        ...
