"""Metadata provider backed by an in-memory mapping or a YAML file.

YAML layout::

    tables:
      - database: ORCL
        schema: HR
        table: EMPLOYEES
        key_columns: [EMPLOYEE_ID]
        columns:
          EMPLOYEE_ID: {type: decimal, optional: false, parameters: {scale: "0"}}
          FIRST_NAME: string
          HIRE_DATE: timestamp
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from xstream_cdc.changes.models import ChangeKey
from xstream_cdc.config.loader import read_document
from xstream_cdc.metadata.base import ColumnSchema, TableMetadata


class StaticTableMetadataProvider:
    """Serves metadata registered up front."""

    def __init__(self, tables: Mapping[ChangeKey, TableMetadata] | None = None) -> None:
        self._tables: dict[ChangeKey, TableMetadata] = dict(tables or {})

    def register(self, change_key: ChangeKey, metadata: TableMetadata) -> None:
        self._tables[change_key] = metadata

    def table_metadata(self, change_key: ChangeKey) -> TableMetadata | None:
        return self._tables.get(change_key)

    def __len__(self) -> int:
        return len(self._tables)

    @classmethod
    def from_entries(cls, entries: Iterable[Mapping[str, Any]]) -> StaticTableMetadataProvider:
        provider = cls()
        for entry in entries:
            try:
                key = ChangeKey(entry["database"], entry["schema"], entry["table"])
                columns = entry.get("columns") or {}
            except KeyError as exc:
                msg = f"Table metadata entry is missing {exc}"
                raise ValueError(msg) from exc
            schemas = {
                name: ColumnSchema.from_value(spec) for name, spec in columns.items()
            }
            key_columns = frozenset(entry.get("key_columns") or ())
            undeclared = key_columns - schemas.keys()
            if undeclared:
                msg = f"{key}: key columns {sorted(undeclared)} have no column schema"
                raise ValueError(msg)
            provider.register(key, TableMetadata(schemas, key_columns))
        return provider

    @classmethod
    def from_yaml(cls, path: str | Path) -> StaticTableMetadataProvider:
        data = read_document(path, "Metadata")
        return cls.from_entries(data.get("tables") or [])
