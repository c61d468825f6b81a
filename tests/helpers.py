"""Record and connection builders shared by unit tests."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

from xstream_cdc.changes.models import ChangeKey
from xstream_cdc.sources.records import ColumnData, NativeType, RowChange

KEY = ChangeKey("ORCL", "HR", "EMPLOYEES")


def make_record(
    command: str = "INSERT",
    new_values: list[ColumnData] | None = None,
    old_values: list[ColumnData] | None = None,
    position: bytes = b"\x01\x02",
    **kwargs: Any,
) -> RowChange:
    if new_values is None:
        new_values = [ColumnData("ID", NativeType.CHAR, "42")]
    return RowChange(
        source_database_name=kwargs.pop("database", KEY.database_name),
        object_owner=kwargs.pop("owner", KEY.schema_name),
        object_name=kwargs.pop("table", KEY.table_name),
        command_type=command,
        source_time=kwargs.pop("source_time", datetime(2024, 5, 1, 12, 0, tzinfo=UTC)),
        position=position,
        transaction_id=kwargs.pop("transaction_id", "1.2.3"),
        new_values=new_values,
        old_values=old_values or [],
        **kwargs,
    )


class FakeConnections:
    """ConnectionProvider handing out a MagicMock connection."""

    def __init__(self, row: tuple[Any, ...] | None = None) -> None:
        self.conn = MagicMock()
        self.cursor = self.conn.cursor.return_value
        self.cursor.fetchone.return_value = row
        self.opened = 0
        self.closed = 0
        self.fail_on_open: Exception | None = None

    @contextmanager
    def connection(self, change_key: ChangeKey) -> Iterator[Any]:
        if self.fail_on_open is not None:
            raise self.fail_on_open
        self.opened += 1
        try:
            yield self.conn
        finally:
            self.closed += 1
