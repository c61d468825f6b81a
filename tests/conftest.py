"""Shared fixtures for unit tests."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest
import structlog

from xstream_cdc.metadata.base import ColumnSchema, SchemaType, TableMetadata
from xstream_cdc.metadata.static import StaticTableMetadataProvider

from .helpers import KEY


@pytest.fixture
def table_metadata() -> TableMetadata:
    return TableMetadata(
        column_schemas={
            "ID": ColumnSchema(SchemaType.STRING, optional=False),
            "NAME": ColumnSchema(SchemaType.STRING),
            "SALARY": ColumnSchema(SchemaType.FLOAT64),
        },
        key_columns=frozenset({"ID"}),
    )


@pytest.fixture
def metadata_provider(table_metadata: TableMetadata) -> StaticTableMetadataProvider:
    return StaticTableMetadataProvider({KEY: table_metadata})


@pytest.fixture
def restore_logging() -> Iterator[None]:
    """Undo ``configure_logging`` so later tests see default structlog."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
