"""Builds normalized changes from logical change records.

One ChangeBuilder serves one stream. ``build`` is synchronous and keeps no
state between records; the metadata provider and converter are shared
read-only collaborators.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import structlog

from xstream_cdc.changes.chunks import drain_chunks
from xstream_cdc.changes.converter import ColumnValueConverter
from xstream_cdc.changes.models import (
    METADATA_COMMAND_KEY,
    METADATA_TRANSACTIONID_KEY,
    POSITION_KEY,
    Change,
    ChangeKey,
    ChangeType,
    ColumnValue,
)
from xstream_cdc.changes.offsets import source_offset
from xstream_cdc.errors import (
    ConversionError,
    DataConversionError,
    MetadataError,
    UnsupportedCommandError,
    ValidationError,
)
from xstream_cdc.metadata.base import ROWID_FIELD, TableMetadata, TableMetadataProvider
from xstream_cdc.sources.records import (
    ATTRIBUTE_ROW_ID,
    ChunkSource,
    CommandType,
    RawColumn,
    RowRecord,
)

logger = structlog.get_logger()

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)


def _epoch_millis(value: datetime) -> int:
    # Naive source times are local, matching DATE conversion.
    return (value.astimezone(UTC) - _EPOCH) // _ONE_MS


class ChangeBuilder:
    """Translates one row record at a time into a ``Change``."""

    def __init__(
        self,
        metadata_provider: TableMetadataProvider,
        converter: ColumnValueConverter | None = None,
        chunk_source: ChunkSource | None = None,
    ) -> None:
        self._metadata_provider = metadata_provider
        self._converter = converter or ColumnValueConverter()
        self._chunk_source = chunk_source

    def build(self, record: RowRecord | None) -> Change:
        """Build the change for *record*.

        Raises ValidationError, MetadataError, UnsupportedCommandError,
        DataConversionError or StreamDrainError; the record yields no change
        in any of those cases.
        """
        if record is None:
            raise ValidationError("row cannot be None.")
        if record.source_time is None:
            raise ValidationError("row.source_time cannot be None.")

        change_key = ChangeKey(
            record.source_database_name, record.object_owner, record.object_name
        )
        table_metadata = self._metadata_provider.table_metadata(change_key)
        if table_metadata is None:
            raise MetadataError(change_key)

        offset = source_offset(record.position)
        position = offset[POSITION_KEY]

        command_type = record.command_type
        columns = record.new_values
        if command_type == CommandType.INSERT:
            change_type = ChangeType.INSERT
        elif command_type == CommandType.UPDATE:
            change_type = ChangeType.UPDATE
        elif command_type == CommandType.DELETE:
            change_type = ChangeType.UPDATE
            columns = record.old_values
        else:
            raise UnsupportedCommandError(command_type)

        log = logger.bind(change_key=str(change_key), position=position)
        log.debug("change_builder.processing", columns=len(columns))

        value_columns: list[ColumnValue] = []
        key_columns: list[ColumnValue] = []
        for column in columns:
            column_value = self._column_value(
                change_key, position, table_metadata, column
            )
            value_columns.append(column_value)
            if column.column_name in table_metadata.key_columns:
                log.debug("change_builder.key_added", column=column.column_name)
                key_columns.append(column_value)

        if record.has_chunk_data:
            drained = drain_chunks(self._chunk_source, change_key, position)
            log.debug("change_builder.chunks_drained", chunks=drained)

        if table_metadata.has_row_id:
            row_id = self._row_id_column(record, table_metadata, position)
            value_columns.append(row_id)
            key_columns.append(row_id)

        change = Change(
            database_name=record.source_database_name,
            schema_name=record.object_owner,
            table_name=record.object_name,
            change_type=change_type,
            timestamp=_epoch_millis(record.source_time),
            metadata={
                METADATA_COMMAND_KEY: command_type,
                METADATA_TRANSACTIONID_KEY: record.transaction_id,
            },
            source_partition={},
            source_offset=offset,
            key_columns=key_columns,
            value_columns=value_columns,
        )
        log.debug(
            "change_builder.built",
            change_type=str(change_type),
            keys=len(key_columns),
            values=len(value_columns),
        )
        return change

    def _column_value(
        self,
        change_key: ChangeKey,
        position: str,
        table_metadata: TableMetadata,
        column: RawColumn,
    ) -> ColumnValue:
        schema = table_metadata.column_schemas.get(column.column_name)
        if schema is None:
            logger.warning(
                "change_builder.column_undeclared",
                change_key=str(change_key),
                position=position,
                column=column.column_name,
            )
        try:
            value = self._converter.convert(change_key, column)
        except ConversionError as exc:
            logger.error(
                "change_builder.conversion_failed",
                change_key=str(change_key),
                position=position,
                column=column.column_name,
                error=str(exc.cause),
            )
            raise DataConversionError(
                change_key, position, column.column_name, exc.cause
            ) from exc
        logger.debug(
            "change_builder.column_converted",
            change_key=str(change_key),
            position=position,
            column=column.column_name,
            schema=str(schema) if schema is not None else None,
        )
        return ColumnValue(column.column_name, schema, value)

    @staticmethod
    def _row_id_column(
        record: RowRecord, table_metadata: TableMetadata, position: str
    ) -> ColumnValue:
        row_id = record.get_attribute(ATTRIBUTE_ROW_ID)
        if row_id is None:
            msg = f"row='{position}' has no {ATTRIBUTE_ROW_ID} attribute"
            raise ValidationError(msg)
        if isinstance(row_id, bytes):
            row_id = row_id.decode("utf-8")
        return ColumnValue(
            ROWID_FIELD, table_metadata.column_schemas[ROWID_FIELD], str(row_id)
        )
