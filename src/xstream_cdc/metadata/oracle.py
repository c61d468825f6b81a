"""Metadata provider that reads the source data dictionary."""

from __future__ import annotations

from typing import Any

import structlog
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
)

from xstream_cdc.changes.models import ChangeKey
from xstream_cdc.config.models import MetadataConfig, RetryConfig
from xstream_cdc.metadata.base import (
    ROWID_FIELD,
    ColumnSchema,
    SchemaType,
    TableMetadata,
)
from xstream_cdc.sources.connections import ConnectionProvider

logger = structlog.get_logger()

COLUMNS_SQL = (
    "SELECT COLUMN_NAME, DATA_TYPE, DATA_PRECISION, DATA_SCALE, NULLABLE "
    "FROM ALL_TAB_COLUMNS "
    "WHERE OWNER = :owner AND TABLE_NAME = :table_name "
    "ORDER BY COLUMN_ID"
)
PRIMARY_KEY_SQL = (
    "SELECT cc.COLUMN_NAME "
    "FROM ALL_CONSTRAINTS c "
    "JOIN ALL_CONS_COLUMNS cc "
    "ON c.OWNER = cc.OWNER AND c.CONSTRAINT_NAME = cc.CONSTRAINT_NAME "
    "WHERE c.OWNER = :owner AND c.TABLE_NAME = :table_name "
    "AND c.CONSTRAINT_TYPE = 'P' "
    "ORDER BY cc.POSITION"
)

_STRING_TYPES = {
    "CHAR", "NCHAR", "VARCHAR2", "NVARCHAR2", "CLOB", "NCLOB", "LONG", "ROWID",
    "UROWID",
}
_BYTES_TYPES = {"RAW", "LONG RAW", "BLOB"}


def schema_for_column(
    data_type: str,
    precision: int | None,
    scale: int | None,
    nullable: bool = True,
) -> ColumnSchema:
    """Map a data-dictionary column type onto a ColumnSchema."""
    base_type = data_type.split("(", 1)[0].strip().upper()

    if base_type in _STRING_TYPES:
        schema_type = SchemaType.STRING
    elif base_type in _BYTES_TYPES:
        schema_type = SchemaType.BYTES
    elif base_type == "BINARY_FLOAT":
        schema_type = SchemaType.FLOAT32
    elif base_type in ("BINARY_DOUBLE", "FLOAT"):
        schema_type = SchemaType.FLOAT64
    elif base_type == "DATE" or base_type.startswith("TIMESTAMP"):
        # Oracle DATE carries a time of day.
        schema_type = SchemaType.TIMESTAMP
    elif base_type == "NUMBER":
        return _number_schema(precision, scale, nullable)
    else:
        logger.warning("oracle_metadata.unmapped_type", data_type=data_type)
        schema_type = SchemaType.STRING

    return ColumnSchema(type=schema_type, optional=nullable)


def _number_schema(
    precision: int | None, scale: int | None, nullable: bool
) -> ColumnSchema:
    if scale == 0 and precision is not None:
        if precision <= 2:
            return ColumnSchema(SchemaType.INT8, optional=nullable)
        if precision <= 4:
            return ColumnSchema(SchemaType.INT16, optional=nullable)
        if precision <= 9:
            return ColumnSchema(SchemaType.INT32, optional=nullable)
        if precision <= 18:
            return ColumnSchema(SchemaType.INT64, optional=nullable)
    parameters: dict[str, str] = {}
    if scale is not None:
        parameters["scale"] = str(scale)
    if precision is not None:
        parameters["precision"] = str(precision)
    return ColumnSchema(SchemaType.DECIMAL, optional=nullable, parameters=parameters)


class OracleTableMetadataProvider:
    """Looks up column types and primary keys in ALL_TAB_COLUMNS / ALL_CONSTRAINTS.

    Each lookup opens its own connection. Lookup failures are retried with
    exponential backoff per ``RetryConfig``; a table with no columns is
    reported as unknown.
    """

    def __init__(
        self,
        connections: ConnectionProvider,
        config: MetadataConfig | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._connections = connections
        self._config = config or MetadataConfig()
        self._retry = retry_config or RetryConfig()

    def table_metadata(self, change_key: ChangeKey) -> TableMetadata | None:
        owners = self._config.owners
        if owners and change_key.schema_name.upper() not in owners:
            logger.info(
                "oracle_metadata.owner_not_captured", change_key=str(change_key)
            )
            return None

        retry_cfg = self._retry

        @retry(
            stop=stop_after_attempt(retry_cfg.max_attempts),
            wait=wait_exponential_jitter(
                initial=retry_cfg.initial_wait_seconds,
                max=retry_cfg.max_wait_seconds,
                exp_base=retry_cfg.multiplier,
                jitter=retry_cfg.initial_wait_seconds if retry_cfg.jitter else 0,
            ),
            reraise=True,
        )
        def _lookup() -> tuple[list[tuple[Any, ...]], list[tuple[Any, ...]]]:
            try:
                return self._query(change_key)
            except Exception:
                logger.warning(
                    "oracle_metadata.lookup_failed",
                    change_key=str(change_key),
                    exc_info=True,
                )
                raise

        column_rows, key_rows = _lookup()
        if not column_rows:
            logger.warning("oracle_metadata.table_not_found", change_key=str(change_key))
            return None

        schemas: dict[str, ColumnSchema] = {}
        for name, data_type, precision, scale, nullable in column_rows:
            schemas[name] = schema_for_column(
                data_type, precision, scale, nullable == "Y"
            )
        if self._config.include_row_id:
            schemas[ROWID_FIELD] = ColumnSchema(SchemaType.STRING, optional=False)

        key_columns = frozenset(row[0] for row in key_rows)
        logger.info(
            "oracle_metadata.loaded",
            change_key=str(change_key),
            columns=len(schemas),
            keys=sorted(key_columns),
        )
        return TableMetadata(schemas, key_columns)

    def _query(
        self, change_key: ChangeKey
    ) -> tuple[list[tuple[Any, ...]], list[tuple[Any, ...]]]:
        binds = {"owner": change_key.schema_name, "table_name": change_key.table_name}
        with self._connections.connection(change_key) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(COLUMNS_SQL, binds)
                column_rows = list(cursor.fetchall())
                cursor.execute(PRIMARY_KEY_SQL, binds)
                key_rows = list(cursor.fetchall())
            finally:
                cursor.close()
        return column_rows, key_rows
