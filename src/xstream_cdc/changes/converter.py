"""Native column value conversion.

Maps each native type tag to a conversion method. The set of tags is
closed; anything without a dedicated converter (including NUMBER) takes
the generic driver-value path.
"""

from __future__ import annotations

import struct
from collections.abc import Callable
from datetime import UTC, date, datetime, time
from typing import Any

import structlog

from xstream_cdc.changes.models import ChangeKey
from xstream_cdc.errors import ConversionError
from xstream_cdc.sources.connections import ConnectionProvider
from xstream_cdc.sources.records import NativeType, RawColumn

logger = structlog.get_logger()

_TIMESTAMPTZ_SQL = (
    "SELECT SYS_EXTRACT_UTC(TO_TIMESTAMP_TZ(:value, "
    "'YYYY-MM-DD HH24:MI:SS.FF TZR')) FROM DUAL"
)
_TIMESTAMPLTZ_SQL = (
    "SELECT SYS_EXTRACT_UTC(FROM_TZ(CAST(:value AS TIMESTAMP), DBTIMEZONE)) "
    "FROM DUAL"
)

Converter = Callable[[ChangeKey, RawColumn], Any]


def _tz_literal(datum: Any) -> str:
    if isinstance(datum, datetime) and datum.tzinfo is not None:
        offset = datum.strftime("%z")
        return datum.strftime("%Y-%m-%d %H:%M:%S.%f ") + f"{offset[:3]}:{offset[3:]}"
    if isinstance(datum, bytes):
        return datum.decode("utf-8")
    return str(datum)


class ColumnValueConverter:
    """Converts native column values into canonical Python values.

    ``connections`` is only needed for TIMESTAMPTZ / TIMESTAMPLTZ columns,
    which are resolved to UTC by the source database itself.
    """

    def __init__(self, connections: ConnectionProvider | None = None) -> None:
        self._connections = connections
        self._converters: dict[int, Converter] = {
            NativeType.BINARY_DOUBLE: self._to_double,
            NativeType.BINARY_FLOAT: self._to_float,
            NativeType.CHAR: self._to_string,
            NativeType.DATE: self._to_local_date,
            NativeType.TIMESTAMPLTZ: self._timestamp_ltz,
            NativeType.TIMESTAMPTZ: self._timestamp_tz,
        }

    def convert(self, change_key: ChangeKey, column: RawColumn) -> Any:
        """Convert *column* to its canonical value. Nulls convert to None."""
        if column.column_data is None:
            return None

        converter = self._converters.get(column.column_data_type, self._generic)
        try:
            return converter(change_key, column)
        except (ValueError, TypeError, ArithmeticError) as exc:
            raise ConversionError(column.column_name, exc) from exc

    def _to_double(self, change_key: ChangeKey, column: RawColumn) -> float:
        logger.debug(
            "converter.to_double", change_key=str(change_key), column=column.column_name
        )
        return float(column.column_data)

    def _to_float(self, change_key: ChangeKey, column: RawColumn) -> float:
        logger.debug(
            "converter.to_float", change_key=str(change_key), column=column.column_name
        )
        # Round to single precision.
        return struct.unpack("!f", struct.pack("!f", float(column.column_data)))[0]

    def _to_string(self, change_key: ChangeKey, column: RawColumn) -> str:
        logger.debug(
            "converter.to_string", change_key=str(change_key), column=column.column_name
        )
        datum = column.column_data
        if isinstance(datum, bytes):
            return datum.decode("utf-8")
        return str(datum)

    def _to_local_date(self, change_key: ChangeKey, column: RawColumn) -> datetime:
        """DATE carries no zone and is read in the local time zone, unlike TZ types."""
        logger.debug(
            "converter.to_datetime",
            change_key=str(change_key),
            column=column.column_name,
            zone="local",
        )
        datum = column.column_data
        if isinstance(datum, str):
            datum = datetime.fromisoformat(datum)
        elif isinstance(datum, date) and not isinstance(datum, datetime):
            datum = datetime.combine(datum, time())
        # astimezone() treats naive values as local time.
        return datum.astimezone(UTC)

    def _timestamp_ltz(self, change_key: ChangeKey, column: RawColumn) -> datetime:
        logger.debug(
            "converter.to_datetime",
            change_key=str(change_key),
            column=column.column_name,
            zone="session",
        )
        return self._resolve_utc(change_key, column, _TIMESTAMPLTZ_SQL, column.column_data)

    def _timestamp_tz(self, change_key: ChangeKey, column: RawColumn) -> datetime:
        logger.debug(
            "converter.to_datetime",
            change_key=str(change_key),
            column=column.column_name,
            zone="column",
        )
        return self._resolve_utc(
            change_key, column, _TIMESTAMPTZ_SQL, _tz_literal(column.column_data)
        )

    def _resolve_utc(
        self, change_key: ChangeKey, column: RawColumn, sql: str, value: Any
    ) -> datetime:
        if self._connections is None:
            raise ConversionError(
                column.column_name,
                "a source connection is required for time zone aware columns",
            )
        try:
            with self._connections.connection(change_key) as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(sql, {"value": value})
                    row = cursor.fetchone()
                finally:
                    cursor.close()
        except Exception as exc:
            logger.warning(
                "converter.resolve_failed",
                change_key=str(change_key),
                column=column.column_name,
                error=str(exc),
                exc_info=True,
            )
            raise ConversionError(column.column_name, exc) from exc

        if row is None or row[0] is None:
            raise ConversionError(column.column_name, "source returned no value")
        resolved: datetime = row[0]
        if resolved.tzinfo is None:
            return resolved.replace(tzinfo=UTC)
        return resolved.astimezone(UTC)

    def _generic(self, change_key: ChangeKey, column: RawColumn) -> Any:
        # NUMBER lands here as well; the driver's Decimal/int is passed through.
        logger.debug(
            "converter.driver_value",
            change_key=str(change_key),
            column=column.column_name,
            type=column.column_data_type,
        )
        datum = column.column_data
        if not hasattr(datum, "read"):
            return datum
        try:
            return datum.read()
        except Exception as exc:
            # LOB locators read through the driver, whose errors share no base.
            logger.warning(
                "converter.lob_read_failed",
                change_key=str(change_key),
                column=column.column_name,
                exc_info=True,
            )
            raise ConversionError(column.column_name, exc) from exc
