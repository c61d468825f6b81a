"""Short-lived connections back to the source database.

Time zone aware conversions and data-dictionary lookups need a live
session. Connections are opened for a single use and closed on every
exit path; nothing is cached between calls.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog

from xstream_cdc.config.models import SourceConfig

if TYPE_CHECKING:
    from xstream_cdc.changes.models import ChangeKey

logger = structlog.get_logger()


@runtime_checkable
class ConnectionProvider(Protocol):
    """Hands out DB-API connections scoped to a ``with`` block."""

    def connection(self, change_key: ChangeKey) -> AbstractContextManager[Any]:
        """Open a connection for work on behalf of *change_key*."""
        ...


class OracleConnectionProvider:
    """Opens a fresh ``oracledb`` connection per use."""

    def __init__(self, config: SourceConfig) -> None:
        self._config = config

    @contextmanager
    def connection(self, change_key: ChangeKey) -> Iterator[Any]:
        try:
            import oracledb
        except ImportError:
            msg = (
                "oracledb is required to open source connections. "
                "Install it with: pip install xstream-cdc[oracle]"
            )
            raise ImportError(msg) from None

        logger.debug(
            "source_connection.opening",
            change_key=str(change_key),
            dsn=self._config.dsn,
        )
        conn = oracledb.connect(
            user=self._config.username,
            password=self._config.password.get_secret_value(),
            dsn=self._config.dsn,
            tcp_connect_timeout=self._config.connect_timeout_seconds,
        )
        try:
            yield conn
        finally:
            try:
                conn.close()
            except Exception:
                logger.warning(
                    "source_connection.close_failed",
                    change_key=str(change_key),
                    exc_info=True,
                )
            logger.debug("source_connection.closed", change_key=str(change_key))
