"""Draining of trailing chunked column data.

Large column values (LOBs, long text) follow their row record as a series
of chunks. The chunk content is not attached to the change, but every
chunk has to be read so the stream is positioned at the next record.
"""

from __future__ import annotations

import structlog

from xstream_cdc.changes.models import ChangeKey
from xstream_cdc.errors import StreamDrainError
from xstream_cdc.sources.records import ChunkSource

logger = structlog.get_logger()


def drain_chunks(
    source: ChunkSource | None, change_key: ChangeKey, position: str
) -> int:
    """Read chunks from *source* up to and including the last one.

    Returns the number of chunks consumed.
    """
    if source is None:
        raise StreamDrainError(
            change_key, position, "record has chunk data but no chunk source is set"
        )

    received = 0
    while True:
        logger.debug(
            "chunk_drain.receiving",
            change_key=str(change_key),
            position=position,
            chunk=received + 1,
        )
        try:
            chunk = source.receive_chunk()
        except Exception as exc:
            logger.error(
                "chunk_drain.failed",
                change_key=str(change_key),
                position=position,
                received=received,
                error=str(exc),
            )
            raise StreamDrainError(change_key, position, str(exc)) from exc
        received += 1
        logger.debug(
            "chunk_drain.received",
            change_key=str(change_key),
            position=position,
            column=getattr(chunk, "column_name", None),
            last=chunk.is_last_chunk,
        )
        if chunk.is_last_chunk:
            return received
