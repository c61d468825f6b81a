"""Typer CLI for the change translator."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import structlog
import typer
from rich.console import Console

from xstream_cdc.changes.builder import ChangeBuilder
from xstream_cdc.changes.converter import ColumnValueConverter
from xstream_cdc.changes.writer import JsonLinesChangeWriter
from xstream_cdc.config.loader import load_connector_config
from xstream_cdc.config.models import ConnectorConfig
from xstream_cdc.errors import ChangeError, ValidationError
from xstream_cdc.logs import configure_logging
from xstream_cdc.metadata.base import TableMetadataProvider
from xstream_cdc.metadata.cache import CachingTableMetadataProvider
from xstream_cdc.metadata.oracle import OracleTableMetadataProvider
from xstream_cdc.metadata.static import StaticTableMetadataProvider
from xstream_cdc.sources.connections import OracleConnectionProvider
from xstream_cdc.sources.records import ChunkData, ChunkQueue, RowChange

logger = structlog.get_logger()
console = Console(stderr=True)
app = typer.Typer(name="xstream-cdc", help="XStream CDC change translator")


def _load(config_path: str | None) -> ConnectorConfig:
    if config_path is not None and not Path(config_path).exists():
        console.print(f"[red]Config file not found: {config_path}[/red]")
        raise typer.Exit(1)
    return load_connector_config(config_path)


def _metadata_provider(
    config: ConnectorConfig, metadata_path: str | None
) -> TableMetadataProvider:
    if metadata_path is not None:
        return StaticTableMetadataProvider.from_yaml(metadata_path)
    if config.source is None:
        console.print(
            "[red]Either --metadata or a source section in the config is required[/red]"
        )
        raise typer.Exit(1)
    provider = OracleTableMetadataProvider(
        OracleConnectionProvider(config.source), config.metadata, config.retry
    )
    return CachingTableMetadataProvider(provider, config.metadata.cache_ttl_seconds)


def _parse_line(line: str) -> tuple[RowChange, list[ChunkData]]:
    try:
        data = json.loads(line)
    except json.JSONDecodeError as exc:
        msg = f"Not a JSON record: {exc}"
        raise ValidationError(msg) from exc
    if not isinstance(data, dict):
        msg = f"Expected a JSON object, got {type(data).__name__}"
        raise ValidationError(msg)
    chunks = [ChunkData.from_dict(c) for c in data.get("chunks") or []]
    return RowChange.from_dict(data), chunks


@app.command()
def validate(
    config_path: str = typer.Argument(..., help="Path to connector YAML"),
) -> None:
    """Validate a connector configuration file."""
    try:
        config = _load(config_path)
    except (ValueError, TypeError, FileNotFoundError) as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        raise typer.Exit(1) from exc

    console.print(f"[green]Valid[/green]: connector_id={config.connector_id}")
    if config.source is not None:
        console.print(f"  source:   {config.source.dsn} as {config.source.username}")
    else:
        console.print("  source:   (none, time zone aware columns unavailable)")
    console.print(f"  metadata: cache_ttl={config.metadata.cache_ttl_seconds}s")
    console.print(f"  row id:   {config.metadata.include_row_id}")
    console.print(f"  logging:  {config.logging.level} ({config.logging.format})")


@app.command()
def translate(
    records_path: str = typer.Argument(..., help="JSON-lines file of raw records"),
    metadata_path: str | None = typer.Option(
        None, "--metadata", help="Table metadata YAML"
    ),
    config_path: str | None = typer.Option(None, "--config", help="Connector YAML"),
    output_path: str | None = typer.Option(
        None, "--output", help="Write changes here instead of stdout"
    ),
    fail_fast: bool = typer.Option(
        True, "--fail-fast/--skip-errors", help="Stop at the first bad record"
    ),
) -> None:
    """Translate raw change records into normalized changes (JSON lines)."""
    try:
        config = _load(config_path)
        configure_logging(config.logging)
        metadata_provider = _metadata_provider(config, metadata_path)
    except (ValueError, TypeError, FileNotFoundError) as exc:
        console.print(f"[red]Setup error:[/red] {exc}")
        raise typer.Exit(1) from exc

    records = Path(records_path)
    if not records.exists():
        console.print(f"[red]Records file not found: {records}[/red]")
        raise typer.Exit(1)

    connections = (
        OracleConnectionProvider(config.source) if config.source is not None else None
    )
    chunks = ChunkQueue()
    builder = ChangeBuilder(
        metadata_provider,
        ColumnValueConverter(connections),
        chunk_source=chunks,
    )

    out = open(output_path, "w") if output_path else sys.stdout  # noqa: SIM115
    writer = JsonLinesChangeWriter(out)
    skipped = 0
    try:
        with records.open() as f:
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    record, record_chunks = _parse_line(line)
                    chunks.extend(record_chunks)
                    change = builder.build(record)
                except ChangeError as exc:
                    if fail_fast:
                        console.print(f"[red]line {line_no}:[/red] {exc}")
                        raise typer.Exit(1) from exc
                    logger.warning(
                        "translate.record_skipped", line=line_no, error=str(exc)
                    )
                    chunks.clear()
                    skipped += 1
                    continue
                writer.write(change)
        writer.flush()
    finally:
        if out is not sys.stdout:
            out.close()

    console.print(
        f"[green]Translated {writer.written} change(s)[/green], skipped {skipped}"
    )
