"""structlog configuration shared by the CLI and embedding services."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from xstream_cdc.config.models import LogFormat, LoggingConfig


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog on top of stdlib logging.

    Records go to stderr so that JSON-lines output on stdout stays clean.
    """
    config = config or LoggingConfig()
    level = getattr(logging, config.level)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
        force=True,
    )

    processors: list[Any] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if config.format == LogFormat.JSON:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
