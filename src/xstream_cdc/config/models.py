"""Pydantic configuration models for the change translator."""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, Field, SecretStr, field_validator


class LogFormat(StrEnum):
    """Log renderers supported by ``configure_logging``."""

    CONSOLE = "console"
    JSON = "json"


class SourceConfig(BaseModel):
    """Connection settings for the source database.

    Only used for the short-lived connections opened by time zone aware
    conversions and by the data-dictionary metadata provider.
    """

    host: str = "localhost"
    port: int = Field(default=1521, ge=1, le=65535)
    service_name: str
    username: str = "cdc_user"
    password: SecretStr = SecretStr("cdc_password")
    connect_timeout_seconds: float = Field(default=10.0, gt=0)

    @property
    def dsn(self) -> str:
        return f"{self.host}:{self.port}/{self.service_name}"


class MetadataConfig(BaseModel):
    """Table metadata lookup settings."""

    cache_ttl_seconds: float = Field(default=300.0, ge=0.0)
    include_row_id: bool = False
    # Owners (schemas) whose tables may be captured; empty means any owner.
    owners: list[str] = Field(default_factory=list)

    @field_validator("owners")
    @classmethod
    def validate_owner_names(cls, v: list[str]) -> list[str]:
        pattern = re.compile(r"^[A-Za-z_][\w$#]*$")
        for owner in v:
            if not pattern.match(owner):
                msg = f"Owner '{owner}' is not a valid schema name"
                raise ValueError(msg)
        return [owner.upper() for owner in v]


class RetryConfig(BaseModel):
    """Retry / backoff configuration for metadata lookups."""

    max_attempts: int = Field(default=5, ge=1)
    initial_wait_seconds: float = Field(default=1.0, gt=0)
    max_wait_seconds: float = Field(default=60.0, gt=0)
    multiplier: float = Field(default=2.0, ge=1.0)
    jitter: bool = True


class LoggingConfig(BaseModel):
    """structlog output settings."""

    level: str = "INFO"
    format: LogFormat = LogFormat.CONSOLE

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Unknown log level '{v}'"
            raise ValueError(msg)
        return level


class ConnectorConfig(BaseModel, extra="forbid"):
    """Top-level configuration for a translator instance."""

    connector_id: str = "xstream-cdc"
    source: SourceConfig | None = None
    metadata: MetadataConfig = MetadataConfig()
    retry: RetryConfig = RetryConfig()
    logging: LoggingConfig = LoggingConfig()
