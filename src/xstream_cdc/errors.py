"""Exceptions raised while translating change records.

Every error is fatal to the record being built and propagates to the
caller; nothing here is retried.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from xstream_cdc.changes.models import ChangeKey


class ChangeError(Exception):
    """Base class for all change translation failures."""


class ValidationError(ChangeError):
    """Raised when a raw record is missing a required field."""


class MetadataError(ChangeError):
    """Raised when no table metadata is registered for a change key."""

    def __init__(self, change_key: ChangeKey) -> None:
        self.change_key = change_key
        super().__init__(f"No table metadata found for {change_key}")


class UnsupportedCommandError(ChangeError):
    """Raised for native command types other than INSERT, UPDATE and DELETE."""

    def __init__(self, command_type: str) -> None:
        self.command_type = command_type
        super().__init__(f"CommandType of '{command_type}' is not supported.")


class ConversionError(ChangeError):
    """Raised when a native column value cannot be converted."""

    def __init__(self, column_name: str, cause: BaseException | str) -> None:
        self.column_name = column_name
        self.cause = cause
        super().__init__(f"Could not convert column '{column_name}': {cause}")


class DataConversionError(ConversionError):
    """A ConversionError attributed to a specific record."""

    def __init__(
        self,
        change_key: ChangeKey,
        position: str,
        column_name: str,
        cause: BaseException | str,
    ) -> None:
        self.change_key = change_key
        self.position = position
        super().__init__(column_name, cause)
        self.args = (
            f"Exception thrown while processing row. {change_key}: "
            f"row='{position}' column='{column_name}': {cause}",
        )


class StreamDrainError(ChangeError):
    """Raised when trailing chunk data could not be drained from the stream."""

    def __init__(
        self, change_key: ChangeKey, position: str, detail: str = "stream error"
    ) -> None:
        self.change_key = change_key
        self.position = position
        super().__init__(
            f"Failed to drain chunk data for {change_key} row='{position}': {detail}"
        )
