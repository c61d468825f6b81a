"""YAML document loading for connector config and table metadata files.

Both file kinds go through ``read_document``: parse with PyYAML, require a
top-level mapping, expand ``${VAR}`` / ``${VAR:-default}`` references.
Connector files are then layered over the packaged ``defaults/connector.yaml``
and validated into a ``ConnectorConfig``.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pydantic
import yaml

from xstream_cdc.config.models import ConnectorConfig

DEFAULT_CONNECTOR_YAML = Path(__file__).with_name("defaults") / "connector.yaml"

_ENV_REF = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


def expand_env(node: Any) -> Any:
    """Expand environment references in every string of a parsed document."""
    if isinstance(node, str):
        return _ENV_REF.sub(_env_value, node)
    if isinstance(node, Mapping):
        return {key: expand_env(value) for key, value in node.items()}
    if isinstance(node, list):
        return [expand_env(item) for item in node]
    return node


def _env_value(match: re.Match[str]) -> str:
    name = match["name"]
    value = os.environ.get(name, match["default"])
    if value is None:
        msg = f"Environment variable '{name}' is not set and no default provided"
        raise ValueError(msg)
    return value


def read_document(path: str | Path, kind: str = "Config") -> dict[str, Any]:
    """Read one YAML document as a mapping with environment references expanded.

    Raises FileNotFoundError for a missing file, ValueError for malformed
    YAML or an unset variable, TypeError when the top level is not a mapping.
    """
    path = Path(path)
    try:
        text = path.read_text()
    except FileNotFoundError:
        msg = f"{kind} file not found: {path}"
        raise FileNotFoundError(msg) from None
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f" at line {mark.line + 1}, column {mark.column + 1}" if mark else ""
        msg = f"{kind} file {path} is not valid YAML{where}: {exc}"
        raise ValueError(msg) from exc
    if document is None:
        return {}
    if not isinstance(document, dict):
        msg = f"{kind} file {path} must hold a YAML mapping, got {type(document).__name__}"
        raise TypeError(msg)
    return expand_env(document)


def overlay(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return *base* with *override* layered on top, sections merged key by key."""
    result = dict(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = overlay(current, value)
        else:
            result[key] = value
    return result


def load_connector_config(path: str | Path | None = None) -> ConnectorConfig:
    """Load the packaged defaults, overlay *path* if given, and validate."""
    settings = read_document(DEFAULT_CONNECTOR_YAML, "Defaults")
    if path is not None:
        settings = overlay(settings, read_document(path))
    try:
        return ConnectorConfig.model_validate(settings)
    except pydantic.ValidationError as exc:
        origin = path if path is not None else "built-in defaults"
        msg = f"Invalid connector config ({origin}):\n{exc}"
        raise ValueError(msg) from exc
