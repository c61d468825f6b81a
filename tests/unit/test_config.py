"""Unit tests for config models and the YAML loader."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from xstream_cdc.config.loader import (
    DEFAULT_CONNECTOR_YAML,
    expand_env,
    load_connector_config,
    overlay,
    read_document,
)
from xstream_cdc.config.models import (
    ConnectorConfig,
    LogFormat,
    LoggingConfig,
    MetadataConfig,
    SourceConfig,
)


class TestModels:
    def test_source_defaults(self):
        source = SourceConfig(service_name="ORCLPDB1")
        assert source.port == 1521
        assert source.dsn == "localhost:1521/ORCLPDB1"
        assert source.password.get_secret_value() == "cdc_password"

    def test_source_requires_service_name(self):
        with pytest.raises(ValidationError):
            SourceConfig()  # type: ignore[call-arg]

    def test_invalid_port(self):
        with pytest.raises(ValidationError):
            SourceConfig(service_name="X", port=0)

    def test_owners_uppercased(self):
        assert MetadataConfig(owners=["hr", "Sales"]).owners == ["HR", "SALES"]

    def test_invalid_owner(self):
        with pytest.raises(ValidationError, match="not a valid schema name"):
            MetadataConfig(owners=["hr.employees"])

    def test_log_level_normalized(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="chatty")

    def test_extra_keys_rejected(self):
        with pytest.raises(ValidationError):
            ConnectorConfig.model_validate({"bogus": 1})


class TestExpandEnv:
    def test_plain_string_unchanged(self):
        assert expand_env("hello") == "hello"

    def test_substitutes_env_var(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ORACLE_HOST", "db.prod")
        assert expand_env("${ORACLE_HOST}") == "db.prod"

    def test_default_when_var_missing(self):
        assert expand_env("${XSTREAM_MISSING_VAR:-fallback}") == "fallback"

    def test_missing_var_no_default_raises(self):
        with pytest.raises(ValueError, match="XSTREAM_UNDEFINED"):
            expand_env("${XSTREAM_UNDEFINED}")

    def test_recursive(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ORACLE_PASSWORD", "secret123")
        data = {
            "source": {"password": "${ORACLE_PASSWORD}"},
            "owners": ["${XSTREAM_OWNER_UNSET:-HR}"],
        }
        assert expand_env(data) == {
            "source": {"password": "secret123"},
            "owners": ["HR"],
        }


class TestLoader:
    def test_defaults_file(self):
        defaults = read_document(DEFAULT_CONNECTOR_YAML)
        assert defaults["connector_id"] == "xstream-cdc"
        assert defaults["metadata"]["cache_ttl_seconds"] == 300

    def test_overlay_is_deep_and_non_mutating(self):
        base = {"a": {"b": 1, "c": 2}}
        merged = overlay(base, {"a": {"c": 3}})
        assert merged == {"a": {"b": 1, "c": 3}}
        assert base == {"a": {"b": 1, "c": 2}}

    def test_builtin_defaults_only(self):
        config = load_connector_config()
        assert config.source is None
        assert config.metadata.cache_ttl_seconds == 300
        assert config.logging.format == LogFormat.CONSOLE

    def test_file_merged_over_defaults(self, tmp_path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ORACLE_PASSWORD", "s3cret")
        path = tmp_path / "connector.yaml"
        path.write_text(
            "source:\n"
            "  host: oracle.internal\n"
            "  service_name: ORCLPDB1\n"
            "  password: ${ORACLE_PASSWORD}\n"
            "metadata:\n"
            "  include_row_id: true\n"
            "logging:\n"
            "  format: json\n"
        )

        config = load_connector_config(path)

        assert config.source is not None
        assert config.source.host == "oracle.internal"
        assert config.source.password.get_secret_value() == "s3cret"
        assert config.metadata.include_row_id is True
        assert config.metadata.cache_ttl_seconds == 300
        assert config.logging.format == LogFormat.JSON

    def test_invalid_config_raises_value_error(self, tmp_path):
        path = tmp_path / "connector.yaml"
        path.write_text("metadata:\n  cache_ttl_seconds: -1\n")
        with pytest.raises(ValueError, match="Invalid connector config"):
            load_connector_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_document(tmp_path / "nope.yaml")

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(TypeError, match="mapping"):
            read_document(path)

    def test_bad_yaml_reports_location(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("source:\n  host: [unclosed\n")
        with pytest.raises(ValueError, match="line"):
            read_document(path)

    def test_empty_document(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert read_document(path) == {}
        assert load_connector_config(path).connector_id == "xstream-cdc"

    def test_missing_file_names_document_kind(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Metadata file not found"):
            read_document(tmp_path / "tables.yaml", "Metadata")
