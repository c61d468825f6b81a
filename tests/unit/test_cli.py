"""Unit tests for the typer CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from xstream_cdc.cli import app

runner = CliRunner()
pytestmark = pytest.mark.usefixtures("restore_logging")

METADATA_YAML = """\
tables:
  - database: ORCL
    schema: HR
    table: EMPLOYEES
    key_columns: [ID]
    columns:
      ID: string
      NAME: string
"""


def _record(command: str = "INSERT", **extra) -> dict:
    return {
        "database": "ORCL",
        "owner": "HR",
        "table": "EMPLOYEES",
        "command": command,
        "source_time": "2024-05-01T12:00:00+00:00",
        "position": "0102",
        "transaction_id": "1.2.3",
        "new_values": [
            {"name": "ID", "type": "CHAR", "value": "42"},
            {"name": "NAME", "type": "CHAR", "value": "Alice"},
        ],
        **extra,
    }


@pytest.fixture
def metadata_file(tmp_path: Path) -> Path:
    path = tmp_path / "metadata.yaml"
    path.write_text(METADATA_YAML)
    return path


def _write_records(tmp_path: Path, records: list[dict]) -> Path:
    path = tmp_path / "records.jsonl"
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n")
    return path


class TestValidate:
    def test_valid_config(self, tmp_path: Path):
        path = tmp_path / "connector.yaml"
        path.write_text("source:\n  service_name: ORCLPDB1\n")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 0
        assert "Valid" in result.output

    def test_invalid_config(self, tmp_path: Path):
        path = tmp_path / "connector.yaml"
        path.write_text("logging:\n  level: chatty\n")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1

    def test_missing_config(self, tmp_path: Path):
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1


class TestTranslate:
    def test_translates_records(self, tmp_path: Path, metadata_file: Path):
        records = _write_records(
            tmp_path,
            [
                _record(),
                _record(
                    "DELETE",
                    old_values=[{"name": "ID", "type": "CHAR", "value": "7"}],
                    chunks=[{"name": "DOC"}, {"name": "DOC", "last": True}],
                ),
            ],
        )
        output = tmp_path / "changes.jsonl"

        result = runner.invoke(
            app,
            [
                "translate",
                str(records),
                "--metadata",
                str(metadata_file),
                "--output",
                str(output),
            ],
        )

        assert result.exit_code == 0, result.output
        changes = [json.loads(line) for line in output.read_text().splitlines()]
        assert [c["change_type"] for c in changes] == ["INSERT", "UPDATE"]
        assert changes[0]["key"] == {"ID": "42"}
        assert changes[0]["value"] == {"ID": "42", "NAME": "Alice"}
        assert changes[0]["source_offset"] == {"position": "0410===="}
        assert changes[1]["value"] == {"ID": "7"}
        assert changes[1]["metadata"]["command"] == "DELETE"

    def test_fail_fast(self, tmp_path: Path, metadata_file: Path):
        records = _write_records(tmp_path, [_record("LOB WRITE"), _record()])
        output = tmp_path / "changes.jsonl"

        result = runner.invoke(
            app,
            ["translate", str(records), "--metadata", str(metadata_file), "--output", str(output)],
        )

        assert result.exit_code == 1
        assert output.read_text() == ""

    def test_skip_errors(self, tmp_path: Path, metadata_file: Path):
        records = _write_records(
            tmp_path, [_record("LOB WRITE"), _record(table="UNKNOWN"), _record()]
        )
        output = tmp_path / "changes.jsonl"

        result = runner.invoke(
            app,
            [
                "translate",
                str(records),
                "--metadata",
                str(metadata_file),
                "--output",
                str(output),
                "--skip-errors",
            ],
        )

        assert result.exit_code == 0, result.output
        assert len(output.read_text().splitlines()) == 1

    def test_skip_errors_on_malformed_lines(self, tmp_path: Path, metadata_file: Path):
        missing_database = {k: v for k, v in _record().items() if k != "database"}
        records = tmp_path / "records.jsonl"
        records.write_text(
            "\n".join(
                [
                    json.dumps(missing_database),
                    "{not json",
                    json.dumps(_record(source_time="yesterday")),
                    json.dumps(_record(chunks=[{"last": True}])),
                    json.dumps(_record()),
                ]
            )
            + "\n"
        )
        output = tmp_path / "changes.jsonl"

        result = runner.invoke(
            app,
            [
                "translate",
                str(records),
                "--metadata",
                str(metadata_file),
                "--output",
                str(output),
                "--skip-errors",
            ],
        )

        assert result.exit_code == 0, result.output
        changes = [json.loads(line) for line in output.read_text().splitlines()]
        assert len(changes) == 1
        assert changes[0]["key"] == {"ID": "42"}
        assert "skipped 4" in result.output

    def test_fail_fast_on_malformed_line(self, tmp_path: Path, metadata_file: Path):
        records = tmp_path / "records.jsonl"
        records.write_text("{not json\n" + json.dumps(_record()) + "\n")

        result = runner.invoke(
            app, ["translate", str(records), "--metadata", str(metadata_file)]
        )

        assert result.exit_code == 1
        assert "Not a JSON record" in result.output

    def test_missing_metadata_file(self, tmp_path: Path):
        records = _write_records(tmp_path, [_record()])
        result = runner.invoke(
            app, ["translate", str(records), "--metadata", str(tmp_path / "nope.yaml")]
        )
        assert result.exit_code == 1
        assert "Metadata file not found" in result.output

    def test_requires_metadata_source(self, tmp_path: Path):
        records = _write_records(tmp_path, [_record()])
        result = runner.invoke(app, ["translate", str(records)])
        assert result.exit_code == 1

    def test_missing_records_file(self, tmp_path: Path, metadata_file: Path):
        result = runner.invoke(
            app,
            ["translate", str(tmp_path / "nope.jsonl"), "--metadata", str(metadata_file)],
        )
        assert result.exit_code == 1
