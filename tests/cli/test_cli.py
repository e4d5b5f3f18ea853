"""
Tests for the timespine CLI (Typer + CliRunner).

Each test points ``--database`` at a fresh file-backed SQLite database.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from timespine.cli.app import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _quiet_logs(monkeypatch):
    monkeypatch.setenv("TIMESPINE_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("TIMESPINE_LOG_JSON", "false")


@pytest.fixture
def batch_file(tmp_path: Path) -> Path:
    path = tmp_path / "batch.json"
    path.write_text(
        json.dumps(
            [
                {"wrapper_id": 1, "amount": 50, "effective_from": "2018-09-20T00:00:00Z"},
                {"wrapper_id": 1, "amount": 10, "effective_from": "2018-09-21T00:00:00Z"},
            ]
        ),
        encoding="utf-8",
    )
    return path


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("timespine ")

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "history" in result.output
        assert "apply" in result.output


class TestDb:
    def test_init(self, database_url):
        result = runner.invoke(app, ["db", "init", "--database", database_url])
        assert result.exit_code == 0, result.output
        assert "timespine_records ready" in result.output


class TestApplyAndHistory:
    def test_apply_then_history(self, database_url, batch_file):
        result = runner.invoke(
            app,
            ["apply", str(batch_file), "-i", "wrapper_id", "--database", database_url, "--json"],
        )
        assert result.exit_code == 0, result.output
        assert '"inserted": 3' in result.output
        assert '"invalidated": 1' in result.output

        result = runner.invoke(
            app, ["history", "wrapper_id=1", "--database", database_url, "--json"]
        )
        assert result.exit_code == 0, result.output
        assert '"amount": 50' in result.output
        assert '"amount": 10' in result.output

    def test_history_table(self, database_url, batch_file):
        runner.invoke(app, ["apply", str(batch_file), "-i", "wrapper_id", "-d", database_url])
        result = runner.invoke(app, ["history", "wrapper_id=1", "-d", database_url])
        assert result.exit_code == 0, result.output
        assert "amount" in result.output
        assert "∞" in result.output

    def test_history_as_of_before_writes(self, database_url, batch_file):
        runner.invoke(app, ["apply", str(batch_file), "-i", "wrapper_id", "-d", database_url])
        result = runner.invoke(
            app,
            ["history", "wrapper_id=1", "--as-of", "2000-01-01T00:00:00Z", "-d", database_url],
        )
        assert result.exit_code == 0, result.output
        assert "No records" in result.output

    def test_set_mode(self, database_url, batch_file):
        result = runner.invoke(
            app,
            [
                "apply",
                str(batch_file),
                "-i",
                "wrapper_id",
                "--mode",
                "set",
                "-d",
                database_url,
                "--json",
            ],
        )
        assert result.exit_code == 0, result.output
        assert '"items": 2' in result.output

    def test_missing_identifier_exits_nonzero(self, database_url, batch_file):
        result = runner.invoke(
            app,
            ["apply", str(batch_file), "-i", "wrapper_id", "-i", "currency", "-d", database_url],
        )
        assert result.exit_code == 1

    def test_bad_identifier_argument(self, database_url):
        result = runner.invoke(app, ["history", "wrapper_id", "-d", database_url])
        assert result.exit_code != 0

    def test_malformed_batch_file(self, database_url, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text('[{"wrapper_id": 1,', encoding="utf-8")
        result = runner.invoke(app, ["apply", str(path), "-i", "wrapper_id", "-d", database_url])
        assert result.exit_code == 2
        assert not isinstance(result.exception, ValueError)

    def test_batch_file_not_a_list(self, database_url, tmp_path):
        path = tmp_path / "object.json"
        path.write_text('{"wrapper_id": 1}', encoding="utf-8")
        result = runner.invoke(app, ["apply", str(path), "-i", "wrapper_id", "-d", database_url])
        assert result.exit_code == 2
