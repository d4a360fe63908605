"""Tests for the command-line interface."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from metricchart.cli import main


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def no_credentials(monkeypatch):
    for var in ("METRICCHART_API_KEY", "OPENAI_API_KEY", "METRICCHART_BASE_URL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def payload_file(tmp_path, posthog_payload):
    path = tmp_path / "payload.json"
    path.write_text(json.dumps(posthog_payload), encoding="utf-8")
    return str(path)


class TestCli:

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_classify(self, runner, payload_file):
        result = runner.invoke(main, ["classify", payload_file, "--name", "Events"])
        assert result.exit_code == 0, result.output
        assert "columnar_table" in result.output
        assert '"chartType": "line"' in result.output

    def test_detect(self, runner, payload_file):
        result = runner.invoke(main, ["detect", payload_file])
        assert result.exit_code == 0, result.output
        assert '"pattern": "columns-results"' in result.output

    def test_transform_without_credentials(self, runner, payload_file, no_credentials):
        result = runner.invoke(main, ["transform", payload_file, "--name", "Events"])
        assert result.exit_code == 0, result.output
        assert "classifier only" in result.output
        assert "source=classifier success=True" in result.output
        assert '"categoryKey": "date"' in result.output

    def test_tools_table(self, runner):
        result = runner.invoke(main, ["tools"])
        assert result.exit_code == 0
        assert "Chart Tools" in result.output

    def test_invalid_json(self, runner, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{nope", encoding="utf-8")
        result = runner.invoke(main, ["classify", str(bad)])
        assert result.exit_code == 2
        assert "not valid JSON" in result.output

    def test_missing_file(self, runner):
        result = runner.invoke(main, ["detect", "does-not-exist.json"])
        assert result.exit_code == 2
