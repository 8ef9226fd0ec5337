"""Tests for the top-level CLI app and global options."""

from __future__ import annotations

import json
import logging

from typer.testing import CliRunner

from bylaw_search.cli.main import app
from bylaw_search.logging_config import JSONFormatter

runner = CliRunner()


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("bylaw-search ")


def test_version_command():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("bylaw-search ")


def test_help_lists_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for name in ("init", "ingest", "search", "status", "remove", "registry"):
        assert name in result.output


def test_verbose_sets_debug_level(cli_project):
    runner.invoke(app, ["--verbose", "status"])
    assert logging.getLogger("bylaw_search").level == logging.DEBUG


def test_json_logs_installs_json_formatter(cli_project):
    runner.invoke(app, ["--json-logs", "status"])
    (handler,) = logging.getLogger("bylaw_search").handlers
    assert isinstance(handler.formatter, JSONFormatter)
    record = logging.makeLogRecord({"msg": "hi", "levelname": "INFO", "name": "bylaw_search"})
    assert json.loads(handler.formatter.format(record))["message"] == "hi"
