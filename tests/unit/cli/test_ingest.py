"""Tests for bylaw-search ingest."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from bylaw_search.cli.main import app
from bylaw_search.db.connection import Database
from bylaw_search.db.vectors import SqliteVectorIndex

runner = CliRunner()

NOISE_TEXT = (
    "ANTI-NOISE BYLAW\n\n"
    "5(7)(a) Construction noise\n\n"
    "No person shall make construction noise except between the hours of "
    "7:00 a.m. and 7:00 p.m., except Sunday."
)


@pytest.fixture
def bylaw_dir(tmp_path: Path) -> Path:
    src = tmp_path / "bylaws"
    src.mkdir()
    (src / "bylaw-3210-anti-noise.txt").write_text(NOISE_TEXT, encoding="utf-8")
    (src / "bylaw-4000-parks.txt").write_text("Parks close at dusk.", encoding="utf-8")
    return src


def _ids(tmp_path: Path) -> list[str]:
    return SqliteVectorIndex(Database(tmp_path / ".bylaw-search.db")).list_ids("bylaws")


# ------------------------------------------------------------------
# Input validation
# ------------------------------------------------------------------


def test_ingest_exits_without_source(cli_project):
    result = runner.invoke(app, ["ingest"])
    assert result.exit_code == 1
    assert "source" in result.output.lower()


def test_ingest_unsupported_file_skipped(cli_project, tmp_path):
    doc = tmp_path / "notes.docx"
    doc.write_text("x")
    result = runner.invoke(app, ["ingest", "--source", str(doc)])
    assert result.exit_code == 0
    assert "Unsupported" in result.output
    assert "No supported documents" in result.output


def test_ingest_missing_api_key(cli_project, bylaw_dir, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY")
    result = runner.invoke(app, ["ingest", "--source", str(bylaw_dir)])
    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output
    cli_project.assert_not_called()


# ------------------------------------------------------------------
# Dry run
# ------------------------------------------------------------------


def test_dry_run_shows_metadata_without_embedding(cli_project, bylaw_dir, tmp_path):
    result = runner.invoke(app, ["ingest", "--source", str(bylaw_dir), "--dry-run"])
    assert result.exit_code == 0, result.output
    assert "3210" in result.output
    assert "4000" in result.output
    assert "nothing written" in result.output
    cli_project.assert_not_called()
    assert not (tmp_path / ".bylaw-search.db").exists()


# ------------------------------------------------------------------
# Ingestion
# ------------------------------------------------------------------


def test_ingest_directory(cli_project, bylaw_dir, tmp_path):
    result = runner.invoke(app, ["ingest", "--source", str(bylaw_dir), "--workers", "2"])
    assert result.exit_code == 0, result.output
    assert "2 succeeded, 0 failed" in result.output
    assert _ids(tmp_path) == ["bylaw-3210-0", "bylaw-4000-0"]


def test_ingest_single_file_with_db_option(cli_project, bylaw_dir, tmp_path):
    db_path = tmp_path / "other.db"
    result = runner.invoke(
        app,
        ["ingest", "-s", str(bylaw_dir / "bylaw-3210-anti-noise.txt"), "--db", str(db_path)],
    )
    assert result.exit_code == 0, result.output
    assert SqliteVectorIndex(Database(db_path)).count("bylaws") == 1


def test_ingest_recursive(cli_project, bylaw_dir, tmp_path):
    nested = bylaw_dir / "archive"
    nested.mkdir()
    (nested / "bylaw-1999-old.txt").write_text("Old bylaw text.", encoding="utf-8")

    runner.invoke(app, ["ingest", "--source", str(bylaw_dir)])
    assert "bylaw-1999-0" not in _ids(tmp_path)

    runner.invoke(app, ["ingest", "--source", str(bylaw_dir), "--recursive"])
    assert "bylaw-1999-0" in _ids(tmp_path)


def test_failed_document_reported_and_exit_code_set(cli_project, bylaw_dir, tmp_path):
    default = cli_project.side_effect

    def flaky(model, input, timeout):
        if any("Parks" in t for t in input):
            raise RuntimeError("provider unavailable")
        return default(model=model, input=input, timeout=timeout)

    cli_project.side_effect = flaky
    result = runner.invoke(app, ["ingest", "--source", str(bylaw_dir)])

    assert result.exit_code == 1
    assert "1 succeeded, 1 failed" in result.output
    assert "bylaw-4000-parks.txt  bylaw 4000:" in result.output
    assert _ids(tmp_path) == ["bylaw-3210-0"]
