"""Tests for the bylaw search config loader."""

from __future__ import annotations

import warnings
from pathlib import Path

import pytest
import yaml

from bylaw_search.config import (
    PROJECT_CONFIG_NAME,
    BylawSearchConfig,
    load_config,
    write_project_config,
)
from bylaw_search.errors import ConfigError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("BYLAW_SEARCH_EMBEDDING_MODEL", "BYLAW_SEARCH_NAMESPACE", "BYLAW_SEARCH_DB"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def missing_global(tmp_path: Path) -> Path:
    return tmp_path / "nonexistent" / "config.yaml"


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path, missing_global: Path) -> None:
    cfg = load_config(project_dir=tmp_path, global_config_path=missing_global)

    assert cfg.embedding.model == "openai/text-embedding-3-small"
    assert cfg.embedding.batch_size == 5
    assert cfg.embedding.timeout == 30.0
    assert cfg.index.batch_size == 100
    assert cfg.index.max_retries == 3
    assert cfg.index.namespace == "bylaws"
    assert cfg.chunking.chunk_size == 1000
    assert cfg.chunking.overlap == 200
    assert cfg.cache.ttl_seconds == 300.0
    assert cfg.cache.capacity == 100
    assert cfg.search.default_limit == 5
    assert cfg.search.default_min_score == 0.5
    assert cfg.ingest.workers == 4
    assert cfg.registry.official_url_base.startswith("https://")


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"cache": {"ttl_seconds": 60}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.cache.ttl_seconds == 60.0
    assert cfg.cache.capacity == 100


def test_project_overrides_global(tmp_path: Path) -> None:
    global_cfg = tmp_path / "global.yaml"
    _write_yaml(global_cfg, {"chunking": {"chunk_size": 800, "overlap": 100}})
    _write_yaml(tmp_path / PROJECT_CONFIG_NAME, {"chunking": {"chunk_size": 1200}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.chunking.chunk_size == 1200
    assert cfg.chunking.overlap == 100


def test_env_overrides_project(tmp_path: Path, missing_global: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / PROJECT_CONFIG_NAME, {"index": {"namespace": "from-yaml"}})
    monkeypatch.setenv("BYLAW_SEARCH_NAMESPACE", "from-env")
    monkeypatch.setenv("BYLAW_SEARCH_EMBEDDING_MODEL", "ollama/nomic-embed-text")
    monkeypatch.setenv("BYLAW_SEARCH_DB", "/tmp/other.db")

    cfg = load_config(project_dir=tmp_path, global_config_path=missing_global)
    assert cfg.index.namespace == "from-env"
    assert cfg.embedding.model == "ollama/nomic-embed-text"
    assert cfg.index.db == "/tmp/other.db"


def test_empty_files_fall_back_to_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("", encoding="utf-8")
    (tmp_path / PROJECT_CONFIG_NAME).write_text("", encoding="utf-8")

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg == BylawSearchConfig()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_global_config_api_key_rejected(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"api_key": "sk-123"}})

    with pytest.raises(ConfigError, match="api_key"):
        load_config(project_dir=tmp_path, global_config_path=global_cfg)


def test_unknown_key_warns(tmp_path: Path, missing_global: Path) -> None:
    _write_yaml(tmp_path / PROJECT_CONFIG_NAME, {"retrieval": {"top_k": 3}})

    with warnings.catch_warnings(record=True) as w:
        warnings.simplefilter("always")
        load_config(project_dir=tmp_path, global_config_path=missing_global)
    assert any("retrieval" in str(x.message) for x in w)


@pytest.mark.parametrize(
    "data",
    [
        {"chunking": {"chunk_size": 100, "overlap": 100}},
        {"chunking": {"chunk_size": 0}},
        {"cache": {"ttl_seconds": 0}},
        {"cache": {"capacity": 0}},
        {"embedding": {"batch_size": 0}},
        {"search": {"default_limit": 21}},
        {"search": {"default_min_score": 1.5}},
        {"ingest": {"workers": 0}},
    ],
)
def test_invalid_values_raise(tmp_path: Path, missing_global: Path, data: dict) -> None:
    _write_yaml(tmp_path / PROJECT_CONFIG_NAME, data)
    with pytest.raises(ConfigError):
        load_config(project_dir=tmp_path, global_config_path=missing_global)


def test_non_numeric_value_raises_config_error(tmp_path: Path, missing_global: Path) -> None:
    _write_yaml(tmp_path / PROJECT_CONFIG_NAME, {"cache": {"capacity": "lots"}})
    with pytest.raises(ConfigError, match="Invalid config value"):
        load_config(project_dir=tmp_path, global_config_path=missing_global)


# ---------------------------------------------------------------------------
# write_project_config
# ---------------------------------------------------------------------------


def test_write_project_config_round_trips(tmp_path: Path, missing_global: Path) -> None:
    path = write_project_config(tmp_path)
    assert path.name == PROJECT_CONFIG_NAME
    assert "API keys" in path.read_text(encoding="utf-8")

    cfg = load_config(project_dir=tmp_path, global_config_path=missing_global)
    assert cfg == BylawSearchConfig()


def test_write_project_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / PROJECT_CONFIG_NAME
    target.write_text("cache:\n  capacity: 7\n", encoding="utf-8")
    write_project_config(tmp_path)
    assert target.read_text(encoding="utf-8") == "cache:\n  capacity: 7\n"
