"""Bylaw search configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (BYLAW_SEARCH_EMBEDDING_MODEL, BYLAW_SEARCH_NAMESPACE,
                             BYLAW_SEARCH_DB)
  3. Per-project bylaw-search.yaml  (current working directory)
  4. Global ~/.bylaw-search/config.yaml  (defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from bylaw_search.errors import ConfigError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".bylaw-search"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "bylaw-search.yaml"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate keys like max_retries or batch_size.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "index", "chunking", "cache", "search", "ingest", "registry"]
)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding provider configuration (bylaw-search.yaml: embedding:).

    The model and dimensions are fixed per deployment: ingestion and query
    embedding must use the same values or similarity scores are meaningless.
    """

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    batch_size: int = 5
    timeout: float = 30.0
    max_retries: int = 3


@dataclass
class IndexCfg:
    """Vector index configuration (bylaw-search.yaml: index:)."""

    db: str = ".bylaw-search.db"
    namespace: str = "bylaws"
    batch_size: int = 100
    max_retries: int = 3
    timeout: float = 30.0


@dataclass
class ChunkingCfg:
    """Chunk size and overlap budget, both in characters."""

    chunk_size: int = 1000
    overlap: int = 200


@dataclass
class CacheCfg:
    ttl_seconds: float = 300.0
    capacity: int = 100


@dataclass
class SearchCfg:
    default_limit: int = 5
    default_min_score: float = 0.5


@dataclass
class IngestCfg:
    """Batch ingestion (bylaw-search.yaml: ingest:).

    Attributes:
        workers: Documents processed concurrently; bound this by the
            embedding provider's rate limit.
    """

    workers: int = 4


@dataclass
class RegistryCfg:
    official_url_base: str = "https://oakbay.civicweb.net/document/bylaw"


@dataclass
class BylawSearchConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    index: IndexCfg = field(default_factory=IndexCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    cache: CacheCfg = field(default_factory=CacheCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
    registry: RegistryCfg = field(default_factory=RegistryCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' (ignored).",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: BylawSearchConfig) -> None:
    """Raise ConfigError for values the pipeline cannot run with."""
    positive = {
        "embedding.dimensions": cfg.embedding.dimensions,
        "embedding.batch_size": cfg.embedding.batch_size,
        "index.batch_size": cfg.index.batch_size,
        "chunking.chunk_size": cfg.chunking.chunk_size,
        "cache.capacity": cfg.cache.capacity,
        "ingest.workers": cfg.ingest.workers,
    }
    for name, value in positive.items():
        if value < 1:
            raise ConfigError(f"{name} must be >= 1, got {value}")
    if cfg.embedding.timeout <= 0 or cfg.index.timeout <= 0:
        raise ConfigError("timeouts must be > 0 seconds")
    if cfg.cache.ttl_seconds <= 0:
        raise ConfigError(f"cache.ttl_seconds must be > 0, got {cfg.cache.ttl_seconds}")
    if not 0 <= cfg.chunking.overlap < cfg.chunking.chunk_size:
        raise ConfigError(
            f"chunking.overlap must be in [0, chunk_size), got {cfg.chunking.overlap}"
        )
    if not 0.0 <= cfg.search.default_min_score <= 1.0:
        raise ConfigError("search.default_min_score must be in [0, 1]")
    if not 1 <= cfg.search.default_limit <= 20:
        raise ConfigError("search.default_limit must be in [1, 20]")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> BylawSearchConfig:
    """Build a *BylawSearchConfig* from a merged raw YAML dict."""
    cfg = BylawSearchConfig()

    if "embedding" in data:
        e = data["embedding"]
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
            timeout=float(e.get("timeout", cfg.embedding.timeout)),
            max_retries=int(e.get("max_retries", cfg.embedding.max_retries)),
        )

    if "index" in data:
        i = data["index"]
        cfg.index = IndexCfg(
            db=str(i.get("db", cfg.index.db)),
            namespace=str(i.get("namespace", cfg.index.namespace)),
            batch_size=int(i.get("batch_size", cfg.index.batch_size)),
            max_retries=int(i.get("max_retries", cfg.index.max_retries)),
            timeout=float(i.get("timeout", cfg.index.timeout)),
        )

    if "chunking" in data:
        ch = data["chunking"]
        cfg.chunking = ChunkingCfg(
            chunk_size=int(ch.get("chunk_size", cfg.chunking.chunk_size)),
            overlap=int(ch.get("overlap", cfg.chunking.overlap)),
        )

    if "cache" in data:
        c = data["cache"]
        cfg.cache = CacheCfg(
            ttl_seconds=float(c.get("ttl_seconds", cfg.cache.ttl_seconds)),
            capacity=int(c.get("capacity", cfg.cache.capacity)),
        )

    if "search" in data:
        s = data["search"]
        cfg.search = SearchCfg(
            default_limit=int(s.get("default_limit", cfg.search.default_limit)),
            default_min_score=float(
                s.get("default_min_score", cfg.search.default_min_score)
            ),
        )

    if "ingest" in data:
        cfg.ingest = IngestCfg(workers=int(data["ingest"].get("workers", cfg.ingest.workers)))

    if "registry" in data:
        cfg.registry = RegistryCfg(
            official_url_base=str(
                data["registry"].get("official_url_base", cfg.registry.official_url_base)
            )
        )

    return cfg


def _apply_env_overrides(cfg: BylawSearchConfig) -> BylawSearchConfig:
    """Apply BYLAW_SEARCH_* environment variable overrides."""
    if model := os.environ.get("BYLAW_SEARCH_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if namespace := os.environ.get("BYLAW_SEARCH_NAMESPACE"):
        cfg.index.namespace = namespace
    if db := os.environ.get("BYLAW_SEARCH_DB"):
        cfg.index.db = db
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> BylawSearchConfig:
    """Load and return a merged *BylawSearchConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *bylaw-search.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or a
            value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg


def write_project_config(project_dir: Path) -> Path:
    """Write a commented default *bylaw-search.yaml* into *project_dir* if missing."""
    target = project_dir / PROJECT_CONFIG_NAME
    if not target.exists():
        defaults = BylawSearchConfig()
        content = (
            "# Bylaw search project configuration.\n"
            "# NEVER store API keys here; use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            f"  model: {defaults.embedding.model}\n"
            f"  dimensions: {defaults.embedding.dimensions}\n"
            "\n"
            "index:\n"
            f"  db: {defaults.index.db}\n"
            f"  namespace: {defaults.index.namespace}\n"
            "\n"
            "chunking:\n"
            f"  chunk_size: {defaults.chunking.chunk_size}\n"
            f"  overlap: {defaults.chunking.overlap}\n"
        )
        target.write_text(content, encoding="utf-8")
    return target
