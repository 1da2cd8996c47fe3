"""Recall configuration loader.

Priority (high → low):
  1. CLI flags           (handled at the call site, not in this module)
  2. Environment variables  (RECALL_HOME, RECALL_EMBEDDING_MODEL, RECALL_SOURCES)
  3. Per-project recall.yaml  (in the indexed project's root)
  4. Global ~/.recall/config.yaml  (no API keys)
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

from recall.embedding import DEFAULT_API_BASE, DEFAULT_EMBEDDING_MODEL
from recall.ingest.selector import DEFAULT_EXCLUDES

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".recall"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "recall.yaml"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate keys like max_results or chunk_size.
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

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["store", "indexing", "embedding", "retrieval", "live_context"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StoreCfg:
    """Installation root holding the registry and per-project indexes (store:)."""

    root: Path = field(default_factory=lambda: _GLOBAL_CONFIG_DIR)


@dataclass
class IndexingCfg:
    """Which files get indexed and how (indexing:).

    Attributes:
        sources: Semicolon-separated inclusion substrings; empty means all files.
        exclude: Semicolon-separated directory/file names never indexed.
        staleness_days: Re-index a project once its last index is this old.
        max_files: Files indexed per run at most; the rest of the tree is skipped.
    """

    sources: str = ""
    exclude: str = DEFAULT_EXCLUDES
    batch_size: int = 100
    progress_every: int = 50
    max_files: int = 5000
    staleness_days: int = 7
    chunk_size: int = 512
    overlap: float = 0.10


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (recall.yaml: embedding:)."""

    model: str = DEFAULT_EMBEDDING_MODEL
    api_base: str | None = DEFAULT_API_BASE


@dataclass
class RetrievalCfg:
    """Query-time configuration (recall.yaml: retrieval:).

    ``min_score`` fixes the similarity floor; when unset and
    ``dynamic_min_score`` is true the floor is derived from query length.
    """

    max_results: int = 3
    min_score: float | None = None
    dynamic_min_score: bool = True
    relevance_floor: int = 30


@dataclass
class LiveContextCfg:
    """Live editor context limits (recall.yaml: live_context:)."""

    window_size: int = 5000
    max_file_size: int = 200 * 1024


@dataclass
class RecallConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    store: StoreCfg = field(default_factory=StoreCfg)
    indexing: IndexingCfg = field(default_factory=IndexingCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    live_context: LiveContextCfg = field(default_factory=LiveContextCfg)


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
                f"Unknown config key '{key}' in '{source}'; ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: RecallConfig) -> None:
    if cfg.indexing.batch_size < 1:
        raise ConfigError(f"indexing.batch_size must be >= 1, got {cfg.indexing.batch_size}")
    if cfg.indexing.max_files < 1:
        raise ConfigError(f"indexing.max_files must be >= 1, got {cfg.indexing.max_files}")
    if cfg.indexing.staleness_days < 1:
        raise ConfigError(
            f"indexing.staleness_days must be >= 1, got {cfg.indexing.staleness_days}"
        )
    if not 0.0 <= cfg.indexing.overlap < 1.0:
        raise ConfigError(f"indexing.overlap must be in [0.0, 1.0), got {cfg.indexing.overlap}")
    if cfg.retrieval.max_results < 1:
        raise ConfigError(f"retrieval.max_results must be >= 1, got {cfg.retrieval.max_results}")


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


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in '{path}': {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config '{path}' must be a mapping at the top level.")
    return data


def _cfg_from_dict(data: dict[str, Any]) -> RecallConfig:
    """Build a *RecallConfig* from a merged raw YAML dict."""
    cfg = RecallConfig()

    if "store" in data:
        s = data["store"] or {}
        if s.get("root"):
            cfg.store = StoreCfg(root=Path(str(s["root"])).expanduser())

    if "indexing" in data:
        i = data["indexing"] or {}
        d = cfg.indexing
        cfg.indexing = IndexingCfg(
            sources=str(i.get("sources") or d.sources),
            exclude=str(i.get("exclude", d.exclude) or ""),
            batch_size=int(i.get("batch_size", d.batch_size)),
            progress_every=int(i.get("progress_every", d.progress_every)),
            max_files=int(i.get("max_files", d.max_files)),
            staleness_days=int(i.get("staleness_days", d.staleness_days)),
            chunk_size=int(i.get("chunk_size", d.chunk_size)),
            overlap=float(i.get("overlap", d.overlap)),
        )

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            api_base=e.get("api_base", cfg.embedding.api_base),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        d = cfg.retrieval
        min_score = r.get("min_score", d.min_score)
        cfg.retrieval = RetrievalCfg(
            max_results=int(r.get("max_results", d.max_results)),
            min_score=float(min_score) if min_score is not None else None,
            dynamic_min_score=bool(r.get("dynamic_min_score", d.dynamic_min_score)),
            relevance_floor=int(r.get("relevance_floor", d.relevance_floor)),
        )

    if "live_context" in data:
        lc = data["live_context"] or {}
        cfg.live_context = LiveContextCfg(
            window_size=int(lc.get("window_size", cfg.live_context.window_size)),
            max_file_size=int(lc.get("max_file_size", cfg.live_context.max_file_size)),
        )

    return cfg


def _apply_env_overrides(cfg: RecallConfig) -> RecallConfig:
    """Apply RECALL_* environment variable overrides (layer 2)."""
    if home := os.environ.get("RECALL_HOME"):
        cfg.store.root = Path(home).expanduser()
    if model := os.environ.get("RECALL_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if sources := os.environ.get("RECALL_SOURCES"):
        cfg.indexing.sources = sources
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> RecallConfig:
    """Load and return a merged *RecallConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *recall.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If a file is not valid YAML, the global config contains
            API-key-like fields, or a value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _load_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _load_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.recall/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# Recall global configuration.\n"
            "# NEVER store API keys here; use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            f"  model: {DEFAULT_EMBEDDING_MODEL}\n"
            f"  api_base: {DEFAULT_API_BASE}\n"
            "\n"
            "indexing:\n"
            f'  exclude: "{DEFAULT_EXCLUDES}"\n'
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
