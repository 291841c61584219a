"""ragchat configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (RAGCHAT_*)
  3. Per-project ragchat.yaml  (current directory by default)
  4. Global ~/.ragchat/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

The resulting RagChatConfig is built once at startup and passed down to every
component. Nothing else reads the environment for tunables.
Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ragchat.errors import ConfigError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".ragchat"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "ragchat.yaml"

# Fields that suggest an API key; forbidden in global config.
# Does NOT match legitimate config keys like max_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # github_token, access_token (suffix)
    r"|^token$"                  # exactly "token"
    r"|_secret$"                 # client_secret (suffix)
    r"|^secret$"                 # exactly "secret"
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    [
        "embedding",
        "generation",
        "retrieval",
        "ingest",
        "providers",
        "database",
        "server",
        "logging",
    ]
)

_TRUE_VALUES = {"1", "true", "yes", "on"}


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (ragchat.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536


@dataclass
class GenerationCfg:
    """Chat completion configuration (ragchat.yaml: generation:)."""

    model: str = "openai/gpt-4-turbo-preview"
    temperature: float = 0.7
    max_tokens: int = 1000


@dataclass
class RetrievalCfg:
    """Retrieval policy (ragchat.yaml: retrieval:).

    Attributes:
        max_sources: Default number of nearest documents fetched per query.
        similarity_threshold: Default minimum similarity applied after the
            nearest ``max_sources`` have been selected.
        history_limit: Number of prior messages replayed into the prompt.
        notable_similarity: Top-result similarity worth flagging in the logs.
            Diagnostic only; never changes results.
    """

    max_sources: int = 5
    similarity_threshold: float = 0.7
    history_limit: int = 10
    notable_similarity: float = 0.85


@dataclass
class IngestCfg:
    """Ingestion configuration (ragchat.yaml: ingest:)."""

    max_chunk_size: int = 8000


@dataclass
class ProvidersCfg:
    """Shared provider call settings (ragchat.yaml: providers:)."""

    num_retries: int = 3
    timeout: float = 60.0


@dataclass
class DatabaseCfg:
    """SQLite database location (ragchat.yaml: database:)."""

    path: str = ".ragchat.db"


@dataclass
class ServerCfg:
    """HTTP server configuration (ragchat.yaml: server:).

    Attributes:
        debug: Include stack traces in error responses. Never enable in production.
    """

    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    debug: bool = False


@dataclass
class LoggingCfg:
    level: str = "INFO"


@dataclass
class RagChatConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
    providers: ProvidersCfg = field(default_factory=ProvidersCfg)
    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    server: ServerCfg = field(default_factory=ServerCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


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
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: RagChatConfig) -> None:
    if cfg.embedding.dimensions < 1:
        raise ConfigError(
            f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}"
        )
    if cfg.retrieval.max_sources < 1:
        raise ConfigError(
            f"retrieval.max_sources must be >= 1, got {cfg.retrieval.max_sources}"
        )
    if cfg.retrieval.history_limit < 0:
        raise ConfigError(
            f"retrieval.history_limit must be >= 0, got {cfg.retrieval.history_limit}"
        )
    if cfg.ingest.max_chunk_size < 1:
        raise ConfigError(
            f"ingest.max_chunk_size must be >= 1, got {cfg.ingest.max_chunk_size}"
        )


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


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def _cfg_from_dict(data: dict[str, Any]) -> RagChatConfig:
    """Build a *RagChatConfig* from a merged raw YAML dict."""
    cfg = RagChatConfig()

    try:
        if "embedding" in data:
            e = data["embedding"] or {}
            cfg.embedding = EmbeddingCfg(
                model=str(e.get("model", cfg.embedding.model)),
                dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            )

        if "generation" in data:
            g = data["generation"] or {}
            cfg.generation = GenerationCfg(
                model=str(g.get("model", cfg.generation.model)),
                temperature=float(g.get("temperature", cfg.generation.temperature)),
                max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
            )

        if "retrieval" in data:
            r = data["retrieval"] or {}
            cfg.retrieval = RetrievalCfg(
                max_sources=int(r.get("max_sources", cfg.retrieval.max_sources)),
                similarity_threshold=float(
                    r.get("similarity_threshold", cfg.retrieval.similarity_threshold)
                ),
                history_limit=int(r.get("history_limit", cfg.retrieval.history_limit)),
                notable_similarity=float(
                    r.get("notable_similarity", cfg.retrieval.notable_similarity)
                ),
            )

        if "ingest" in data:
            i = data["ingest"] or {}
            cfg.ingest = IngestCfg(
                max_chunk_size=int(i.get("max_chunk_size", cfg.ingest.max_chunk_size)),
            )

        if "providers" in data:
            p = data["providers"] or {}
            cfg.providers = ProvidersCfg(
                num_retries=int(p.get("num_retries", cfg.providers.num_retries)),
                timeout=float(p.get("timeout", cfg.providers.timeout)),
            )

        if "database" in data:
            d = data["database"] or {}
            cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

        if "server" in data:
            s = data["server"] or {}
            origins = s.get("cors_origins", cfg.server.cors_origins)
            if isinstance(origins, str):
                origins = [o.strip() for o in origins.split(",") if o.strip()]
            cfg.server = ServerCfg(
                host=str(s.get("host", cfg.server.host)),
                port=int(s.get("port", cfg.server.port)),
                cors_origins=list(origins),
                debug=_as_bool(s.get("debug", cfg.server.debug)),
            )

        if "logging" in data:
            lg = data["logging"] or {}
            cfg.logging = LoggingCfg(level=str(lg.get("level", cfg.logging.level)))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: RagChatConfig) -> RagChatConfig:
    """Apply RAGCHAT_* environment variable overrides."""
    try:
        if model := os.environ.get("RAGCHAT_EMBEDDING_MODEL"):
            cfg.embedding.model = model
        if dims := os.environ.get("RAGCHAT_EMBEDDING_DIMENSIONS"):
            cfg.embedding.dimensions = int(dims)
        if model := os.environ.get("RAGCHAT_GENERATION_MODEL"):
            cfg.generation.model = model
        if n := os.environ.get("RAGCHAT_MAX_SOURCES"):
            cfg.retrieval.max_sources = int(n)
        if threshold := os.environ.get("RAGCHAT_SIMILARITY_THRESHOLD"):
            cfg.retrieval.similarity_threshold = float(threshold)
    except ValueError as exc:
        raise ConfigError(f"Invalid RAGCHAT_* environment value: {exc}") from exc
    if path := os.environ.get("RAGCHAT_DB_PATH"):
        cfg.database.path = path
    if level := os.environ.get("RAGCHAT_LOG_LEVEL"):
        cfg.logging.level = level
    if debug := os.environ.get("RAGCHAT_DEBUG"):
        cfg.server.debug = _as_bool(debug)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> RagChatConfig:
    """Load and return a merged *RagChatConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *ragchat.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *RagChatConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields, or a value
            has the wrong type or is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
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
    """Create ``~/.ragchat/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# ragchat global configuration — model defaults only.\n"
            "# NEVER store API keys here — use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "  dimensions: 1536\n"
            "\n"
            "generation:\n"
            "  model: openai/gpt-4-turbo-preview\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
