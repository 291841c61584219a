"""Tests for the ragchat config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from ragchat.config import ConfigError, RagChatConfig, ensure_global_config, load_config


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data), encoding="utf-8")


def _load(tmp_path: Path) -> RagChatConfig:
    return load_config(tmp_path, global_config_path=tmp_path / "global.yaml")


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    cfg = _load(tmp_path)
    assert cfg.embedding.model == "openai/text-embedding-3-small"
    assert cfg.embedding.dimensions == 1536
    assert cfg.generation.model == "openai/gpt-4-turbo-preview"
    assert cfg.generation.temperature == 0.7
    assert cfg.generation.max_tokens == 1000
    assert cfg.retrieval.max_sources == 5
    assert cfg.retrieval.similarity_threshold == 0.7
    assert cfg.retrieval.history_limit == 10
    assert cfg.ingest.max_chunk_size == 8000
    assert cfg.database.path == ".ragchat.db"
    assert cfg.server.cors_origins == ["*"]
    assert cfg.server.debug is False


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_project_overrides_global(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "global.yaml", {"generation": {"model": "openai/gpt-4o", "max_tokens": 500}})
    _write_yaml(tmp_path / "ragchat.yaml", {"generation": {"model": "anthropic/claude-3-5-sonnet"}})
    cfg = _load(tmp_path)
    assert cfg.generation.model == "anthropic/claude-3-5-sonnet"
    assert cfg.generation.max_tokens == 500


def test_env_overrides_files(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "ragchat.yaml", {"retrieval": {"max_sources": 3}})
    monkeypatch.setenv("RAGCHAT_MAX_SOURCES", "8")
    monkeypatch.setenv("RAGCHAT_SIMILARITY_THRESHOLD", "0.5")
    monkeypatch.setenv("RAGCHAT_DB_PATH", "/data/kb.db")
    monkeypatch.setenv("RAGCHAT_DEBUG", "true")
    cfg = _load(tmp_path)
    assert cfg.retrieval.max_sources == 8
    assert cfg.retrieval.similarity_threshold == 0.5
    assert cfg.database.path == "/data/kb.db"
    assert cfg.server.debug is True


def test_bad_env_value(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("RAGCHAT_EMBEDDING_DIMENSIONS", "lots")
    with pytest.raises(ConfigError):
        _load(tmp_path)


def test_cors_origins_from_string(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "ragchat.yaml", {"server": {"cors_origins": "http://a.test, http://b.test"}})
    assert _load(tmp_path).server.cors_origins == ["http://a.test", "http://b.test"]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_global_config_rejects_api_keys(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "global.yaml", {"generation": {"api_key": "sk-123"}})
    with pytest.raises(ConfigError, match="forbidden key"):
        _load(tmp_path)


def test_max_tokens_is_not_mistaken_for_a_secret(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "global.yaml", {"generation": {"max_tokens": 200}})
    assert _load(tmp_path).generation.max_tokens == 200


@pytest.mark.parametrize(
    "data",
    [
        {"embedding": {"dimensions": 0}},
        {"retrieval": {"max_sources": 0}},
        {"retrieval": {"history_limit": -1}},
        {"ingest": {"max_chunk_size": 0}},
        {"retrieval": {"max_sources": "many"}},
    ],
)
def test_invalid_values(tmp_path: Path, data: dict) -> None:
    _write_yaml(tmp_path / "ragchat.yaml", data)
    with pytest.raises(ConfigError):
        _load(tmp_path)


def test_config_error_is_value_error() -> None:
    assert issubclass(ConfigError, ValueError)


def test_unknown_section_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "ragchat.yaml", {"mystery": {"x": 1}})
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        _load(tmp_path)
    assert any("mystery" in str(w.message) for w in caught)


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_private_file(tmp_path: Path) -> None:
    target = tmp_path / "home" / ".ragchat" / "config.yaml"
    assert ensure_global_config(target) == target
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert data["embedding"]["dimensions"] == 1536


def test_ensure_global_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / "config.yaml"
    target.write_text("generation:\n  model: ollama/llama3\n", encoding="utf-8")
    ensure_global_config(target)
    assert "ollama/llama3" in target.read_text(encoding="utf-8")
