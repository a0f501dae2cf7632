"""Configuration management for Prism."""

import os
from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml


DEFAULT_CONFIG = {
    "data_path": "~/.prism",
    "ingest_path": "~/.prism/ingest",
    "chroma_path": "~/.prism/chroma",
    "storage_backend": "chromadb",
    "default_collection": "default",
    "log_level": "INFO",
    "embedding": {"provider": "sentence-transformers", "model": "intfloat/e5-large-v2"},
    "llm": {
        "provider": "anthropic",
        "model": "claude-sonnet-4-20250514",
        "temperature": 0.2,
        "max_tokens": 1000,
    },
    "generation": {
        "mode": "cluster",
        "min_documents": 5,
        "confidence_threshold": 0.5,
        "document_excerpt_chars": 2000,
        "cluster_excerpt_chars": 1000,
        "max_docs_per_cluster": 10,
        "supersede": True,
    },
    "clustering": {"min_k": 2, "max_k": 5, "max_iterations": 20, "min_cluster_size": 2, "seed": None},
}

GENERATION_MODES = ("cluster", "document")


def _find_config_file() -> Path | None:
    """Look for config.yaml in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".prism" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration, merging defaults with file and env vars."""
    cfg = deepcopy(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if path and path.exists():
        with open(path) as f:
            file_cfg = yaml.safe_load(f) or {}
        _deep_merge(cfg, file_cfg)

    # Env overrides
    if api_key := os.environ.get("ANTHROPIC_API_KEY"):
        cfg["anthropic_api_key"] = api_key
    if api_key := os.environ.get("OPENAI_API_KEY"):
        cfg["openai_api_key"] = api_key
    if level := os.environ.get("PRISM_LOG_LEVEL"):
        cfg["log_level"] = level

    # Expand paths
    for key in ("data_path", "ingest_path", "chroma_path"):
        cfg[key] = str(Path(cfg[key]).expanduser().resolve())

    return cfg


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in-place."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
