"""Configuration management for codeindex."""

from __future__ import annotations

import copy
import os
from typing import Dict, List, Optional

DEFAULT_EXTENSIONS: List[str] = ["rs", "ts", "tsx"]

DEFAULT_EXCLUDE_DIRS: List[str] = [
    "node_modules",
    "target",
    "dist",
    "build",
    ".git",
    ".vscode",
    ".idea",
]

DEFAULT_CONFIG: Dict = {
    "extensions": DEFAULT_EXTENSIONS,
    "exclude_dirs": DEFAULT_EXCLUDE_DIRS,
    "max_snippet_size": None,
    "granularity": "fine",
    "embedding": {
        "model": "text-embedding-3-small",
        "api_key": None,
        "api_base": None,
        "dimension": 1536,
        "concurrency": 10,
        "max_retry_seconds": 120,
        "max_input_tokens": 8191,
        "timeout": 60.0,
    },
    "search": {"top_k": 10},
    "vector_store": {
        "backend": "qdrant",
        "collection": None,
        "qdrant": {
            "url": "http://localhost:6333",
            "api_key": None,
            "batch_size": 256,
        },
    },
}

# Environment variable -> config path.
ENV_OVERRIDES = {
    "OPENAI_API_KEY": ("embedding", "api_key"),
    "OPENAI_API_BASE": ("embedding", "api_base"),
    "EMBEDDING_MODEL": ("embedding", "model"),
    "QDRANT_URL": ("vector_store", "qdrant", "url"),
    "QDRANT_API_KEY": ("vector_store", "qdrant", "api_key"),
    "CODEINDEX_COLLECTION": ("vector_store", "collection"),
}


def _set_path(cfg: Dict, path, value) -> None:
    target = cfg
    for key in path[:-1]:
        target = target.setdefault(key, {})
    target[path[-1]] = value


def _merge(base: Dict, overrides: Dict) -> Dict:
    """Recursively merge overrides into base. None values do not override."""
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(overrides: Optional[Dict] = None) -> Dict:
    """Load configuration.

    Returns a fresh copy of DEFAULT_CONFIG with environment overrides applied,
    then merged with the given overrides.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    # Override from environment
    for var, path in ENV_OVERRIDES.items():
        value = os.getenv(var)
        if value:
            _set_path(config, path, value)

    if overrides:
        _merge(config, overrides)
    return config

