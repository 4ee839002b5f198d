"""Configuration management for codeindex."""

from .manager import (
    DEFAULT_CONFIG,
    DEFAULT_EXTENSIONS,
    DEFAULT_EXCLUDE_DIRS,
    load_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_EXTENSIONS",
    "DEFAULT_EXCLUDE_DIRS",
    "load_config",
]
