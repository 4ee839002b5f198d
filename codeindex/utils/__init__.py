"""Utility functions for codeindex."""

from .file_utils import (
    DEFAULT_EXCLUDE_DIRS,
    find_files_by_extensions,
    find_file_by_suffix,
    normalize_extensions,
    read_entities_json,
    write_entities_json,
)

__all__ = [
    "DEFAULT_EXCLUDE_DIRS",
    "find_files_by_extensions",
    "find_file_by_suffix",
    "normalize_extensions",
    "read_entities_json",
    "write_entities_json",
]
