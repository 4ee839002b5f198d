"""Indexing functionality for codeindex."""

from .indexer import (
    DefaultIndexer,
    IndexReport,
    ParseResult,
    build_index,
    index_directory,
    parse_directory,
    parse_file,
    query_collection,
)

__all__ = [
    "DefaultIndexer",
    "IndexReport",
    "ParseResult",
    "build_index",
    "index_directory",
    "parse_directory",
    "parse_file",
    "query_collection",
]
