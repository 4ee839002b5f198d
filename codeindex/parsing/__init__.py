"""Source parsing: tree-sitter entity extraction."""

from .extractor import extract_entities_from_source, extract_file_entities, language_for_path, supported_extensions

__all__ = [
    "extract_entities_from_source",
    "extract_file_entities",
    "language_for_path",
    "supported_extensions",
]
