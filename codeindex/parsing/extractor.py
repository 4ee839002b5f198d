"""Per-file entity extraction with tree-sitter."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from tree_sitter_language_pack import get_parser

from ..core.models import Entity
from ..exceptions import ExtractionError, UnsupportedLanguageError
from .base import LanguageSpec, collect_entities
from .languages import EXT_TO_LANG

logger = logging.getLogger(__name__)


def language_for_path(path: Union[str, Path]) -> Optional[LanguageSpec]:
    """Return the language table for a file extension, or None when unsupported."""
    return EXT_TO_LANG.get(Path(path).suffix.lower().lstrip("."))


def supported_extensions() -> List[str]:
    return sorted(EXT_TO_LANG)


def extract_entities_from_source(
    source: Union[str, bytes],
    spec: LanguageSpec,
    file_path: Union[str, Path],
    max_snippet_size: Optional[int] = None,
) -> List[Entity]:
    """Parse source text with the given language and return its entities.

    Raises:
        ExtractionError: If the grammar cannot be loaded or parsing fails
    """
    if isinstance(source, str):
        source = source.encode("utf-8")
    file_path = Path(file_path)

    try:
        parser = get_parser(spec.name)
        tree = parser.parse(source)
    except Exception as e:
        raise ExtractionError(f"Failed to parse {file_path} as {spec.name}: {e}") from e
    if tree is None:
        raise ExtractionError(f"Parser returned no tree for {file_path}")

    if tree.root_node.has_error:
        logger.warning(f"Syntax errors in {file_path}; extracting what could be parsed")
    return collect_entities(tree.root_node, spec, source, file_path, max_snippet_size)


def extract_file_entities(path: Union[str, Path], max_snippet_size: Optional[int] = None) -> List[Entity]:
    """Extract entities from one source file, choosing the grammar by extension.

    Args:
        path: Source file path
        max_snippet_size: Entities with longer snippets are split into chunks

    Returns:
        Entities in document order

    Raises:
        UnsupportedLanguageError: If the extension has no grammar
        ExtractionError: If the file cannot be read, is not UTF-8, or fails to parse
    """
    path = Path(path)
    spec = language_for_path(path)
    if spec is None:
        raise UnsupportedLanguageError(f"Unsupported file extension: {path.suffix or path.name}")

    try:
        source = path.read_bytes()
    except OSError as e:
        raise ExtractionError(f"Failed to read {path}: {e}") from e
    try:
        source.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ExtractionError(f"{path} is not valid UTF-8: {e}") from e

    entities = extract_entities_from_source(source, spec, path, max_snippet_size)
    logger.debug(f"Extracted {len(entities)} entities from {path}")
    return entities
