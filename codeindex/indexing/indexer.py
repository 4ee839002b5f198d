"""Code indexing pipeline: discovery, extraction, post-processing, embedding, storage."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from ..config import load_config
from ..core import Embedder, Entity, Granularity, generate_embeddings, make_embedder, post_process_entities
from ..core.embeddings import needs_embedding
from ..exceptions import ExtractionError
from ..parsing import extract_file_entities, language_for_path
from ..storage import VectorStore, collection_name_for, create_vector_store
from ..utils import find_files_by_extensions, normalize_extensions, write_entities_json
from .base import Indexer

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class ParseResult:
    entities: List[Entity]
    files_found: int = 0
    files_skipped: int = 0


@dataclasses.dataclass
class IndexReport:
    """Counts reported by a full indexing run."""

    collection: Optional[str] = None
    files_found: int = 0
    files_skipped: int = 0
    entities: int = 0
    embedded: int = 0
    unembedded: int = 0
    upserted: int = 0


def parse_file(path: Union[str, Path], max_snippet_size: Optional[int] = None) -> List[Entity]:
    """Extract entities from a single file (errors propagate to the caller)."""
    return extract_file_entities(path, max_snippet_size=max_snippet_size)


def parse_directory(
    root: Union[str, Path],
    extensions: Iterable[str],
    exclude_dirs: Optional[Iterable[str]] = None,
    max_snippet_size: Optional[int] = None,
    granularity: Union[Granularity, str, None] = Granularity.FINE,
) -> ParseResult:
    """Discover, extract and post-process every matching file under root.

    Files that fail to read or parse are logged and skipped. Files whose
    extension has no grammar are ignored. Post-processing runs once over the
    accumulated entities of all files.

    Args:
        root: Directory to index
        extensions: File extensions to include
        exclude_dirs: Directory names to skip
        max_snippet_size: Split/merge size bound
        granularity: Merge policy

    Returns:
        ParseResult with the entities and file counts

    Raises:
        DiscoveryError: If the directory walk fails
    """
    granularity = Granularity.parse(granularity)
    files = find_files_by_extensions(root, normalize_extensions(extensions), exclude_dirs)
    logger.info(f"Found {len(files)} files to parse under {root}")
    if not files:
        return ParseResult(entities=[])

    entities: List[Entity] = []
    skipped = 0
    for path in files:
        if language_for_path(path) is None:
            logger.debug(f"No grammar for {path}, ignoring")
            continue
        try:
            file_entities = extract_file_entities(path, max_snippet_size=max_snippet_size)
        except ExtractionError as e:
            logger.warning(f"Skipping {path}: {e}")
            skipped += 1
            continue
        entities.extend(file_entities)

    if skipped:
        logger.warning(f"{skipped} files skipped")
    logger.info(f"Extracted {len(entities)} entities from {len(files) - skipped} files")

    if entities:
        entities = post_process_entities(entities, granularity, max_snippet_size)
        logger.info(f"Post-processing produced {len(entities)} entities")
    return ParseResult(entities=entities, files_found=len(files), files_skipped=skipped)


def index_directory(
    root: Union[str, Path],
    extensions: Iterable[str],
    output_file: Union[str, Path],
    exclude_dirs: Optional[Iterable[str]] = None,
    max_snippet_size: Optional[int] = None,
    granularity: Union[Granularity, str, None] = Granularity.FINE,
) -> int:
    """Parse a directory and write its entities as a JSON array.

    Returns:
        Number of entities written (no file is written when zero)
    """
    result = parse_directory(root, extensions, exclude_dirs, max_snippet_size, granularity)
    if not result.entities:
        logger.info(f"No entities found under {root}; nothing written")
        return 0
    write_entities_json(result.entities, output_file)
    return len(result.entities)


class DefaultIndexer(Indexer):
    """Full pipeline into a vector store.

    The embedder and store are injected or built lazily from configuration
    the first time they are needed.
    """

    def __init__(
        self,
        cfg: Optional[Dict] = None,
        embedder: Optional[Embedder] = None,
        store: Optional[VectorStore] = None,
    ):
        self.cfg = cfg if cfg is not None else load_config()
        self.embedder = embedder
        self.store = store

    def _get_embedder(self) -> Embedder:
        if self.embedder is None:
            self.embedder = make_embedder(self.cfg)
        return self.embedder

    def _get_store(self) -> VectorStore:
        if self.store is None:
            self.store = create_vector_store(self.cfg, self._get_embedder())
        return self.store

    async def index(
        self,
        root: Union[str, Path],
        collection: Optional[str] = None,
        extensions: Optional[Iterable[str]] = None,
        exclude_dirs: Optional[Iterable[str]] = None,
        max_snippet_size: Optional[int] = None,
        granularity: Union[Granularity, str, None] = None,
    ) -> IndexReport:
        root = Path(root)
        cfg = self.cfg
        collection = collection or cfg.get("vector_store", {}).get("collection") or collection_name_for(root)
        report = IndexReport(collection=collection)

        result = await asyncio.to_thread(
            parse_directory,
            root,
            extensions if extensions is not None else cfg.get("extensions", []),
            exclude_dirs if exclude_dirs is not None else cfg.get("exclude_dirs"),
            max_snippet_size if max_snippet_size is not None else cfg.get("max_snippet_size"),
            granularity if granularity is not None else cfg.get("granularity"),
        )
        report.files_found = result.files_found
        report.files_skipped = result.files_skipped
        report.entities = len(result.entities)
        if not result.entities:
            logger.info(f"No entities to index under {root}")
            return report

        entities = await generate_embeddings(result.entities, embedder=self._get_embedder(), cfg=cfg)
        report.embedded = sum(1 for e in entities if e.embedding is not None)
        report.unembedded = sum(1 for e in entities if needs_embedding(e))
        if not report.embedded:
            logger.warning("No entities were embedded; skipping upsert")
            return report

        store = self._get_store()
        await asyncio.to_thread(store.create_collection, collection)
        report.upserted = await asyncio.to_thread(store.upsert, collection, entities)
        logger.info(
            f"Indexed {report.upserted} entities from {report.files_found - report.files_skipped} files "
            f"into collection '{collection}'"
        )
        return report


async def build_index(
    root: Union[str, Path],
    cfg: Optional[Dict] = None,
    collection: Optional[str] = None,
    embedder: Optional[Embedder] = None,
    store: Optional[VectorStore] = None,
    **options,
) -> IndexReport:
    """Build code index (Wrapper)."""
    indexer = DefaultIndexer(cfg, embedder=embedder, store=store)
    return await indexer.index(root, collection, **options)


def query_collection(
    cfg: Dict,
    collection: str,
    text: str,
    top_k: Optional[int] = None,
    store: Optional[VectorStore] = None,
) -> List[Entity]:
    """Return the entities closest to text in a collection."""
    if store is None:
        store = create_vector_store(cfg, make_embedder(cfg))
    if top_k is None:
        top_k = int(cfg.get("search", {}).get("top_k", 10))
    results = store.query(collection, text, top_k)
    logger.info(f"Query returned {len(results)} entities from '{collection}'")
    return results
