"""Factory for creating vector store instances (Qdrant only)."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Optional

from ..core.embeddings import Embedder
from ..exceptions import VectorStoreError
from .base import VectorStore
from .qdrant import make_vector_store


def collection_name_for(root: Path) -> str:
    """Derive a valid collection name from a source directory name."""
    name = re.sub(r"[^a-zA-Z0-9_-]", "_", Path(root).resolve().name) or "codeindex"
    if not name[0].isalpha() and name[0] != "_":
        name = "_" + name
    return name


def create_vector_store(cfg: Dict, embedder: Optional[Embedder] = None) -> VectorStore:
    backend = cfg.get("vector_store", {}).get("backend", "qdrant")
    if backend != "qdrant":
        raise VectorStoreError(f"Unsupported vector store backend: {backend}")
    return make_vector_store(cfg, embedder)
