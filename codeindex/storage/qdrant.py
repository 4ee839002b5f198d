"""Qdrant vector database backend."""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from qdrant_client import QdrantClient
from qdrant_client.models import Distance, PointStruct, VectorParams

from ..core.embeddings import DEFAULT_EMBEDDING_DIMENSION, Embedder
from ..core.models import Entity
from ..core.retry import retry_sync
from ..exceptions import EmbeddingConfigError, VectorStoreError
from .base import VectorStore

logger = logging.getLogger(__name__)

DEFAULT_QDRANT_URL = "http://localhost:6333"
DEFAULT_BATCH_SIZE = 256
DEFAULT_TOP_K = 10


class QdrantVectorStore(VectorStore):
    """Stores entity embeddings as Qdrant points with the entity as payload.

    Collections use cosine distance and `vector_size` dimensions. Point ids
    are random UUIDs, so upserting the same entity twice stores it twice.
    """

    def __init__(
        self,
        url: str = DEFAULT_QDRANT_URL,
        embedder: Optional[Embedder] = None,
        vector_size: int = DEFAULT_EMBEDDING_DIMENSION,
        api_key: Optional[str] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        client: Optional[QdrantClient] = None,
    ):
        self.url = url
        self.embedder = embedder
        self.vector_size = vector_size
        self.batch_size = max(1, batch_size)
        self.client = client if client is not None else QdrantClient(url=url, api_key=api_key)

    def create_collection(self, name: str) -> bool:
        try:
            if self.client.collection_exists(collection_name=name):
                logger.info(f"Collection '{name}' already exists.")
                return False
            self.client.create_collection(
                collection_name=name,
                vectors_config=VectorParams(size=self.vector_size, distance=Distance.COSINE),
            )
        except Exception as e:
            raise VectorStoreError(f"Failed to create collection '{name}': {e}") from e
        logger.info(f"Collection '{name}' created.")
        return True

    def _to_point(self, entity: Entity) -> Optional[PointStruct]:
        if entity.embedding is None:
            return None
        if len(entity.embedding) != self.vector_size:
            logger.warning(
                f"Skipping '{entity.name}': embedding has {len(entity.embedding)} dimensions, "
                f"collection expects {self.vector_size}"
            )
            return None
        payload = entity.payload()
        try:
            json.dumps(payload)
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping '{entity.name}': payload is not JSON serializable: {e}")
            return None
        return PointStruct(id=str(uuid.uuid4()), vector=list(entity.embedding), payload=payload)

    def upsert(self, collection: str, entities: List[Entity]) -> int:
        points = [p for p in (self._to_point(e) for e in entities) if p is not None]
        skipped = len(entities) - len(points)
        if skipped:
            logger.info(f"Skipped {skipped} entities without a usable embedding")
        if not points:
            logger.warning("No points to upsert")
            return 0

        total_batches = (len(points) + self.batch_size - 1) // self.batch_size
        logger.info(f"Uploading {len(points)} points in {total_batches} batches")

        for i in range(0, len(points), self.batch_size):
            batch = points[i:i + self.batch_size]
            batch_num = i // self.batch_size + 1
            try:
                self.client.upsert(collection_name=collection, points=batch, wait=True)
                logger.debug(f"Uploaded batch {batch_num}/{total_batches}")
            except Exception as e:
                logger.error(f"Upsert of batch {batch_num}/{total_batches} into '{collection}' failed")
                raise VectorStoreError(
                    f"Failed to upsert batch {batch_num}/{total_batches} "
                    f"(points {i}-{i + len(batch)}): {e}"
                ) from e

        logger.info(f"Upserted {len(points)} points into collection '{collection}'")
        return len(points)

    def search(self, collection: str, vector: List[float], top_k: int = DEFAULT_TOP_K) -> List[Tuple[float, Entity]]:
        """Search using Qdrant's vector search."""
        try:
            results = self.client.query_points(
                collection_name=collection,
                query=vector,
                limit=top_k,
                with_payload=True,
                with_vectors=False,
            )
        except Exception as e:
            raise VectorStoreError(f"Failed to query collection '{collection}': {e}") from e

        hits = []
        for point in results.points:
            try:
                entity = Entity.from_dict(point.payload or {})
            except (KeyError, TypeError, ValueError) as e:
                raise VectorStoreError(f"Malformed payload for point {point.id} in '{collection}': {e}") from e
            entity.embedding = None
            hits.append((point.score, entity))
        return hits

    def query(self, collection: str, text: str, top_k: int = DEFAULT_TOP_K) -> List[Entity]:
        if self.embedder is None:
            raise EmbeddingConfigError("Querying by text requires an embedder")
        vector = retry_sync(lambda: self.embedder.embed_one(text), label="query")
        return [entity for _, entity in self.search(collection, vector, top_k)]

    def count(self, collection: str) -> int:
        try:
            return self.client.count(collection_name=collection, exact=True).count
        except Exception as e:
            raise VectorStoreError(f"Failed to count points in '{collection}': {e}") from e

    def list_collections(self) -> List[str]:
        """List all collections in Qdrant."""
        try:
            collections = self.client.get_collections().collections
        except Exception as e:
            raise VectorStoreError(f"Failed to list collections: {e}") from e
        return [c.name for c in collections]

    def delete_collection(self, name: str) -> bool:
        try:
            return bool(self.client.delete_collection(collection_name=name))
        except Exception as e:
            raise VectorStoreError(f"Failed to delete collection '{name}': {e}") from e


def make_vector_store(cfg: Dict, embedder: Optional[Embedder] = None) -> QdrantVectorStore:
    vector_store_cfg = cfg.get("vector_store", {})
    qdrant_cfg = vector_store_cfg.get("qdrant", {})
    dimension = cfg.get("embedding", {}).get("dimension", DEFAULT_EMBEDDING_DIMENSION)

    return QdrantVectorStore(
        url=qdrant_cfg.get("url") or DEFAULT_QDRANT_URL,
        embedder=embedder,
        vector_size=int(embedder.dimension if embedder is not None else dimension),
        api_key=qdrant_cfg.get("api_key"),
        batch_size=int(qdrant_cfg.get("batch_size", DEFAULT_BATCH_SIZE)),
    )


def upsert_from_file(store: VectorStore, collection: str, path: Union[str, Path]) -> int:
    """Load a JSON entity index, ensure the collection exists and upsert it.

    Returns:
        Number of points written
    """
    from ..utils.file_utils import read_entities_json

    entities = read_entities_json(path)
    if not entities:
        logger.info(f"No entities found in {path}")
        return 0
    store.create_collection(collection)
    return store.upsert(collection, entities)
