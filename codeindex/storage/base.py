"""Abstract vector storage interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Tuple

from ..core.models import Entity


class VectorStore(ABC):
    """Abstract base class for vector storage backends."""

    @abstractmethod
    def create_collection(self, name: str) -> bool:
        """Create the collection if missing. Returns False when it already existed."""
        pass

    @abstractmethod
    def upsert(self, collection: str, entities: List[Entity]) -> int:
        """Store embedded entities. Returns the number of points written."""
        pass

    @abstractmethod
    def search(self, collection: str, vector: List[float], top_k: int = 10) -> List[Tuple[float, Entity]]:
        """Nearest entities to vector, best first."""
        pass

    @abstractmethod
    def query(self, collection: str, text: str, top_k: int = 10) -> List[Entity]:
        """Embed text and return the nearest entities."""
        pass

    @abstractmethod
    def count(self, collection: str) -> int:
        """Number of points in the collection."""
        pass

    @abstractmethod
    def list_collections(self) -> List[str]:
        pass

    @abstractmethod
    def delete_collection(self, name: str) -> bool:
        pass
