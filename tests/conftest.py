"""Pytest fixtures for codeindex tests."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest
from qdrant_client import QdrantClient

from codeindex.core.embeddings import Embedder
from codeindex.core.models import Entity, EntityContext
from codeindex.core.retry import BackoffPolicy
from codeindex.storage.qdrant import QdrantVectorStore

TEST_DIMENSION = 4


# --- Fake embedding service ---


class FakeEmbedder(Embedder):
    """Deterministic in-process embedder.

    `failures` maps a snippet to exceptions raised one per call, in order,
    before the snippet embeds; snippets in `broken` always fail.
    """

    def __init__(self, dimension: int = TEST_DIMENSION, delay: float = 0.0) -> None:
        self.dimension = dimension
        self.delay = delay
        self.calls: List[str] = []
        self.failures: Dict[str, List[BaseException]] = {}
        self.broken: Dict[str, BaseException] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    def vector_for(self, text: str) -> List[float]:
        base = [1.0, float(len(text) % 7) + 1.0, 0.5, 0.25]
        return (base * (self.dimension // 4 + 1))[: self.dimension]

    def _check_failure(self, text: str) -> None:
        if text in self.broken:
            raise self.broken[text]
        pending = self.failures.get(text)
        if pending:
            raise pending.pop(0)

    def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.extend(texts)
        for text in texts:
            self._check_failure(text)
        return [self.vector_for(t) for t in texts]

    async def aembed(self, texts: List[str]) -> List[List[float]]:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return self.embed(texts)
        finally:
            self.in_flight -= 1


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fast_policy() -> BackoffPolicy:
    """Backoff policy that never sleeps."""
    return BackoffPolicy(initial_delay=0.0, multiplier=1.0, max_delay=0.0, max_elapsed=5.0, jitter=0.0)


# --- Entities ---


@pytest.fixture
def make_entity() -> Callable[..., Entity]:
    def _make(
        name: str = "item",
        kind: str = "Function",
        snippet: str = "fn item() {}",
        line_from: int = 1,
        line_to: Optional[int] = None,
        file_path: str = "src/lib.rs",
        docstring: Optional[str] = None,
        embedding: Optional[List[float]] = None,
        line: Optional[int] = None,
    ) -> Entity:
        if line_to is None:
            line_to = line_from + snippet.count("\n")
        return Entity(
            name=name,
            signature=snippet.splitlines()[0] if snippet else name,
            kind=kind,
            docstring=docstring,
            line=line if line is not None else line_from,
            line_from=line_from,
            line_to=line_to,
            context=EntityContext(
                file_path=file_path,
                file_name=Path(file_path).name,
                snippet=snippet,
                module="lib",
            ),
            embedding=embedding,
        )

    return _make


# --- Source trees ---


@pytest.fixture
def write_tree(tmp_path: Path) -> Callable[[Dict[str, object]], Path]:
    """Create files under tmp_path from a {relative path: str | bytes} mapping."""

    def _write(files: Dict[str, object]) -> Path:
        for rel, content in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return tmp_path

    return _write


# --- Vector store ---


@pytest.fixture
def qdrant_client() -> QdrantClient:
    client = QdrantClient(":memory:")
    yield client
    client.close()


@pytest.fixture
def store(qdrant_client: QdrantClient, fake_embedder: FakeEmbedder) -> QdrantVectorStore:
    return QdrantVectorStore(
        url=":memory:",
        embedder=fake_embedder,
        vector_size=TEST_DIMENSION,
        client=qdrant_client,
    )
