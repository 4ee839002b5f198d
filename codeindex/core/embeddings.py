"""Embedding models and concurrent embedding generation."""

from __future__ import annotations

import asyncio
import functools
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import tiktoken
from openai import AsyncOpenAI, OpenAI

from ..exceptions import EmbeddingConfigError, EmbeddingError
from .models import Entity
from .retry import DEFAULT_POLICY, BackoffPolicy, is_transient_error, retry_async

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIMENSION = 1536
DEFAULT_CONCURRENCY = 10
DEFAULT_MAX_INPUT_TOKENS = 8191


@functools.lru_cache(maxsize=None)
def _encoder_for(model: str) -> "tiktoken.Encoding":
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        # Models unknown to tiktoken (self-hosted, proxies) use the OpenAI default.
        return tiktoken.get_encoding("cl100k_base")


def count_tokens(text: str, model: str = DEFAULT_EMBEDDING_MODEL) -> int:
    """Count tokens in text using the model's tiktoken encoding."""
    return len(_encoder_for(model).encode(text, disallowed_special=()))


def truncate_to_tokens(text: str, max_tokens: int, model: str = DEFAULT_EMBEDDING_MODEL) -> str:
    """Cut text down to at most max_tokens tokens.

    Every token covers at least one UTF-8 byte, so texts whose byte length
    is within the limit are returned without encoding them.
    """
    if len(text.encode("utf-8")) <= max_tokens:
        return text
    encoder = _encoder_for(model)
    tokens = encoder.encode(text, disallowed_special=())
    if len(tokens) <= max_tokens:
        return text
    logger.debug(f"Truncating embedding input from {len(tokens)} to {max_tokens} tokens")
    return encoder.decode(tokens[:max_tokens])


class Embedder:
    """Abstract base class for embedding models."""

    dimension: int = DEFAULT_EMBEDDING_DIMENSION

    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed multiple texts into vectors."""
        raise NotImplementedError

    def embed_one(self, text: str) -> List[float]:
        """Embed a single text into a vector."""
        return self.embed([text])[0]

    async def aembed(self, texts: List[str]) -> List[List[float]]:
        """Embed multiple texts without blocking the event loop."""
        raise NotImplementedError

    async def aembed_one(self, text: str) -> List[float]:
        return (await self.aembed([text]))[0]


class OpenAIEmbedder(Embedder):
    """Embedder backed by an OpenAI-compatible /embeddings endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_EMBEDDING_MODEL,
        api_base: Optional[str] = None,
        dimension: int = DEFAULT_EMBEDDING_DIMENSION,
        max_input_tokens: int = DEFAULT_MAX_INPUT_TOKENS,
        timeout: float = 60.0,
    ) -> None:
        self.model = model
        self.dimension = dimension
        self.max_input_tokens = max_input_tokens
        # Retries are driven by BackoffPolicy, not by the SDK.
        self._client = OpenAI(api_key=api_key, base_url=api_base, timeout=timeout, max_retries=0)
        self._aclient = AsyncOpenAI(api_key=api_key, base_url=api_base, timeout=timeout, max_retries=0)

    def _prepare(self, texts: Sequence[str]) -> List[str]:
        return [truncate_to_tokens(t, self.max_input_tokens, self.model) for t in texts]

    @staticmethod
    def _vectors(response, expected: int) -> List[List[float]]:
        data = sorted(response.data, key=lambda d: d.index)
        if len(data) != expected:
            raise EmbeddingError(f"Expected {expected} embeddings, received {len(data)}")
        return [list(d.embedding) for d in data]

    def embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        response = self._client.embeddings.create(model=self.model, input=self._prepare(texts))
        return self._vectors(response, len(texts))

    async def aembed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        response = await self._aclient.embeddings.create(model=self.model, input=self._prepare(texts))
        return self._vectors(response, len(texts))


def make_embedder(
    cfg: Dict,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    api_base: Optional[str] = None,
) -> Embedder:
    """Create embedder from config, letting explicit arguments win.

    Args:
        cfg: Configuration dictionary
        model: Embedding model name override
        api_key: API key override
        api_base: API base URL override

    Returns:
        Embedder instance

    Raises:
        EmbeddingConfigError: If no API key is available
    """
    emb_cfg = cfg.get("embedding", {})
    key = api_key or emb_cfg.get("api_key")
    if not key:
        raise EmbeddingConfigError(
            "OpenAI API key not found. Set OPENAI_API_KEY or pass an api key explicitly."
        )
    return OpenAIEmbedder(
        api_key=key,
        model=model or emb_cfg.get("model") or DEFAULT_EMBEDDING_MODEL,
        api_base=api_base or emb_cfg.get("api_base"),
        dimension=int(emb_cfg.get("dimension", DEFAULT_EMBEDDING_DIMENSION)),
        max_input_tokens=int(emb_cfg.get("max_input_tokens", DEFAULT_MAX_INPUT_TOKENS)),
        timeout=float(emb_cfg.get("timeout", 60.0)),
    )


def backoff_policy_from_config(cfg: Dict) -> BackoffPolicy:
    max_elapsed = cfg.get("embedding", {}).get("max_retry_seconds")
    if max_elapsed is None:
        return DEFAULT_POLICY
    return BackoffPolicy(max_elapsed=float(max_elapsed))


def needs_embedding(entity: Entity) -> bool:
    snippet = entity.context.snippet
    return entity.embedding is None and isinstance(snippet, str) and bool(snippet.strip())


async def _embed_entity(
    index: int,
    entity: Entity,
    embedder: Embedder,
    semaphore: asyncio.Semaphore,
    policy: BackoffPolicy,
) -> Tuple[int, Optional[List[float]]]:
    async with semaphore:
        try:
            vector = await retry_async(
                lambda: embedder.aembed_one(entity.context.snippet),
                is_transient_error,
                policy,
                label=f"entity '{entity.name}'",
            )
        except Exception as e:
            logger.warning(f"Failed to get embedding for entity '{entity.name}': {e}. Skipping.")
            return index, None
    return index, vector


async def generate_embeddings(
    entities: List[Entity],
    embedder: Optional[Embedder] = None,
    cfg: Optional[Dict] = None,
    concurrency: Optional[int] = None,
    policy: Optional[BackoffPolicy] = None,
) -> List[Entity]:
    """Populate `embedding` on every entity that lacks one.

    Entities that already carry a vector, or whose snippet is empty, are left
    alone. Up to `concurrency` requests are in flight at once; each one
    retries transient failures under `policy`. Failures leave the entity
    unembedded and never abort the batch.

    Args:
        entities: Entities to embed (mutated in place)
        embedder: Embedder to use; built from cfg when omitted
        cfg: Configuration dictionary
        concurrency: Maximum in-flight requests
        policy: Backoff policy for transient failures

    Returns:
        The same list, with embeddings filled in

    Raises:
        EmbeddingConfigError: If embedding is needed but no credentials exist
    """
    cfg = cfg or {}
    pending = [i for i, e in enumerate(entities) if needs_embedding(e)]
    if not pending:
        logger.info("All entities already have embeddings or empty snippets. Skipping generation.")
        return entities

    if embedder is None:
        embedder = make_embedder(cfg)
    if concurrency is None:
        concurrency = int(cfg.get("embedding", {}).get("concurrency", DEFAULT_CONCURRENCY))
    if policy is None:
        policy = backoff_policy_from_config(cfg)

    logger.info(f"Generating embeddings for {len(pending)} of {len(entities)} entities (concurrency={concurrency})")

    semaphore = asyncio.Semaphore(max(1, concurrency))
    results = await asyncio.gather(
        *(_embed_entity(i, entities[i], embedder, semaphore, policy) for i in pending)
    )

    updated = 0
    for index, vector in results:
        if vector is not None and entities[index].embedding is None:
            entities[index].embedding = vector
            updated += 1

    missing = len(pending) - updated
    if missing:
        logger.warning(f"{missing} entities without embeddings")
    logger.info(f"Embedding generation finished. Updated {updated} entities.")
    return entities


async def generate_embeddings_for_index(
    input_path: Path,
    output_path: Path,
    cfg: Dict,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    api_base: Optional[str] = None,
) -> int:
    """Read a JSON index, embed its entities and write the result.

    Returns:
        Number of entities carrying an embedding in the written index
    """
    from ..utils.file_utils import read_entities_json, write_entities_json

    entities = read_entities_json(input_path)
    if not entities:
        logger.info(f"No entities found in {input_path}")
        return 0

    embedder = None
    if any(needs_embedding(e) for e in entities):
        embedder = make_embedder(cfg, model=model, api_key=api_key, api_base=api_base)
    await generate_embeddings(entities, embedder=embedder, cfg=cfg)
    write_entities_json(entities, output_path)
    return sum(1 for e in entities if e.embedding is not None)
