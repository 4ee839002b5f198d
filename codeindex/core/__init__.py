"""Core functionality for codeindex."""

from .models import Entity, EntityContext, Granularity
from .chunking import split_entity, post_process_entities
from .embeddings import Embedder, OpenAIEmbedder, make_embedder, generate_embeddings

__all__ = [
    "Entity",
    "EntityContext",
    "Granularity",
    "split_entity",
    "post_process_entities",
    "Embedder",
    "OpenAIEmbedder",
    "make_embedder",
    "generate_embeddings",
]
