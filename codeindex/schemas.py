"""Pydantic models for pipeline request parameters."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .config.manager import DEFAULT_EXCLUDE_DIRS
from .core.models import Granularity
from .utils.file_utils import normalize_extensions


class IndexRequest(BaseModel):
    """Parameters for parsing a directory into entities."""

    root_dir: str = Field(..., min_length=1, description="Directory to index")
    extensions: List[str] = Field(..., min_length=1, description="File extensions to include")
    exclude_dirs: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    max_snippet_size: Optional[int] = Field(default=None, gt=0)
    granularity: Granularity = Granularity.FINE

    @field_validator("extensions")
    @classmethod
    def extensions_must_not_be_empty(cls, v: List[str]) -> List[str]:
        """Normalise extensions and reject lists with nothing usable."""
        normalized = normalize_extensions(v)
        if not normalized:
            raise ValueError("extensions must contain at least one non-empty extension")
        return normalized

    @field_validator("granularity", mode="before")
    @classmethod
    def parse_granularity(cls, v):
        return Granularity.parse(v)


class EmbeddingOptions(BaseModel):
    model: Optional[str] = None
    api_key: Optional[str] = None
    api_base: Optional[str] = None


class QueryRequest(BaseModel):
    collection: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1, description="Query text")
    top_k: int = Field(default=10, ge=1, description="Number of entities to return")

    @field_validator("text")
    @classmethod
    def text_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text cannot be empty or whitespace")
        return v


class BuildIndexRequest(IndexRequest):
    """Full pipeline: parse, embed and upsert into a collection."""

    collection: str = Field(..., min_length=1)
    qdrant_url: Optional[str] = None
    embedding: EmbeddingOptions = Field(default_factory=EmbeddingOptions)

    def config_overrides(self) -> dict:
        """Config overrides for load_config; unset values keep their defaults."""
        return {
            "embedding": {
                "model": self.embedding.model,
                "api_key": self.embedding.api_key,
                "api_base": self.embedding.api_base,
            },
            "vector_store": {"qdrant": {"url": self.qdrant_url}},
        }
