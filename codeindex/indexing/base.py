"""Indexer Interface."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class Indexer:
    """Abstract base class for code indexing."""

    async def index(self, root: Path, collection: Optional[str] = None, **options):
        raise NotImplementedError
