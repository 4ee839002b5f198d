"""Data models for codeindex."""

from __future__ import annotations

import dataclasses
import enum
from typing import Any, Dict, List, Optional

KIND_FUNCTION = "Function"
KIND_METHOD = "Method"
KIND_FUNCTION_COMPONENT = "Function Component"
KIND_STRUCT = "Struct"
KIND_CLASS = "Class"
KIND_ENUM = "Enum"
KIND_INTERFACE = "Interface"
KIND_TRAIT = "Trait"
KIND_IMPL = "Impl"
KIND_MODULE = "Module"
KIND_IMPORT = "Import"
KIND_CONSTANT = "Constant"
KIND_VARIABLE = "Variable"
KIND_TYPE_ALIAS = "Type Alias"
KIND_MERGED = "Merged Chunk"

# Kinds that fine-grained merging folds together.
FINE_MERGE_KINDS = frozenset({KIND_IMPORT, KIND_CONSTANT, KIND_VARIABLE})


class Granularity(enum.IntEnum):
    """How aggressively adjacent entities are merged. FINE < MEDIUM < COARSE."""

    FINE = 1
    MEDIUM = 2
    COARSE = 3

    @classmethod
    def parse(cls, value: "str | Granularity | None") -> "Granularity":
        if value is None:
            return cls.FINE
        if isinstance(value, Granularity):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(
                f"Invalid granularity level: {value!r}. Use fine, medium, or coarse."
            ) from None

    def __str__(self) -> str:
        return self.name.lower()


@dataclasses.dataclass
class EntityContext:
    """Lexical placement of an entity inside its source file."""

    file_path: str
    file_name: str
    snippet: str
    module: Optional[str] = None
    enclosing_type_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "file_path": self.file_path,
            "file_name": self.file_name,
            "enclosing_type_name": self.enclosing_type_name,
            "snippet": self.snippet,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EntityContext":
        return cls(
            file_path=data["file_path"],
            file_name=data["file_name"],
            snippet=data["snippet"],
            module=data.get("module"),
            enclosing_type_name=data.get("enclosing_type_name"),
        )


@dataclasses.dataclass
class Entity:
    """One retrievable code unit: a function, type, import, chunk, etc."""

    name: str
    signature: str
    kind: str
    line: int
    line_from: int
    line_to: int
    context: EntityContext
    docstring: Optional[str] = None
    embedding: Optional[List[float]] = None

    @property
    def snippet(self) -> str:
        return self.context.snippet

    def payload(self) -> Dict[str, Any]:
        """Entity fields without the embedding, as stored next to a vector."""
        return {
            "name": self.name,
            "signature": self.signature,
            "kind": self.kind,
            "docstring": self.docstring,
            "line": self.line,
            "line_from": self.line_from,
            "line_to": self.line_to,
            "context": self.context.to_dict(),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.payload()
        if self.embedding is not None:
            data["embedding"] = list(self.embedding)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entity":
        embedding = data.get("embedding")
        return cls(
            name=data["name"],
            signature=data["signature"],
            kind=data["kind"],
            docstring=data.get("docstring"),
            line=int(data["line"]),
            line_from=int(data["line_from"]),
            line_to=int(data["line_to"]),
            context=EntityContext.from_dict(data["context"]),
            embedding=[float(v) for v in embedding] if embedding is not None else None,
        )
