"""Core memory records and their metadata."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Iterable


class MemoryType(str, Enum):
    """Kinds of memory that can be stored."""

    CODE = "code"
    CHAT = "chat"
    REFERENCE = "reference"
    SNIPPET = "snippet"
    FEEDBACK = "feedback"
    CONTEXT = "context"
    PROMPT = "prompt"
    RESPONSE = "response"
    USER_INPUT = "user_input"
    METADATA = "metadata"


@dataclass(frozen=True)
class MemoryMetadata:
    """Metadata attached to every memory entry for filtering and organization.

    Attributes:
        type: Kind of memory (coerced from its string value)
        source: Free-text origin label (user, ai, system, ...)
        session_id: Optional grouping key used by session operations
        tags: Set of tags; order is irrelevant
        language: Programming language if applicable
        title: Optional display title
        importance: Optional importance score
        custom: Open key/value map for extensions
    """

    type: MemoryType
    source: str
    session_id: str | None = None
    tags: frozenset[str] = frozenset()
    language: str | None = None
    title: str | None = None
    importance: float | None = None
    custom: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "type", MemoryType(self.type))
        object.__setattr__(self, "tags", frozenset(self.tags or ()))
        object.__setattr__(self, "custom", dict(self.custom or {}))

    def merge(self, updates: MemoryMetadata | dict[str, Any]) -> MemoryMetadata:
        """Return a copy with the given fields replaced.

        A dict merges only the keys it names; a full ``MemoryMetadata``
        replaces every field.
        """
        if isinstance(updates, MemoryMetadata):
            return updates
        known = {f.name for f in fields(self)}
        unknown = set(updates) - known
        if unknown:
            raise ValueError(f"Unknown metadata fields: {sorted(unknown)}")
        return replace(self, **updates)

    def has_any_tag(self, tags: Iterable[str]) -> bool:
        return not self.tags.isdisjoint(tags)


@dataclass(frozen=True)
class MemoryRecord:
    """A stored memory without its vector.

    This is the projection handed out by queries unless embeddings were
    explicitly requested.
    """

    id: str
    content: str
    metadata: MemoryMetadata
    created_at: int
    updated_at: int


@dataclass(frozen=True)
class MemoryEntry(MemoryRecord):
    """A stored memory together with its embedding vector."""

    embedding: list[float] | None = None

    def to_record(self) -> MemoryRecord:
        """Drop the vector."""
        return MemoryRecord(
            id=self.id,
            content=self.content,
            metadata=self.metadata,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def to_response(entry: MemoryEntry, include_embeddings: bool = False) -> MemoryRecord:
    """Convert a stored entry into what a query returns."""
    if include_embeddings:
        return entry
    return entry.to_record()


@dataclass(frozen=True)
class CollectionOptions:
    """Options a collection was created with."""

    name: str
    metadata: dict[str, Any] = field(default_factory=dict)
    dimensions: int | None = None


@dataclass
class MemoryStats:
    """Aggregate statistics about one collection."""

    count: int = 0
    last_updated: int = 0
    avg_embedding_size: float = 0.0
    types: dict[str, int] = field(default_factory=dict)


__all__ = [
    "CollectionOptions",
    "MemoryEntry",
    "MemoryMetadata",
    "MemoryRecord",
    "MemoryStats",
    "MemoryType",
    "to_response",
]
