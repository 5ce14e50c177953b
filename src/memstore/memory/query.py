"""Query engine - filtering, similarity ranking, sorting and truncation.

Filters are expressed as a closed set of clause types instead of dotted
string paths. ``SearchParams`` shortcuts (session, types, tags, dates) are
translated into the same clauses, so every filter goes through one
evaluation path.

Pipeline for ``QueryEngine.search``:
    1. all entries of the collection, in insertion order
    2. filter clauses
    3. similarity scoring, threshold and descending sort (when a query is set)
    4. explicit sort (only when no similarity stage ran)
    5. total_found captured
    6. truncation to max_results
    7. projection (embeddings stripped unless requested)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from .collection import Collection
from .embedding import cosine_similarity
from .models import MemoryEntry, MemoryRecord, MemoryType, to_response

logger = logging.getLogger(__name__)


class EntryField(str, Enum):
    """Top-level entry fields addressable by ``FieldEquals``."""

    ID = "id"
    CONTENT = "content"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


class MetadataField(str, Enum):
    """Scalar metadata fields addressable by ``MetadataEquals``."""

    TYPE = "type"
    SOURCE = "source"
    SESSION_ID = "session_id"
    LANGUAGE = "language"
    TITLE = "title"
    IMPORTANCE = "importance"


class SortField(str, Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    IMPORTANCE = "importance"
    SIMILARITY = "similarity"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ---------------------------------------------------------------------------
# Filter clauses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SessionEquals:
    session_id: str

    def matches(self, entry: MemoryEntry) -> bool:
        return entry.metadata.session_id == self.session_id


@dataclass(frozen=True)
class TypesIn:
    types: frozenset[MemoryType]

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "types", frozenset(MemoryType(t) for t in self.types)
        )

    def matches(self, entry: MemoryEntry) -> bool:
        return entry.metadata.type in self.types


@dataclass(frozen=True)
class TagsIntersect:
    """Matches entries carrying at least one of the tags."""

    tags: frozenset[str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", frozenset(self.tags))

    def matches(self, entry: MemoryEntry) -> bool:
        return entry.metadata.has_any_tag(self.tags)


@dataclass(frozen=True)
class FieldEquals:
    field: EntryField
    value: Any

    def __post_init__(self) -> None:
        object.__setattr__(self, "field", EntryField(self.field))

    def matches(self, entry: MemoryEntry) -> bool:
        return getattr(entry, self.field.value) == self.value


@dataclass(frozen=True)
class MetadataEquals:
    field: MetadataField
    value: Any

    def __post_init__(self) -> None:
        object.__setattr__(self, "field", MetadataField(self.field))

    def matches(self, entry: MemoryEntry) -> bool:
        return getattr(entry.metadata, self.field.value) == self.value


@dataclass(frozen=True)
class CustomEquals:
    """Equality on a key of the open ``metadata.custom`` map."""

    key: str
    value: Any

    def matches(self, entry: MemoryEntry) -> bool:
        custom = entry.metadata.custom
        return self.key in custom and custom[self.key] == self.value


@dataclass(frozen=True)
class CreatedBetween:
    """Inclusive created_at range; either bound may be open."""

    start: int | None = None
    end: int | None = None

    def matches(self, entry: MemoryEntry) -> bool:
        if self.start is not None and entry.created_at < self.start:
            return False
        if self.end is not None and entry.created_at > self.end:
            return False
        return True


FilterClause = Union[
    SessionEquals,
    TypesIn,
    TagsIntersect,
    FieldEquals,
    MetadataEquals,
    CustomEquals,
    CreatedBetween,
]


# ---------------------------------------------------------------------------
# Parameters and results
# ---------------------------------------------------------------------------


@dataclass
class SearchParams:
    """Parameters for ``QueryEngine.search``; every field is optional.

    Attributes:
        query: Text to embed and rank by similarity
        embedding: Precomputed query vector, used when ``query`` is unset
        session_id: Keep entries of this session only
        types: Keep entries whose type is in this set
        tags: Keep entries sharing at least one tag
        start_date: Minimum created_at (epoch ms, inclusive)
        end_date: Maximum created_at (epoch ms, inclusive)
        filters: Additional filter clauses, all of which must match
        max_results: Truncate the result list to this many entries
        threshold: Minimum similarity (only with a query)
        include_embeddings: Return vector-carrying entries
        sort_by: Sort field when no similarity ranking applies
        sort_direction: Direction for ``sort_by``
    """

    query: str | None = None
    embedding: list[float] | None = None
    session_id: str | None = None
    types: Sequence[MemoryType | str] | None = None
    tags: Sequence[str] | None = None
    start_date: int | None = None
    end_date: int | None = None
    filters: Sequence[FilterClause] = field(default_factory=list)
    max_results: int | None = None
    threshold: float | None = None
    include_embeddings: bool = False
    sort_by: SortField | str | None = None
    sort_direction: SortDirection | str = SortDirection.DESC

    def __post_init__(self) -> None:
        # A lone string is one type/tag, not a sequence of characters
        if isinstance(self.types, str):
            self.types = (self.types,)
        if isinstance(self.tags, str):
            self.tags = (self.tags,)
        if self.sort_by is not None:
            self.sort_by = SortField(self.sort_by)
        self.sort_direction = SortDirection(self.sort_direction)
        if self.max_results is not None and self.max_results < 0:
            raise ValueError("max_results must be non-negative")

    def clauses(self) -> list[FilterClause]:
        """Translate the shortcut fields into filter clauses."""
        clauses: list[FilterClause] = []
        if self.session_id:
            clauses.append(SessionEquals(self.session_id))
        if self.types:
            clauses.append(TypesIn(frozenset(self.types)))
        if self.tags:
            clauses.append(TagsIntersect(frozenset(self.tags)))
        if self.start_date is not None or self.end_date is not None:
            clauses.append(CreatedBetween(self.start_date, self.end_date))
        clauses.extend(self.filters)
        return clauses


@dataclass
class SearchResult:
    """Result of a search.

    ``total_found`` counts matches before ``max_results`` truncation.
    ``scores`` maps entry id to similarity and is empty when no
    similarity ranking ran.
    """

    entries: list[MemoryRecord] = field(default_factory=list)
    total_found: int = 0
    scores: dict[str, float] = field(default_factory=dict)
    search_time_ms: float = 0.0


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _sort_key_value(
    entry: MemoryEntry, sort_by: SortField, scores: dict[str, float]
) -> Any:
    if sort_by == SortField.SIMILARITY:
        return scores.get(entry.id)
    if sort_by == SortField.IMPORTANCE:
        return entry.metadata.importance
    return getattr(entry, sort_by.value)


def sort_entries(
    entries: list[MemoryEntry],
    sort_by: SortField,
    direction: SortDirection,
    scores: dict[str, float] | None = None,
) -> list[MemoryEntry]:
    """Stable sort; entries without a value for the field go last."""
    scores = scores or {}
    keyed = [(e, _sort_key_value(e, sort_by, scores)) for e in entries]
    present = [(e, k) for e, k in keyed if k is not None]
    missing = [e for e, k in keyed if k is None]
    present.sort(key=lambda pair: pair[1], reverse=direction == SortDirection.DESC)
    return [e for e, _ in present] + missing


class QueryEngine:
    """Evaluates ``SearchParams`` against a collection.

    Args:
        embed: Coroutine function turning query text into a vector
    """

    def __init__(self, embed: Callable[[str], Awaitable[list[float]]]):
        self._embed = embed

    @staticmethod
    def apply_filters(
        entries: list[MemoryEntry], clauses: Sequence[FilterClause]
    ) -> list[MemoryEntry]:
        if not clauses:
            return entries
        return [e for e in entries if all(c.matches(e) for c in clauses)]

    async def search(
        self, collection: Collection | None, params: SearchParams
    ) -> SearchResult:
        start = time.perf_counter()
        if collection is None:
            return SearchResult()

        entries = self.apply_filters(collection.entries(), params.clauses())
        scores: dict[str, float] = {}

        query_vector = params.embedding
        if params.query:
            query_vector = await self._embed(params.query)

        if query_vector is not None:
            for entry in entries:
                scores[entry.id] = cosine_similarity(query_vector, entry.embedding or [])
            if params.threshold is not None:
                entries = [e for e in entries if scores[e.id] >= params.threshold]
            entries = sort_entries(entries, SortField.SIMILARITY, SortDirection.DESC, scores)
        elif params.sort_by is not None:
            entries = sort_entries(entries, params.sort_by, params.sort_direction)

        total_found = len(entries)
        if params.max_results is not None:
            entries = entries[: params.max_results]

        kept_ids = {e.id for e in entries}
        search_time = (time.perf_counter() - start) * 1000
        logger.debug(
            f"Search in '{collection.name}' matched {total_found}, "
            f"returned {len(entries)} ({search_time:.2f}ms)"
        )

        return SearchResult(
            entries=[to_response(e, params.include_embeddings) for e in entries],
            total_found=total_found,
            scores={k: v for k, v in scores.items() if k in kept_ids},
            search_time_ms=search_time,
        )


__all__ = [
    "CreatedBetween",
    "CustomEquals",
    "EntryField",
    "FieldEquals",
    "FilterClause",
    "MetadataEquals",
    "MetadataField",
    "QueryEngine",
    "SearchParams",
    "SearchResult",
    "SessionEquals",
    "SortDirection",
    "SortField",
    "TagsIntersect",
    "TypesIn",
    "sort_entries",
]
