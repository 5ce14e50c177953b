"""Memory layer - embeddings, collections, queries and the store."""

from .accessor import AccessorState, StoreAccessor
from .embedding import EmbeddingModel, HashEmbedding, cosine_similarity
from .errors import EmbeddingDimensionError, MemoryStoreError, StoreNotInitializedError
from .models import (
    CollectionOptions,
    MemoryEntry,
    MemoryMetadata,
    MemoryRecord,
    MemoryStats,
    MemoryType,
)
from .query import SearchParams, SearchResult
from .store import MemoryStore

__all__ = [
    "AccessorState",
    "CollectionOptions",
    "EmbeddingDimensionError",
    "EmbeddingModel",
    "HashEmbedding",
    "MemoryEntry",
    "MemoryMetadata",
    "MemoryRecord",
    "MemoryStats",
    "MemoryStore",
    "MemoryStoreError",
    "MemoryType",
    "SearchParams",
    "SearchResult",
    "StoreAccessor",
    "StoreNotInitializedError",
    "cosine_similarity",
]
