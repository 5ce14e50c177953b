"""Configuration primitives for the memory store."""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

DEFAULT_DIMENSION = 1536


class EmbeddingProvider(str, Enum):
    """Supported embedding providers."""

    HASH = "hash"
    HUGGINGFACE = "huggingface"


def _split_names(value: str) -> tuple[str, ...]:
    return tuple(name.strip() for name in value.split(",") if name.strip())


@dataclass(slots=True)
class StoreConfig:
    """Runtime configuration for a ``MemoryStore``.

    Configuration Sources (priority order):
    1. Direct constructor arguments
    2. Environment variables (MEMSTORE_*)
    3. Default values

    Attributes:
        dimensions: Embedding vector length (default: 1536)
        embedding_provider: Embedding model provider (default: hash)
        embedding_model: Model identifier for non-hash providers
        persistence_path: Snapshot file loaded on start, saved on shutdown
        default_collections: Collections created on initialize()
        session_scan_limit: Per-collection cap for session lookups (default: 1000)
        export_limit: Max entries serialized by an export (default: 10000)
    """

    dimensions: int = DEFAULT_DIMENSION
    embedding_provider: EmbeddingProvider = EmbeddingProvider.HASH
    embedding_model: str = "all-MiniLM-L6-v2"
    persistence_path: str | None = None
    default_collections: Sequence[str] = ()
    session_scan_limit: int = 1000
    export_limit: int = 10_000

    def __post_init__(self) -> None:
        self.embedding_provider = EmbeddingProvider(self.embedding_provider)
        if self.dimensions <= 0:
            raise ValueError("dimensions must be positive")
        if self.session_scan_limit <= 0:
            raise ValueError("session_scan_limit must be positive")
        if self.export_limit <= 0:
            raise ValueError("export_limit must be positive")

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Create configuration from environment variables.

        Optional:
            MEMSTORE_DIMENSIONS: Embedding dimension (default: 1536)
            MEMSTORE_EMBEDDING_PROVIDER: 'hash' or 'huggingface'
            MEMSTORE_EMBEDDING_MODEL: Model identifier
            MEMSTORE_PERSISTENCE_PATH: Snapshot file path
            MEMSTORE_DEFAULT_COLLECTIONS: Comma-separated collection names
            MEMSTORE_SESSION_SCAN_LIMIT: Per-collection session scan cap
            MEMSTORE_EXPORT_LIMIT: Export size cap
        """
        return cls(
            dimensions=int(os.environ.get("MEMSTORE_DIMENSIONS", str(DEFAULT_DIMENSION))),
            embedding_provider=EmbeddingProvider(
                os.environ.get("MEMSTORE_EMBEDDING_PROVIDER", "hash").lower()
            ),
            embedding_model=os.environ.get(
                "MEMSTORE_EMBEDDING_MODEL", "all-MiniLM-L6-v2"
            ),
            persistence_path=os.environ.get("MEMSTORE_PERSISTENCE_PATH") or None,
            default_collections=_split_names(
                os.environ.get("MEMSTORE_DEFAULT_COLLECTIONS", "")
            ),
            session_scan_limit=int(
                os.environ.get("MEMSTORE_SESSION_SCAN_LIMIT", "1000")
            ),
            export_limit=int(os.environ.get("MEMSTORE_EXPORT_LIMIT", "10000")),
        )
