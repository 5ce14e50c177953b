"""Exceptions raised by the memory layer."""

from __future__ import annotations


class MemoryStoreError(Exception):
    """Base class for memory store errors."""


class EmbeddingDimensionError(MemoryStoreError, ValueError):
    """An embedding model returned a vector of the wrong length."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Embedding has {actual} dimensions, store is configured for {expected}"
        )
        self.expected = expected
        self.actual = actual


class StoreNotInitializedError(MemoryStoreError, RuntimeError):
    """The store was used after shutdown() without a new initialize()."""


__all__ = [
    "MemoryStoreError",
    "EmbeddingDimensionError",
    "StoreNotInitializedError",
]
