"""Embedding models and vector similarity.

The store talks to embeddings only through the ``EmbeddingModel`` interface,
so the deterministic ``HashEmbedding`` used by default can be replaced by a
real model (see ``HuggingFaceEmbedding``) without touching any caller.
"""

from __future__ import annotations

import logging
import math
import struct
from abc import ABC, abstractmethod
from typing import Any

from ..service.config import DEFAULT_DIMENSION, EmbeddingProvider

logger = logging.getLogger(__name__)


class EmbeddingModel(ABC):
    """Abstract base class for embedding models.

    Supports both sync and async embedding operations.
    The async versions use thread pool execution by default,
    but can be overridden when embedding is cheap or natively async.
    """

    @abstractmethod
    def embed_sync(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of texts into vectors (synchronous).

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors (each is a list of floats)
        """

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of texts into vectors (async).

        Default implementation runs sync version in thread pool.
        """
        from memstore.service.executor import run_in_executor
        return await run_in_executor(self.embed_sync, texts)

    def embed_query_sync(self, text: str) -> list[float]:
        """Embed a single text (synchronous)."""
        return self.embed_sync([text])[0]

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single text (async)."""
        results = await self.embed([text])
        return results[0]

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the embedding dimension."""


def rolling_hash(text: str) -> int:
    """31-multiplier rolling hash over UTF-16 code units, as signed 32-bit."""
    value = 0
    data = text.encode("utf-16-le", "surrogatepass")
    for (unit,) in struct.iter_unpack("<H", data):
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 0x100000000
    return value


class HashEmbedding(EmbeddingModel):
    """Deterministic placeholder embedding derived from a text hash.

    Identical text always yields the identical vector for a given
    dimension. The vector carries no semantic meaning; it only makes
    exact-content matches score 1.0 and everything else score lower.
    """

    def __init__(self, dimension: int = DEFAULT_DIMENSION):
        if dimension <= 0:
            raise ValueError("Embedding dimension must be positive")
        self._dimension = dimension

    def embed_text(self, text: str) -> list[float]:
        seed = rolling_hash(text)
        vector = [math.sin(seed * (i + 1)) * 0.5 for i in range(self._dimension)]

        norm = math.sqrt(sum(x * x for x in vector))
        if norm == 0:
            # Empty text hashes to 0 and produces the zero vector
            return vector
        return [x / norm for x in vector]

    def embed_sync(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_text(text) for text in texts]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Computed inline; too cheap to be worth a thread hop."""
        return self.embed_sync(texts)

    @property
    def dimension(self) -> int:
        return self._dimension


# Global cache for expensive embedding models (avoids reloading per instance)
_EMBEDDING_MODEL_CACHE: dict[str, Any] = {}


class HuggingFaceEmbedding(EmbeddingModel):
    """HuggingFace sentence-transformers embedding model.

    CPU-bound operations run in thread pool automatically via base class.
    Models are cached globally to avoid expensive reloads.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension: int | None = None

    def _load_model(self):
        if self._model is not None:
            return

        if self.model_name in _EMBEDDING_MODEL_CACHE:
            cached = _EMBEDDING_MODEL_CACHE[self.model_name]
            self._model = cached["model"]
            self._dimension = cached["dimension"]
            logger.debug(f"Using cached HuggingFace model {self.model_name}")
            return

        try:
            from sentence_transformers import SentenceTransformer
        except ImportError:
            raise ImportError(
                "sentence-transformers is required for HuggingFace embeddings. "
                "Install with: pip install memstore[huggingface]"
            )

        logger.info(f"Loading HuggingFace model {self.model_name}...")
        model = SentenceTransformer(self.model_name)
        dimension = model.get_sentence_embedding_dimension()

        _EMBEDDING_MODEL_CACHE[self.model_name] = {
            "model": model,
            "dimension": dimension,
        }
        self._model = model
        self._dimension = dimension
        logger.info(
            f"Loaded and cached HuggingFace model {self.model_name} "
            f"(dim={self._dimension})"
        )

    def embed_sync(self, texts: list[str]) -> list[list[float]]:
        self._load_model()
        embeddings = self._model.encode(texts, convert_to_numpy=True)
        return [emb.tolist() for emb in embeddings]

    @property
    def dimension(self) -> int:
        self._load_model()
        return self._dimension or 384


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Compute cosine similarity between two vectors.

    Returns 0.0 when the lengths differ, either vector is empty, or either
    magnitude is zero.
    """
    if len(a) != len(b) or not a:
        return 0.0

    dot_product = 0.0
    sq_a = 0.0
    sq_b = 0.0
    for x, y in zip(a, b):
        dot_product += x * y
        sq_a += x * x
        sq_b += y * y

    if sq_a == 0 or sq_b == 0:
        return 0.0
    # sqrt of the product (not product of sqrts) keeps self-similarity at exactly 1.0
    similarity = dot_product / math.sqrt(sq_a * sq_b)
    return max(-1.0, min(1.0, similarity))


def create_embedding_model(
    provider: EmbeddingProvider | str = EmbeddingProvider.HASH,
    dimension: int = DEFAULT_DIMENSION,
    model_name: str = "all-MiniLM-L6-v2",
) -> EmbeddingModel:
    """Factory function to create an embedding model.

    Args:
        provider: Embedding provider (hash, huggingface)
        dimension: Vector dimension for the hash provider
        model_name: Model name for the huggingface provider

    Returns:
        Configured EmbeddingModel instance
    """
    provider = EmbeddingProvider(provider)
    if provider == EmbeddingProvider.HUGGINGFACE:
        return HuggingFaceEmbedding(model_name)
    return HashEmbedding(dimension)


__all__ = [
    "DEFAULT_DIMENSION",
    "EmbeddingModel",
    "EmbeddingProvider",
    "HashEmbedding",
    "HuggingFaceEmbedding",
    "cosine_similarity",
    "create_embedding_model",
    "rolling_hash",
]
