"""
memstore - Vector-backed memory store.

Stores free-text memories in named collections, attaches deterministic
embeddings to them, and answers similarity and filter queries.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
