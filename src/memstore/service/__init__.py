"""Service layer - configuration, logging and executor plumbing."""

from .config import EmbeddingProvider, StoreConfig
from .logging import configure_logging, get_logger

__all__ = ["EmbeddingProvider", "StoreConfig", "configure_logging", "get_logger"]
