"""Persistence layer - Export records and snapshot files."""

from .records import CollectionSnapshot, MemoryEntryRecord, MetadataRecord, StoreSnapshot
from .snapshot import SnapshotFile

__all__ = [
    "CollectionSnapshot",
    "MemoryEntryRecord",
    "MetadataRecord",
    "SnapshotFile",
    "StoreSnapshot",
]
