"""Snapshot file - whole-store persistence between process runs.

A snapshot is a single JSON document holding every collection with its
options and entries. It is written on shutdown and read on startup; it is
not a write-ahead log, and a crash between the two loses changes.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from pydantic import ValidationError

from .records import CollectionSnapshot, StoreSnapshot

logger = logging.getLogger(__name__)


class SnapshotFile:
    """Reads and writes a ``StoreSnapshot`` at a fixed path.

    Example:
        snapshot = SnapshotFile("data/memories.json")
        snapshot.save(collections, dimensions=1536)
        restored = snapshot.load()
    """

    def __init__(self, path: Path | str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> StoreSnapshot | None:
        """Load the snapshot.

        Returns:
            The parsed snapshot, or None if the file does not exist

        Raises:
            ValueError: If the file exists but cannot be parsed
        """
        if not self.exists():
            logger.debug(f"No snapshot at {self._path}")
            return None

        try:
            snapshot = StoreSnapshot.model_validate_json(
                self._path.read_text(encoding="utf-8")
            )
        except ValidationError as e:
            raise ValueError(f"Corrupt snapshot at {self._path}: {e}") from e

        logger.info(
            f"Loaded snapshot {self._path} "
            f"({len(snapshot.collections)} collections)"
        )
        return snapshot

    def save(self, collections: list[CollectionSnapshot], dimensions: int) -> StoreSnapshot:
        """Write all collections to the snapshot file, replacing it."""
        snapshot = StoreSnapshot(
            dimensions=dimensions,
            saved_at=int(time.time() * 1000),
            collections=collections,
        )

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            snapshot.model_dump_json(by_alias=True, exclude_none=True, indent=2),
            encoding="utf-8",
        )

        total = sum(len(c.entries) for c in collections)
        logger.info(
            f"Saved snapshot {self._path} "
            f"({len(collections)} collections, {total} entries)"
        )
        return snapshot


__all__ = ["SnapshotFile"]
