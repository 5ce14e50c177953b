"""Collection - a named partition of memory entries."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator

from .models import CollectionOptions, MemoryEntry

logger = logging.getLogger(__name__)


class Collection:
    """In-memory mapping from entry id to ``MemoryEntry``.

    Entries are kept in insertion order so iteration is deterministic.
    Every id handed out or accepted is remembered for the lifetime of the
    collection, so an id is never reused after deletion.

    Example:
        notes = Collection(CollectionOptions(name="notes"))
        entry_id = notes.new_id()
        notes.put(MemoryEntry(id=entry_id, ...))
        notes.get(entry_id)
    """

    def __init__(self, options: CollectionOptions):
        self.options = options
        self._entries: dict[str, MemoryEntry] = {}
        self._issued_ids: set[str] = set()

    @property
    def name(self) -> str:
        return self.options.name

    def new_id(self) -> str:
        """Generate an id never seen before in this collection."""
        while True:
            entry_id = f"mem_{uuid.uuid4().hex[:12]}"
            if entry_id not in self._issued_ids:
                self._issued_ids.add(entry_id)
                return entry_id

    def claim_id(self, entry_id: str) -> bool:
        """Reserve an externally supplied id.

        Returns:
            True if the id was free, False if it was already issued
        """
        if entry_id in self._issued_ids:
            return False
        self._issued_ids.add(entry_id)
        return True

    def put(self, entry: MemoryEntry) -> None:
        """Insert or replace an entry; replacing keeps its position."""
        self._issued_ids.add(entry.id)
        self._entries[entry.id] = entry

    def get(self, entry_id: str) -> MemoryEntry | None:
        return self._entries.get(entry_id)

    def delete(self, entry_id: str) -> bool:
        """Delete an entry.

        Returns:
            True if deleted, False if not found
        """
        if entry_id in self._entries:
            del self._entries[entry_id]
            return True
        return False

    def clear(self) -> int:
        """Remove every entry; issued ids stay reserved.

        Returns:
            Number of entries removed
        """
        count = len(self._entries)
        self._entries.clear()
        logger.debug(f"Cleared {count} entries from collection '{self.name}'")
        return count

    def entries(self) -> list[MemoryEntry]:
        """Snapshot of all entries in insertion order."""
        return list(self._entries.values())

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    def __iter__(self) -> Iterator[MemoryEntry]:
        return iter(self.entries())

    def __len__(self) -> int:
        return len(self._entries)
