"""Memory Store - collections of embedded memories and everything done to them.

The store owns the collections, computes embeddings through an injected
``EmbeddingModel``, delegates queries to ``QueryEngine``, and handles the
session-scoped, statistics and export/import operations built on top.

Not-found conditions are reported as ``None``/``False`` return values.
Nothing here retries; embedding failures propagate to the caller.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable

from ..service.config import EmbeddingProvider, StoreConfig
from .collection import Collection
from .embedding import EmbeddingModel, create_embedding_model
from .errors import EmbeddingDimensionError, StoreNotInitializedError
from .models import (
    CollectionOptions,
    MemoryEntry,
    MemoryMetadata,
    MemoryRecord,
    MemoryStats,
    MemoryType,
)
from .query import QueryEngine, SearchParams, SearchResult

if TYPE_CHECKING:
    from ..persistence.records import CollectionSnapshot, MemoryEntryRecord, StoreSnapshot

logger = logging.getLogger(__name__)

# Routing table used by add_session_memory
TYPE_TO_COLLECTION: dict[MemoryType, str] = {
    MemoryType.CODE: "code",
    MemoryType.SNIPPET: "code",
    MemoryType.CHAT: "chat",
    MemoryType.FEEDBACK: "chat",
    MemoryType.REFERENCE: "reference",
    MemoryType.CONTEXT: "context",
}
FALLBACK_COLLECTION = "context"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _coerce_metadata(metadata: MemoryMetadata | dict[str, Any]) -> MemoryMetadata:
    if isinstance(metadata, MemoryMetadata):
        return metadata
    return MemoryMetadata(**metadata)


def collection_for_type(memory_type: MemoryType | str) -> str:
    """Collection a memory of the given type is filed under."""
    return TYPE_TO_COLLECTION.get(MemoryType(memory_type), FALLBACK_COLLECTION)


class MemoryStore:
    """In-process vector-backed memory store.

    Example:
        store = MemoryStore(StoreConfig(dimensions=64))
        await store.initialize()

        entry = await store.add_memory(
            "notes",
            "buy milk",
            MemoryMetadata(type=MemoryType.CHAT, source="user", tags={"todo"}),
        )
        result = await store.search_memories("notes", query="buy milk")
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        *,
        embedding_model: EmbeddingModel | None = None,
        time_provider: Callable[[], int] | None = None,
    ) -> None:
        self.config = config or StoreConfig()
        if embedding_model is None:
            embedding_model = create_embedding_model(
                self.config.embedding_provider,
                self.config.dimensions,
                self.config.embedding_model,
            )
            if self.config.embedding_provider != EmbeddingProvider.HASH:
                # Model-backed providers fix their own vector length
                model_dimension = embedding_model.dimension
                if model_dimension != self.config.dimensions:
                    logger.info(
                        f"Using {self.config.embedding_model} dimension "
                        f"{model_dimension} instead of configured "
                        f"{self.config.dimensions}"
                    )
                    self.config = replace(self.config, dimensions=model_dimension)
        self._embedding_model = embedding_model
        self._time_provider = time_provider or _now_ms
        self._collections: dict[str, Collection] = {}
        self._query_engine = QueryEngine(self.embed_text)
        self._initialized = False
        self._shut_down = False

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Restore the snapshot (if configured) and create default collections."""
        if self._initialized:
            return

        self._shut_down = False
        if self.config.persistence_path:
            from ..persistence.snapshot import SnapshotFile

            snapshot = SnapshotFile(self.config.persistence_path).load()
            if snapshot is not None:
                await self._restore(snapshot)

        for name in self.config.default_collections:
            self._ensure_collection(name)

        self._initialized = True
        logger.info(
            f"Memory store initialized with {len(self._collections)} collections "
            f"(dim={self.config.dimensions})"
        )

    async def shutdown(self) -> None:
        """Save the snapshot (if configured) and drop every collection."""
        if self.config.persistence_path and not self._shut_down:
            from ..persistence.snapshot import SnapshotFile

            SnapshotFile(self.config.persistence_path).save(
                self._snapshot_collections(), dimensions=self.config.dimensions
            )

        for collection in self._collections.values():
            collection.clear()
        self._collections.clear()
        self._initialized = False
        self._shut_down = True
        logger.info("Memory store shut down")

    def _check_open(self) -> None:
        if self._shut_down:
            raise StoreNotInitializedError("Memory store has been shut down")

    def _now(self) -> int:
        return self._time_provider()

    # -----------------------------------------------------------------------
    # Embeddings
    # -----------------------------------------------------------------------

    async def embed_text(self, text: str) -> list[float]:
        """Embed text with the configured model, enforcing the dimension."""
        vector = await self._embedding_model.embed_query(text)
        if len(vector) != self.config.dimensions:
            raise EmbeddingDimensionError(self.config.dimensions, len(vector))
        return vector

    # -----------------------------------------------------------------------
    # Collections
    # -----------------------------------------------------------------------

    async def create_collection(
        self,
        name: str,
        metadata: dict[str, Any] | None = None,
        dimensions: int | None = None,
    ) -> CollectionOptions:
        """Create a collection; a no-op returning existing options if present."""
        self._check_open()
        return self._ensure_collection(name, metadata, dimensions).options

    def _ensure_collection(
        self,
        name: str,
        metadata: dict[str, Any] | None = None,
        dimensions: int | None = None,
    ) -> Collection:
        existing = self._collections.get(name)
        if existing is not None:
            return existing

        options = CollectionOptions(
            name=name,
            metadata=dict(metadata or {}),
            dimensions=dimensions or self.config.dimensions,
        )
        collection = Collection(options)
        self._collections[name] = collection
        logger.debug(f"Created collection '{name}'")
        return collection

    async def delete_collection(self, name: str) -> bool:
        """Delete a collection and every entry in it."""
        self._check_open()
        collection = self._collections.pop(name, None)
        if collection is None:
            return False
        removed = collection.clear()
        logger.info(f"Deleted collection '{name}' ({removed} entries)")
        return True

    async def list_collections(self) -> list[str]:
        self._check_open()
        return list(self._collections)

    async def get_collection_info(self, name: str) -> CollectionOptions | None:
        self._check_open()
        collection = self._collections.get(name)
        return collection.options if collection is not None else None

    # -----------------------------------------------------------------------
    # Entries
    # -----------------------------------------------------------------------

    async def add_memory(
        self,
        collection: str,
        content: str,
        metadata: MemoryMetadata | dict[str, Any],
    ) -> MemoryEntry:
        """Store a new memory, creating the collection if needed."""
        self._check_open()
        metadata = _coerce_metadata(metadata)
        embedding = await self.embed_text(content)

        target = self._ensure_collection(collection)
        now = self._now()
        entry = MemoryEntry(
            id=target.new_id(),
            content=content,
            metadata=metadata,
            created_at=now,
            updated_at=now,
            embedding=embedding,
        )
        target.put(entry)

        logger.debug(f"Added memory {entry.id} to collection '{collection}'")
        return entry

    async def get_memory(self, collection: str, entry_id: str) -> MemoryEntry | None:
        self._check_open()
        target = self._collections.get(collection)
        if target is None:
            return None
        return target.get(entry_id)

    async def update_memory(
        self,
        collection: str,
        entry_id: str,
        *,
        content: str | None = None,
        metadata: MemoryMetadata | dict[str, Any] | None = None,
    ) -> MemoryEntry | None:
        """Apply updates to an entry.

        A metadata dict is merged field by field onto the existing metadata.
        The embedding is recomputed only when the content actually changes.

        Returns:
            The new entry, or None if the collection or entry does not exist
        """
        self._check_open()
        target = self._collections.get(collection)
        existing = target.get(entry_id) if target is not None else None
        if existing is None:
            return None

        changes: dict[str, Any] = {}
        if metadata is not None:
            changes["metadata"] = existing.metadata.merge(metadata)
        if content is not None and content != existing.content:
            changes["content"] = content
            changes["embedding"] = await self.embed_text(content)

        # updated_at must move forward even within the same millisecond
        changes["updated_at"] = max(self._now(), existing.updated_at + 1)
        updated = replace(existing, **changes)

        # The entry may have been deleted while the embedding was computed
        if entry_id not in target:
            return None
        target.put(updated)

        logger.debug(f"Updated memory {entry_id} in collection '{collection}'")
        return updated

    async def delete_memory(self, collection: str, entry_id: str) -> bool:
        self._check_open()
        target = self._collections.get(collection)
        if target is None:
            return False
        return target.delete(entry_id)

    async def add_memories(
        self,
        collection: str,
        entries: Iterable[tuple[str, MemoryMetadata | dict[str, Any]]],
    ) -> list[MemoryEntry]:
        """Add (content, metadata) pairs one at a time.

        The first failure propagates; entries added before it stay stored.
        """
        results = []
        for content, metadata in entries:
            results.append(await self.add_memory(collection, content, metadata))
        return results

    async def get_memories(self, collection: str, ids: Sequence[str]) -> list[MemoryEntry]:
        """Fetch several entries, skipping ids that do not exist."""
        results = []
        for entry_id in ids:
            entry = await self.get_memory(collection, entry_id)
            if entry is not None:
                results.append(entry)
        return results

    # -----------------------------------------------------------------------
    # Search
    # -----------------------------------------------------------------------

    async def search_memories(
        self,
        collection: str,
        params: SearchParams | None = None,
        **kwargs: Any,
    ) -> SearchResult:
        """Search a collection.

        Pass either a ``SearchParams`` or its fields as keyword arguments.
        """
        self._check_open()
        if params is None:
            params = SearchParams(**kwargs)
        elif kwargs:
            params = replace(params, **kwargs)
        return await self._query_engine.search(self._collections.get(collection), params)

    async def find_similar(
        self, collection: str, content: str, **overrides: Any
    ) -> SearchResult:
        """Entries similar to ``content`` (threshold 0.7, top 10 by default)."""
        options: dict[str, Any] = {"threshold": 0.7, "max_results": 10}
        options.update(overrides)
        options["query"] = content
        return await self.search_memories(collection, SearchParams(**options))

    # -----------------------------------------------------------------------
    # Sessions
    # -----------------------------------------------------------------------

    async def get_session_memories(
        self,
        session_id: str,
        types: Sequence[MemoryType | str] | None = None,
    ) -> list[MemoryRecord]:
        """All entries of a session across collections.

        Each collection contributes at most ``config.session_scan_limit``
        entries; larger sessions are truncated with a warning.
        """
        limit = self.config.session_scan_limit
        memories: list[MemoryRecord] = []
        for name in await self.list_collections():
            result = await self.search_memories(
                name,
                SearchParams(session_id=session_id, types=types, max_results=limit),
            )
            if result.total_found > limit:
                logger.warning(
                    f"Session {session_id} has {result.total_found} entries in "
                    f"'{name}', returning the first {limit}"
                )
            memories.extend(result.entries)
        return memories

    async def clear_session_memories(self, session_id: str) -> bool:
        """Delete every entry of a session in every collection.

        Returns:
            True if at least one entry was deleted
        """
        self._check_open()
        deleted = 0
        for collection in self._collections.values():
            for entry in collection.entries():
                if entry.metadata.session_id == session_id and collection.delete(entry.id):
                    deleted += 1

        logger.info(f"Cleared {deleted} memories for session {session_id}")
        return deleted > 0

    async def add_session_memory(
        self,
        session_id: str,
        content: str,
        memory_type: MemoryType | str,
        source: str = "user",
        tags: Iterable[str] = (),
    ) -> MemoryEntry:
        """Store a session memory in the collection its type routes to."""
        metadata = MemoryMetadata(
            type=memory_type,
            source=source,
            session_id=session_id,
            tags=frozenset(tags),
        )
        return await self.add_memory(collection_for_type(memory_type), content, metadata)

    # -----------------------------------------------------------------------
    # Statistics
    # -----------------------------------------------------------------------

    async def get_memory_stats(self, collection: str) -> MemoryStats:
        """Count, last update, mean embedding length and type histogram.

        An unknown collection yields all-zero statistics.
        """
        self._check_open()
        target = self._collections.get(collection)
        if target is None:
            return MemoryStats()

        stats = MemoryStats(count=len(target))
        embedding_sizes = []
        for entry in target.entries():
            type_name = entry.metadata.type.value
            stats.types[type_name] = stats.types.get(type_name, 0) + 1
            if entry.embedding:
                embedding_sizes.append(len(entry.embedding))
            stats.last_updated = max(stats.last_updated, entry.updated_at)

        if embedding_sizes:
            stats.avg_embedding_size = sum(embedding_sizes) / len(embedding_sizes)
        return stats

    # -----------------------------------------------------------------------
    # Export / Import
    # -----------------------------------------------------------------------

    async def export_memories(self, collection: str, include_embeddings: bool = True) -> str:
        """Serialize a collection's entries as a JSON list.

        At most ``config.export_limit`` entries are written, oldest first.
        """
        from ..persistence.records import MemoryEntryRecord

        self._check_open()
        target = self._collections.get(collection)
        entries = target.entries() if target is not None else []
        if len(entries) > self.config.export_limit:
            logger.warning(
                f"Export of '{collection}' truncated to "
                f"{self.config.export_limit} of {len(entries)} entries"
            )
            entries = entries[: self.config.export_limit]

        payload = [
            MemoryEntryRecord.from_entry(entry, include_embeddings).dump()
            for entry in entries
        ]
        return json.dumps(payload, indent=2)

    async def import_memories(self, collection: str, data: str) -> int:
        """Load entries produced by ``export_memories``.

        Ids, embeddings and timestamps are preserved. An id already issued in
        the target collection gets a fresh id instead; an embedding of the
        wrong length is recomputed. Records without content or metadata are
        skipped. A payload that is not a JSON list imports nothing.

        Returns:
            Number of entries imported
        """
        from pydantic import ValidationError

        from ..persistence.records import MemoryEntryRecord

        self._check_open()
        try:
            raw = json.loads(data)
            if not isinstance(raw, list):
                raise ValueError(f"expected a JSON list, got {type(raw).__name__}")
        except ValueError as e:
            logger.error(f"Error importing memories into '{collection}': {e}")
            return 0

        imported = 0
        for item in raw:
            if not isinstance(item, dict) or not item.get("content") or not item.get("metadata"):
                continue
            try:
                record = MemoryEntryRecord.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Skipping invalid memory record: {e.error_count()} errors")
                continue

            await self._import_record(collection, record)
            imported += 1

        logger.info(f"Imported {imported} memories into '{collection}'")
        return imported

    async def _import_record(
        self, collection: str, record: MemoryEntryRecord
    ) -> MemoryEntry:
        target = self._ensure_collection(collection)

        if record.id and target.claim_id(record.id):
            entry_id = record.id
        else:
            entry_id = target.new_id()

        embedding = record.embedding
        if embedding is None or len(embedding) != self.config.dimensions:
            embedding = await self.embed_text(record.content)

        entry = record.to_entry(entry_id, embedding, self._now())
        target.put(entry)
        return entry

    # -----------------------------------------------------------------------
    # Snapshots
    # -----------------------------------------------------------------------

    def _snapshot_collections(self) -> list[CollectionSnapshot]:
        from ..persistence.records import CollectionSnapshot, MemoryEntryRecord

        return [
            CollectionSnapshot(
                name=collection.name,
                metadata=collection.options.metadata,
                dimensions=collection.options.dimensions,
                entries=[MemoryEntryRecord.from_entry(e) for e in collection.entries()],
            )
            for collection in self._collections.values()
        ]

    async def _restore(self, snapshot: StoreSnapshot) -> None:
        """Rebuild collections from a snapshot, keeping ids and timestamps.

        Embeddings written with another dimension are recomputed.
        """
        if snapshot.dimensions != self.config.dimensions:
            logger.warning(
                f"Snapshot dimension {snapshot.dimensions} differs from "
                f"configured {self.config.dimensions}; re-embedding entries"
            )

        for saved in snapshot.collections:
            collection = Collection(saved.options())
            for record in saved.entries:
                embedding = record.embedding
                if embedding is None or len(embedding) != self.config.dimensions:
                    embedding = await self.embed_text(record.content)
                collection.put(record.to_entry(record.id, embedding, self._now()))
            self._collections[saved.name] = collection

        logger.debug(f"Restored {len(snapshot.collections)} collections from snapshot")


__all__ = [
    "FALLBACK_COLLECTION",
    "MemoryStore",
    "TYPE_TO_COLLECTION",
    "collection_for_type",
]
