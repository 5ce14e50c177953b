"""Pydantic models for the serialized memory format.

These models define the export payload and the snapshot file. Field names
are camelCase on the wire and snake_case in Python.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..memory.models import (
    CollectionOptions,
    MemoryEntry,
    MemoryMetadata,
    MemoryType,
)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MetadataRecord(_WireModel):
    """Serialized ``MemoryMetadata``."""

    type: MemoryType
    source: str
    session_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    language: str | None = None
    title: str | None = None
    importance: float | None = None
    custom: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_metadata(cls, metadata: MemoryMetadata) -> MetadataRecord:
        return cls(
            type=metadata.type,
            source=metadata.source,
            session_id=metadata.session_id,
            tags=sorted(metadata.tags),
            language=metadata.language,
            title=metadata.title,
            importance=metadata.importance,
            custom=metadata.custom,
        )

    def to_metadata(self) -> MemoryMetadata:
        return MemoryMetadata(
            type=self.type,
            source=self.source,
            session_id=self.session_id,
            tags=frozenset(self.tags),
            language=self.language,
            title=self.title,
            importance=self.importance,
            custom=self.custom,
        )


class MemoryEntryRecord(_WireModel):
    """A single exported memory entry."""

    id: str = ""
    content: str = Field(..., min_length=1)
    metadata: MetadataRecord
    embedding: list[float] | None = None
    created_at: int | None = None
    updated_at: int | None = None

    @field_validator("embedding")
    @classmethod
    def _validate_embedding(cls, values: list[float] | None) -> list[float] | None:
        if values is not None and not values:
            return None
        return values

    @classmethod
    def from_entry(
        cls, entry: MemoryEntry, include_embedding: bool = True
    ) -> MemoryEntryRecord:
        return cls(
            id=entry.id,
            content=entry.content,
            metadata=MetadataRecord.from_metadata(entry.metadata),
            embedding=list(entry.embedding) if include_embedding and entry.embedding else None,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )

    def to_entry(
        self, entry_id: str, embedding: list[float] | None, now: int
    ) -> MemoryEntry:
        """Build a stored entry; missing timestamps default to ``now``."""
        created_at = self.created_at if self.created_at is not None else now
        updated_at = self.updated_at if self.updated_at is not None else created_at
        return MemoryEntry(
            id=entry_id,
            content=self.content,
            metadata=self.metadata.to_metadata(),
            created_at=created_at,
            updated_at=updated_at,
            embedding=embedding,
        )

    def dump(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CollectionSnapshot(_WireModel):
    """One collection inside a snapshot file."""

    name: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    dimensions: int | None = None
    entries: list[MemoryEntryRecord] = Field(default_factory=list)

    def options(self) -> CollectionOptions:
        return CollectionOptions(
            name=self.name, metadata=self.metadata, dimensions=self.dimensions
        )


class StoreSnapshot(_WireModel):
    """Whole-store snapshot written by ``SnapshotFile``."""

    version: int = 1
    dimensions: int
    saved_at: int
    collections: list[CollectionSnapshot] = Field(default_factory=list)


__all__ = [
    "CollectionSnapshot",
    "MemoryEntryRecord",
    "MetadataRecord",
    "StoreSnapshot",
]
