"""Unit tests for memory records and metadata."""

import pytest

from memstore.memory.models import (
    MemoryEntry,
    MemoryMetadata,
    MemoryRecord,
    MemoryType,
    to_response,
)


def _entry(**overrides):
    values = dict(
        id="mem_000000000001",
        content="hello",
        metadata=MemoryMetadata(type=MemoryType.CHAT, source="user"),
        created_at=1,
        updated_at=1,
        embedding=[0.6, 0.8],
    )
    values.update(overrides)
    return MemoryEntry(**values)


class TestMemoryMetadata:
    """Tests for metadata coercion and merging."""

    def test_type_coerced_from_string(self):
        metadata = MemoryMetadata(type="code", source="ai")
        assert metadata.type is MemoryType.CODE

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            MemoryMetadata(type="video", source="user")

    def test_tags_become_a_set(self):
        metadata = MemoryMetadata(type="chat", source="user", tags=["a", "b", "a"])
        assert metadata.tags == frozenset({"a", "b"})

    def test_merge_dict_keeps_other_fields(self):
        metadata = MemoryMetadata(
            type="chat", source="user", session_id="s1", tags={"todo"}
        )
        merged = metadata.merge({"title": "Groceries"})

        assert merged.title == "Groceries"
        assert merged.session_id == "s1"
        assert merged.tags == frozenset({"todo"})
        assert metadata.title is None

    def test_merge_full_metadata_replaces(self):
        metadata = MemoryMetadata(type="chat", source="user", session_id="s1")
        replacement = MemoryMetadata(type="code", source="ai")

        merged = metadata.merge(replacement)

        assert merged == replacement
        assert merged.session_id is None

    def test_merge_unknown_field(self):
        metadata = MemoryMetadata(type="chat", source="user")
        with pytest.raises(ValueError, match="colour"):
            metadata.merge({"colour": "blue"})

    def test_has_any_tag(self):
        metadata = MemoryMetadata(type="chat", source="user", tags={"a", "b"})
        assert metadata.has_any_tag(["b", "z"])
        assert not metadata.has_any_tag(["z"])
        assert not metadata.has_any_tag([])


class TestProjection:
    """Tests for the entry/record projection."""

    def test_to_record_drops_embedding(self):
        record = _entry().to_record()
        assert type(record) is MemoryRecord
        assert not hasattr(record, "embedding")
        assert record.id == "mem_000000000001"

    def test_to_response_default_strips_vector(self):
        assert type(to_response(_entry())) is MemoryRecord

    def test_to_response_with_embeddings(self):
        entry = _entry()
        response = to_response(entry, include_embeddings=True)
        assert isinstance(response, MemoryEntry)
        assert response.embedding == [0.6, 0.8]

    def test_entries_are_immutable(self):
        entry = _entry()
        with pytest.raises(AttributeError):
            entry.content = "changed"
