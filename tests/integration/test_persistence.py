"""Integration tests for export/import and snapshot files."""

import json

import pytest

from memstore.memory import MemoryStore, MemoryType
from memstore.persistence import MemoryEntryRecord, SnapshotFile
from memstore.service.config import StoreConfig


class TestExport:
    """Tests for export_memories."""

    @pytest.mark.asyncio
    async def test_export_format(self, store, meta):
        entry = await store.add_memory(
            "notes", "buy milk", meta(session_id="s1", tags={"b", "a"})
        )

        payload = json.loads(await store.export_memories("notes"))

        assert len(payload) == 1
        item = payload[0]
        assert item["id"] == entry.id
        assert item["content"] == "buy milk"
        assert item["createdAt"] == entry.created_at
        assert item["updatedAt"] == entry.updated_at
        assert item["metadata"]["sessionId"] == "s1"
        assert item["metadata"]["tags"] == ["a", "b"]
        assert item["metadata"]["type"] == "chat"
        assert len(item["embedding"]) == 64

    @pytest.mark.asyncio
    async def test_export_without_embeddings(self, store, meta):
        await store.add_memory("notes", "x", meta())
        payload = json.loads(await store.export_memories("notes", include_embeddings=False))
        assert "embedding" not in payload[0]

    @pytest.mark.asyncio
    async def test_export_missing_collection(self, store):
        assert json.loads(await store.export_memories("missing")) == []

    @pytest.mark.asyncio
    async def test_export_limit(self, clock, meta):
        store = MemoryStore(StoreConfig(dimensions=8, export_limit=2), time_provider=clock)
        for i in range(4):
            await store.add_memory("notes", f"n{i}", meta())

        payload = json.loads(await store.export_memories("notes"))

        assert [item["content"] for item in payload] == ["n0", "n1"]


class TestImport:
    """Tests for import_memories."""

    @pytest.mark.asyncio
    async def test_round_trip_preserves_entries(self, store, config, meta):
        original = await store.add_memory(
            "notes", "buy milk", meta(session_id="s1", tags={"todo"}, importance=0.5)
        )
        data = await store.export_memories("notes")

        target = MemoryStore(config)
        assert await target.import_memories("notes", data) == 1

        restored = await target.get_memory("notes", original.id)
        assert restored == original

    @pytest.mark.asyncio
    async def test_reimport_into_same_collection_gets_fresh_ids(self, store, meta):
        original = await store.add_memory("notes", "buy milk", meta())
        data = await store.export_memories("notes")

        assert await store.import_memories("notes", data) == 1

        result = await store.search_memories("notes")
        assert result.total_found == 2
        ids = {e.id for e in result.entries}
        assert original.id in ids
        assert all(entry_id.startswith("mem_") for entry_id in ids)

    @pytest.mark.asyncio
    async def test_import_without_embeddings_reembeds(self, store, config, meta):
        original = await store.add_memory("notes", "buy milk", meta())
        data = await store.export_memories("notes", include_embeddings=False)

        target = MemoryStore(config)
        await target.import_memories("notes", data)

        restored = await target.get_memory("notes", original.id)
        assert restored.embedding == pytest.approx(original.embedding)

    @pytest.mark.asyncio
    async def test_import_wrong_dimension_reembeds(self, store, meta):
        record = {
            "id": "mem_abcdefabcdef",
            "content": "hello",
            "metadata": {"type": "chat", "source": "user"},
            "embedding": [1.0, 0.0],
        }

        assert await store.import_memories("notes", json.dumps([record])) == 1

        entry = await store.get_memory("notes", "mem_abcdefabcdef")
        assert len(entry.embedding) == 64

    @pytest.mark.asyncio
    async def test_import_missing_timestamps_default_to_now(self, store, clock):
        record = {"content": "hello", "metadata": {"type": "code", "source": "ai"}}

        await store.import_memories("notes", json.dumps([record]))

        [entry] = (await store.search_memories("notes")).entries
        assert entry.created_at == entry.updated_at == clock.now
        assert entry.metadata.type is MemoryType.CODE

    @pytest.mark.asyncio
    async def test_import_skips_incomplete_records(self, store):
        records = [
            {"content": "", "metadata": {"type": "chat", "source": "user"}},
            {"content": "no metadata"},
            {"content": "bad type", "metadata": {"type": "video", "source": "user"}},
            "not an object",
            {"content": "good", "metadata": {"type": "chat", "source": "user"}},
        ]

        assert await store.import_memories("notes", json.dumps(records)) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", ["not json", '{"content": "x"}', "42"])
    async def test_import_invalid_payload(self, store, data):
        assert await store.import_memories("notes", data) == 0
        assert (await store.get_memory_stats("notes")).count == 0


class TestSnapshotFile:
    """Tests for SnapshotFile and store restore."""

    def test_load_missing(self, tmp_path):
        assert SnapshotFile(tmp_path / "none.json").load() is None

    def test_load_corrupt(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{broken", encoding="utf-8")
        with pytest.raises(ValueError):
            SnapshotFile(path).load()

    @pytest.mark.asyncio
    async def test_save_creates_parent_dirs(self, tmp_path, config, meta):
        path = tmp_path / "nested" / "dir" / "memories.json"
        store = MemoryStore(config)
        entry = await store.add_memory("notes", "x", meta())

        snapshot = SnapshotFile(path).save(store._snapshot_collections(), dimensions=64)

        assert path.is_file()
        assert snapshot.collections[0].entries[0] == MemoryEntryRecord.from_entry(entry)
        assert SnapshotFile(path).load().model_dump() == snapshot.model_dump()

    @pytest.mark.asyncio
    async def test_store_restores_on_initialize(self, tmp_path, meta):
        config = StoreConfig(dimensions=32, persistence_path=str(tmp_path / "mem.json"))

        first = MemoryStore(config)
        await first.initialize()
        await first.create_collection("notes", {"owner": "me"})
        entry = await first.add_memory("notes", "buy milk", meta(session_id="s1"))
        await first.shutdown()

        second = MemoryStore(config)
        await second.initialize()

        assert await second.list_collections() == ["notes"]
        assert (await second.get_collection_info("notes")).metadata == {"owner": "me"}
        assert await second.get_memory("notes", entry.id) == entry

        new_entry = await second.add_memory("notes", "another", meta())
        assert new_entry.id != entry.id

    @pytest.mark.asyncio
    async def test_restore_with_new_dimension_reembeds(self, tmp_path, meta):
        path = str(tmp_path / "mem.json")
        first = MemoryStore(StoreConfig(dimensions=16, persistence_path=path))
        await first.initialize()
        entry = await first.add_memory("notes", "buy milk", meta())
        await first.shutdown()

        second = MemoryStore(StoreConfig(dimensions=24, persistence_path=path))
        await second.initialize()

        restored = await second.get_memory("notes", entry.id)
        assert len(restored.embedding) == 24
        assert restored.created_at == entry.created_at
