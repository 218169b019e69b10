"""Unit tests for the JSON-backed vector store."""

import json

import pytest

from vault_agents.documents import FileSystemDocuments
from vault_agents.rag.errors import DimensionMismatchError
from vault_agents.rag.vectorstore import (
    INDEX_VERSION,
    StoreRegistry,
    VectorEntry,
    VectorEntryMetadata,
    VectorIndex,
    VectorStore,
    dot_product,
    index_path_for,
)


def make_entry(entry_id, vector, file_path="notes/a.md", mtime=100.0, heading="A", content="text"):
    return VectorEntry(
        id=entry_id,
        vector=vector,
        metadata=VectorEntryMetadata(
            file_path=file_path,
            heading_path=heading,
            content=content,
            char_count=len(content),
            last_modified=mtime,
        ),
    )


@pytest.fixture
def store(documents):
    store = VectorStore(documents, "agents/writer")
    store.load()
    return store


class TestHelpers:
    def test_dot_product(self):
        assert dot_product([1.0, 2.0, 3.0], [4.0, 5.0, 6.0]) == 32.0

    def test_dot_product_uses_shorter_vector(self):
        assert dot_product([1.0, 1.0], [2.0, 3.0, 4.0]) == 5.0

    def test_index_path(self):
        assert index_path_for("agents/writer") == "agents/writer/rag/index.json"
        assert index_path_for("agents/writer/") == "agents/writer/rag/index.json"


class TestLoad:
    """Loading tolerates missing and broken files."""

    def test_missing_file_gives_empty_index(self, documents):
        index = VectorStore(documents, "agents/writer").load()

        assert index.entries == []
        assert index.version == INDEX_VERSION
        assert index.embedding_model == ""
        assert index.dimension == 0

    def test_malformed_json_gives_empty_index(self, documents, vault):
        path = vault / "agents/writer/rag/index.json"
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")

        assert VectorStore(documents, "agents/writer").load().entries == []

    def test_wrong_version_gives_empty_index(self, documents, vault):
        index = VectorIndex(embedding_model="m", dimension=2, entries=[make_entry("x", [1.0, 0.0])])
        data = index.to_dict()
        data["version"] = INDEX_VERSION + 1
        path = vault / "agents/writer/rag/index.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps(data), encoding="utf-8")

        loaded = VectorStore(documents, "agents/writer").load()
        assert loaded.entries == []
        assert loaded.embedding_model == ""

    def test_load_is_cached(self, store):
        assert store.load() is store.load()


class TestPersistence:
    def test_save_then_reload(self, store, documents, vault):
        store.upsert([make_entry("a", [0.6, 0.8])])
        store.set_embedding_model("model-a")
        store.save()

        raw = json.loads((vault / "agents/writer/rag/index.json").read_text(encoding="utf-8"))
        assert raw["version"] == INDEX_VERSION
        assert raw["embeddingModel"] == "model-a"
        assert raw["dimension"] == 2
        assert raw["lastIndexed"]
        assert raw["entries"][0]["metadata"]["filePath"] == "notes/a.md"

        reloaded = VectorStore(documents, "agents/writer").load()
        assert reloaded.embedding_model == "model-a"
        assert [e.id for e in reloaded.entries] == ["a"]
        assert reloaded.entries[0].vector == [0.6, 0.8]

    def test_save_overwrites_existing_file(self, store, documents):
        store.upsert([make_entry("a", [1.0, 0.0])])
        store.save()
        store.upsert([make_entry("b", [0.0, 1.0])])
        store.save()

        reloaded = VectorStore(documents, "agents/writer").load()
        assert sorted(e.id for e in reloaded.entries) == ["a", "b"]

    def test_clear_deletes_file_and_cache(self, store, vault):
        store.upsert([make_entry("a", [1.0, 0.0])])
        store.save()

        store.clear()

        assert not (vault / "agents/writer/rag/index.json").exists()
        assert not store.is_loaded
        assert store.load().entries == []

    def test_unload_keeps_file(self, store, vault):
        store.upsert([make_entry("a", [1.0, 0.0])])
        store.save()

        store.unload()

        assert not store.is_loaded
        assert (vault / "agents/writer/rag/index.json").exists()
        assert [e.id for e in store.load().entries] == ["a"]


class TestUpsertAndRemove:
    def test_upsert_replaces_same_id(self, store):
        store.upsert([make_entry("a", [1.0, 0.0], content="old")])
        store.upsert([make_entry("a", [0.0, 1.0], content="new")])

        entries = store.load().entries
        assert len(entries) == 1
        assert entries[0].metadata.content == "new"

    def test_first_vector_sets_dimension(self, store):
        store.upsert([make_entry("a", [1.0, 0.0, 0.0])])

        assert store.load().dimension == 3

    def test_mismatched_dimension_rejects_whole_batch(self, store):
        store.upsert([make_entry("a", [1.0, 0.0])])

        with pytest.raises(DimensionMismatchError) as exc_info:
            store.upsert([make_entry("b", [0.0, 1.0]), make_entry("c", [1.0, 0.0, 0.0])])

        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 3
        assert [e.id for e in store.load().entries] == ["a"]

    def test_remove_ignores_unknown_ids(self, store):
        store.upsert([make_entry("a", [1.0, 0.0]), make_entry("b", [0.0, 1.0])])

        store.remove(["a", "missing"])

        assert [e.id for e in store.load().entries] == ["b"]

    def test_removing_last_entry_resets_dimension(self, store):
        store.upsert([make_entry("a", [1.0, 0.0])])
        store.remove(["a"])

        assert store.load().dimension == 0
        store.upsert([make_entry("b", [1.0, 0.0, 0.0])])
        assert store.load().dimension == 3

    def test_remove_paths_counts_entries(self, store):
        store.upsert([
            make_entry("a1", [1.0, 0.0], file_path="notes/a.md"),
            make_entry("a2", [0.0, 1.0], file_path="notes/a.md"),
            make_entry("b1", [1.0, 0.0], file_path="notes/b.md"),
        ])

        assert store.remove_paths(["notes/a.md"]) == 2
        assert [e.id for e in store.load().entries] == ["b1"]

    def test_mutations_before_load_are_ignored(self, documents):
        store = VectorStore(documents, "agents/writer")

        store.upsert([make_entry("a", [1.0])])
        store.remove(["a"])

        assert not store.is_loaded
        assert store.search([1.0], 5, 0.0) == []


class TestSearch:
    @pytest.fixture
    def populated(self, store):
        store.upsert([
            make_entry("high", [0.9, 0.1]),
            make_entry("mid", [0.6, 0.4]),
            make_entry("low", [0.3, 0.7]),
        ])
        return store

    def test_threshold_and_order(self, populated):
        results = populated.search([1.0, 0.0], top_k=5, threshold=0.5)

        assert [r.entry.id for r in results] == ["high", "mid"]
        assert results[0].similarity == pytest.approx(0.9)
        assert results[1].similarity == pytest.approx(0.6)

    def test_threshold_is_inclusive(self, populated):
        results = populated.search([1.0, 0.0], top_k=5, threshold=0.6)

        assert [r.entry.id for r in results] == ["high", "mid"]

    def test_top_k_limits_results(self, populated):
        results = populated.search([1.0, 0.0], top_k=1, threshold=0.0)

        assert [r.entry.id for r in results] == ["high"]

    def test_non_positive_top_k_returns_nothing(self, populated):
        assert populated.search([1.0, 0.0], top_k=0, threshold=0.0) == []

    def test_empty_index_returns_nothing(self, store):
        assert store.search([1.0, 0.0], top_k=5, threshold=0.0) == []


class TestStaleFiles:
    def test_new_modified_and_removed(self, store):
        store.upsert([
            make_entry("a", [1.0, 0.0], file_path="notes/a.md", mtime=100.0),
            make_entry("b", [1.0, 0.0], file_path="notes/b.md", mtime=100.0),
            make_entry("gone", [1.0, 0.0], file_path="notes/gone.md", mtime=100.0),
        ])

        stale, removed = store.get_stale_files({
            "notes/a.md": 100.0,
            "notes/b.md": 200.0,
            "notes/new.md": 50.0,
        })

        assert sorted(stale) == ["notes/b.md", "notes/new.md"]
        assert removed == ["notes/gone.md"]

    def test_older_mtime_is_not_stale(self, store):
        store.upsert([make_entry("a", [1.0, 0.0], file_path="notes/a.md", mtime=100.0)])

        stale, removed = store.get_stale_files({"notes/a.md": 90.0})

        assert stale == []
        assert removed == []


class TestStats:
    def test_stats_of_unloaded_store(self, documents):
        stats = VectorStore(documents, "agents/writer").get_stats()

        assert stats.total_chunks == 0
        assert stats.index_size_bytes == 0

    def test_counts_chunks_and_files(self, store):
        store.upsert([
            make_entry("a1", [1.0, 0.0], file_path="notes/a.md"),
            make_entry("a2", [0.0, 1.0], file_path="notes/a.md"),
            make_entry("b1", [1.0, 0.0], file_path="notes/b.md"),
        ])
        store.set_embedding_model("model-a")

        stats = store.get_stats()

        assert stats.total_chunks == 3
        assert stats.total_files == 2
        assert stats.embedding_model == "model-a"
        assert stats.index_size_bytes > 0


class TestStoreRegistry:
    def test_same_key_returns_same_store(self, documents):
        registry = StoreRegistry()

        assert registry.get("agents/writer", documents) is registry.get("agents/writer", documents)
        assert "agents/writer" in registry
        assert len(registry) == 1

    def test_evict_unloads_store(self, documents):
        registry = StoreRegistry()
        store = registry.get("agents/writer", documents)
        store.load()

        registry.evict("agents/writer")

        assert not store.is_loaded
        assert "agents/writer" not in registry
        assert registry.get("agents/writer", documents) is not store

    def test_stores_are_separate_per_vault(self, tmp_path):
        registry = StoreRegistry()
        vault_a = FileSystemDocuments(tmp_path / "a")
        vault_b = FileSystemDocuments(tmp_path / "b")

        store_a = registry.get("agents/writer", vault_a)
        store_b = registry.get("agents/writer", vault_b)

        assert store_a is not store_b
        assert store_a.documents is vault_a
        assert store_b.documents is vault_b
        assert len(registry) == 2

        registry.evict("agents/writer")
        assert len(registry) == 0

    def test_clear_evicts_everything(self, documents):
        registry = StoreRegistry()
        registry.get("agents/a", documents)
        registry.get("agents/b", documents)

        registry.clear()

        assert len(registry) == 0
