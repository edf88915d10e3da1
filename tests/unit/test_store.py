"""Unit tests for the persistence layer — memory store, repositories, chunk indexes."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from content_ingest.errors import NotFoundError
from content_ingest.models import KnowledgeChunk
from content_ingest.store import InMemoryBlobStore, InMemoryDocumentStore, LocalBlobStore, StoreChunkIndex
from content_ingest.store.chroma_index import ChromaChunkIndex, _build_chroma_where
from content_ingest.store.repositories import CatalogRepository


def _chunk(doc_id: str, text_hash: str, tenant_id: str = "t1") -> KnowledgeChunk:
    return KnowledgeChunk(tenant_id=tenant_id, doc_id=doc_id, chunk_index=0, text="x" * 60, text_hash=text_hash)


class TestInMemoryDocumentStore:
    def test_merge_is_deep(self, store: InMemoryDocumentStore) -> None:
        store.set("a/1", {"meta": {"x": 1, "y": 2}, "name": "first"})
        store.update("a/1", {"meta": {"y": 3}})
        assert store.get("a/1") == {"meta": {"x": 1, "y": 3}, "name": "first"}

    def test_set_without_merge_replaces(self, store: InMemoryDocumentStore) -> None:
        store.set("a/1", {"name": "first", "extra": True})
        store.set("a/1", {"name": "second"})
        assert store.get("a/1") == {"name": "second"}

    def test_reads_are_copies(self, store: InMemoryDocumentStore) -> None:
        store.set("a/1", {"tags": ["x"]})
        store.get("a/1")["tags"].append("y")
        assert store.get("a/1") == {"tags": ["x"]}

    def test_collection_path_rejected(self, store: InMemoryDocumentStore) -> None:
        with pytest.raises(ValueError, match="Not a document path"):
            store.set("a", {})

    def test_query_matches_dotted_fields(self, store: InMemoryDocumentStore) -> None:
        store.set("c/1", {"source": {"type": "doc", "docId": "d1"}})
        store.set("c/2", {"source": {"type": "doc", "docId": "d2"}})
        store.set("c/3/sub/4", {"source": {"type": "doc", "docId": "d1"}})
        assert [doc_id for doc_id, _ in store.query("c", {"source.docId": "d1"})] == ["1"]

    def test_query_group_spans_parents(self, store: InMemoryDocumentStore) -> None:
        store.set("docs/a/chunks/1", {"status": "active"})
        store.set("docs/b/chunks/2", {"status": "active"})
        store.set("docs/b/chunks/3", {"status": "inactive"})
        hits = store.query_group("chunks", {"status": "active"})
        assert sorted(path for path, _ in hits) == ["docs/a/chunks/1", "docs/b/chunks/2"]

    def test_transaction_commits_on_return(self, store: InMemoryDocumentStore) -> None:
        def move(txn):  # noqa: ANN001, ANN202
            txn.set("a/2", txn.get("a/1"))
            txn.set("a/1", {"moved": True}, merge=True)
            return "done"

        store.set("a/1", {"name": "x"})
        assert store.run_transaction(move) == "done"
        assert store.get("a/2") == {"name": "x"}
        assert store.get("a/1") == {"name": "x", "moved": True}

    def test_transaction_discards_on_error(self, store: InMemoryDocumentStore) -> None:
        def broken(txn):  # noqa: ANN001, ANN202
            txn.set("a/1", {"name": "x"})
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.run_transaction(broken)
        assert store.get("a/1") is None

    def test_batch_applies_on_commit(self, store: InMemoryDocumentStore) -> None:
        batch = store.batch()
        batch.set("a/1", {"n": 1})
        assert store.get("a/1") is None
        batch.commit()
        assert store.get("a/1") == {"n": 1}


class TestBlobStores:
    def test_memory_download(self, blobs: InMemoryBlobStore) -> None:
        blobs.put("uploads/menu.pdf", b"%PDF", "application/pdf")
        assert blobs.download("uploads/menu.pdf") == (b"%PDF", "application/pdf")
        with pytest.raises(NotFoundError):
            blobs.download("uploads/other.pdf")

    def test_local_download(self, tmp_path) -> None:  # noqa: ANN001
        (tmp_path / "uploads").mkdir()
        (tmp_path / "uploads" / "menu.png").write_bytes(b"png")
        local = LocalBlobStore(tmp_path)
        assert local.download("uploads/menu.png") == (b"png", "image/png")

    def test_local_refuses_escape(self, tmp_path) -> None:  # noqa: ANN001
        (tmp_path / "secret.txt").write_text("x")
        local = LocalBlobStore(tmp_path / "root")
        with pytest.raises(NotFoundError):
            local.download("../secret.txt")


class TestStoreChunkIndex:
    def test_count_excludes_doc(self, store: InMemoryDocumentStore) -> None:
        index = StoreChunkIndex(store)
        index.write([_chunk("d1", "h1"), _chunk("d1", "h2"), _chunk("d2", "h3"), _chunk("d3", "h4", tenant_id="t2")])
        assert index.count_active("t1") == 3
        assert index.count_active("t1", exclude_doc_id="d1") == 1

    def test_rewrite_is_idempotent(self, store: InMemoryDocumentStore) -> None:
        index = StoreChunkIndex(store)
        index.write([_chunk("d1", "h1")])
        index.write([_chunk("d1", "h1")])
        assert index.count_active("t1") == 1

    def test_set_doc_status(self, store: InMemoryDocumentStore) -> None:
        index = StoreChunkIndex(store)
        index.write([_chunk("d1", "h1"), _chunk("d1", "h2"), _chunk("d2", "h3")])
        assert index.set_doc_status("t1", "d1", "disabled") == 2
        assert index.count_active("t1") == 1
        assert store.get("businesses/t1/knowledgeDocs/d1/chunks/h1")["text"] == "x" * 60


class TestChromaChunkIndex:
    def test_where_single_clause(self) -> None:
        assert _build_chroma_where([("tenantId", "eq", "t1")]) == {"tenantId": {"$eq": "t1"}}

    def test_where_conjunction(self) -> None:
        where = _build_chroma_where([("tenantId", "eq", "t1"), ("docId", "ne", "d1")])
        assert where == {"$and": [{"tenantId": {"$eq": "t1"}}, {"docId": {"$ne": "d1"}}]}

    def test_where_rejects_unknown_operator(self) -> None:
        with pytest.raises(ValueError, match="Unsupported"):
            _build_chroma_where([("x", "gt", 1)])

    def test_count_and_write(self) -> None:
        client = MagicMock()
        collection = client.get_or_create_collection.return_value
        collection.get.return_value = {"ids": ["a", "b"]}
        index = ChromaChunkIndex("knowledge", client=client)

        assert index.count_active("t1", exclude_doc_id="d1") == 2
        assert collection.get.call_args.kwargs["where"]["$and"][-1] == {"docId": {"$ne": "d1"}}

        index.write([_chunk("d1", "h1")])
        upsert = collection.upsert.call_args.kwargs
        assert upsert["ids"] == ["d1:h1"]
        assert upsert["metadatas"][0]["tenantId"] == "t1"

    def test_set_doc_status_updates_metadata(self) -> None:
        client = MagicMock()
        collection = client.get_or_create_collection.return_value
        collection.get.return_value = {"ids": ["d1:h1"], "metadatas": [{"tenantId": "t1", "status": "active"}]}
        index = ChromaChunkIndex("knowledge", client=client)

        assert index.set_doc_status("t1", "d1", "disabled") == 1
        assert collection.get.call_args.kwargs["where"] == {
            "$and": [{"tenantId": {"$eq": "t1"}}, {"docId": {"$eq": "d1"}}]
        }
        collection.update.assert_called_once_with(
            ids=["d1:h1"], metadatas=[{"tenantId": "t1", "status": "disabled"}]
        )

    def test_health_check(self) -> None:
        client = MagicMock()
        client.heartbeat.side_effect = ConnectionError("down")
        assert ChromaChunkIndex("knowledge", client=client).health_check() is False


class TestCatalogRepository:
    def test_deactivate_extracted_only_touches_doc(self, store: InMemoryDocumentStore) -> None:
        repo = CatalogRepository(store)
        repo.upsert_tenant_items(
            "t1",
            [
                {"id": "a", "name": "A", "source": {"type": "doc", "docId": "d1"}},
                {"id": "b", "name": "B", "source": {"type": "doc", "docId": "d2"}},
                {"id": "c", "name": "C", "source": {"type": "manual"}},
            ],
        )
        assert repo.deactivate_extracted("t1", "d1") == 1
        statuses = {doc_id: data["status"] for doc_id, data in store.query("businesses/t1/catalogItems")}
        assert statuses == {"a": "inactive", "b": "active", "c": "active"}
        assert repo.deactivate_extracted("t1", "d1") == 0
