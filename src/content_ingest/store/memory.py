"""In-process implementations of the persistence interfaces.

Used by the test-suite and for local runs; they honour the same
contracts (merge semantics, all-or-nothing transactions) as a managed
backend.
"""

from __future__ import annotations

import copy
import logging
import mimetypes
import threading
from pathlib import Path
from typing import Any, Callable, TypeVar
from uuid import uuid4

from content_ingest.errors import NotFoundError
from content_ingest.models import KnowledgeChunk
from content_ingest.store import paths
from content_ingest.store.base import BlobStore, ChunkIndex, DocumentStore, Transaction, WriteBatch

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _deep_merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _field(data: dict[str, Any], field: str) -> Any:
    value: Any = data
    for part in field.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _matches(data: dict[str, Any], where: dict[str, Any] | None) -> bool:
    return all(_field(data, field) == value for field, value in (where or {}).items())


def _split(path: str) -> tuple[str, str]:
    parts = path.strip("/").split("/")
    if len(parts) % 2:
        raise ValueError(f"Not a document path: {path!r}")
    return "/".join(parts[:-1]), parts[-1]


# ── Document store ────────────────────────────────────────────────────


class _MemoryWriteBatch(WriteBatch):
    def __init__(self, store: InMemoryDocumentStore) -> None:
        self._store = store
        self._writes: list[tuple[str, dict[str, Any], bool]] = []

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        _split(path)
        self._writes.append((path, copy.deepcopy(data), merge))

    def commit(self) -> None:
        with self._store._lock:
            for path, data, merge in self._writes:
                self._store._write(path, data, merge)
        self._writes.clear()


class _MemoryTransaction(_MemoryWriteBatch, Transaction):
    def get(self, path: str) -> dict[str, Any] | None:
        return self._store.get(path)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed document store keyed by full document path."""

    def __init__(self) -> None:
        self._docs: dict[str, dict[str, Any]] = {}
        self._lock = threading.RLock()

    def _write(self, path: str, data: dict[str, Any], merge: bool) -> None:
        key = path.strip("/")
        if merge and key in self._docs:
            self._docs[key] = _deep_merge(self._docs[key], data)
        else:
            self._docs[key] = copy.deepcopy(data)

    def get(self, path: str) -> dict[str, Any] | None:
        with self._lock:
            doc = self._docs.get(path.strip("/"))
            return copy.deepcopy(doc) if doc is not None else None

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        _split(path)
        with self._lock:
            self._write(path, data, merge)

    def query(
        self,
        collection_path: str,
        where: dict[str, Any] | None = None,
    ) -> list[tuple[str, dict[str, Any]]]:
        prefix = collection_path.strip("/")
        with self._lock:
            return [
                (doc_id, copy.deepcopy(data))
                for key, data in self._docs.items()
                for parent, doc_id in [_split(key)]
                if parent == prefix and _matches(data, where)
            ]

    def query_group(
        self,
        collection_id: str,
        where: dict[str, Any] | None = None,
    ) -> list[tuple[str, dict[str, Any]]]:
        with self._lock:
            return [
                (key, copy.deepcopy(data))
                for key, data in self._docs.items()
                if _split(key)[0].rsplit("/", 1)[-1] == collection_id and _matches(data, where)
            ]

    def batch(self) -> WriteBatch:
        return _MemoryWriteBatch(self)

    def run_transaction(self, callback: Callable[[Transaction], T]) -> T:
        with self._lock:
            txn = _MemoryTransaction(self)
            result = callback(txn)
            txn.commit()
            return result

    def new_id(self) -> str:
        return uuid4().hex[:20]


# ── Blob stores ───────────────────────────────────────────────────────


class InMemoryBlobStore(BlobStore):
    def __init__(self) -> None:
        self._blobs: dict[str, tuple[bytes, str | None]] = {}

    def put(self, path: str, data: bytes, content_type: str | None = None) -> None:
        self._blobs[self.object_path(path)] = (data, content_type)

    def download(self, path: str) -> tuple[bytes, str | None]:
        try:
            return self._blobs[self.object_path(path)]
        except KeyError:
            raise NotFoundError(f"File not found: {path}") from None


class LocalBlobStore(BlobStore):
    """Serve objects from a directory on disk (local development)."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def download(self, path: str) -> tuple[bytes, str | None]:
        target = (self._root / self.object_path(path)).resolve()
        if self._root.resolve() not in target.parents or not target.is_file():
            raise NotFoundError(f"File not found: {path}")
        content_type, _ = mimetypes.guess_type(target.name)
        return target.read_bytes(), content_type


# ── Chunk index ───────────────────────────────────────────────────────


class StoreChunkIndex(ChunkIndex):
    """Keep chunks as child documents of their knowledge doc."""

    def __init__(self, store: DocumentStore) -> None:
        super().__init__("chunks")
        self._store = store

    def count_active(self, tenant_id: str, *, exclude_doc_id: str | None = None) -> int:
        hits = self._store.query_group("chunks", {"tenantId": tenant_id, "status": "active"})
        return sum(1 for _, data in hits if data.get("docId") != exclude_doc_id)

    def write(self, chunks: list[KnowledgeChunk]) -> None:
        batch = self._store.batch()
        for chunk in chunks:
            batch.set(paths.chunk(chunk.tenant_id, chunk.doc_id, chunk.text_hash), chunk.to_doc(), merge=True)
        batch.commit()
        logger.debug("Wrote %d chunk(s)", len(chunks))

    def set_doc_status(self, tenant_id: str, doc_id: str, status: str) -> int:
        hits = self._store.query(paths.chunks(tenant_id, doc_id))
        batch = self._store.batch()
        for text_hash, _ in hits:
            batch.set(paths.chunk(tenant_id, doc_id, text_hash), {"status": status}, merge=True)
        batch.commit()
        return len(hits)
