"""
Persistence — document store, blob store and knowledge chunk index.

The ingestion core talks to these through the abstract bases so the
backing services (managed document DB, object storage, vector DB) can be
swapped without touching orchestration code.

Public surface
--------------
- :class:`DocumentStore`, :class:`Transaction`, :class:`WriteBatch`
- :class:`BlobStore`, :class:`ChunkIndex`
- :class:`InMemoryDocumentStore`, :class:`InMemoryBlobStore`,
  :class:`LocalBlobStore`, :class:`StoreChunkIndex`
- :class:`ChromaChunkIndex` (lazy, pulls in chromadb)
"""

from content_ingest.store.base import BlobStore, ChunkIndex, DocumentStore, Transaction, WriteBatch
from content_ingest.store.memory import (
    InMemoryBlobStore,
    InMemoryDocumentStore,
    LocalBlobStore,
    StoreChunkIndex,
)

__all__ = [
    "BlobStore",
    "ChromaChunkIndex",
    "ChunkIndex",
    "DocumentStore",
    "InMemoryBlobStore",
    "InMemoryDocumentStore",
    "LocalBlobStore",
    "StoreChunkIndex",
    "Transaction",
    "WriteBatch",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaChunkIndex to avoid pulling in chromadb at import time."""
    if name == "ChromaChunkIndex":
        from content_ingest.store.chroma_index import ChromaChunkIndex

        return ChromaChunkIndex
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
