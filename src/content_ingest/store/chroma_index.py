"""Chroma implementation of the chunk-index abstraction.

Chunks are mirrored into a Chroma collection so the retrieval layer can
run similarity search over them directly.  Ids are
``"{doc_id}:{text_hash}"`` which keeps re-ingestion idempotent.
"""

from __future__ import annotations

import logging
from typing import Any

import chromadb

from content_ingest.models import KnowledgeChunk
from content_ingest.store.base import ChunkIndex

logger = logging.getLogger(__name__)

_OP_MAP = {
    "eq": "$eq",
    "ne": "$ne",
    "in": "$in",
}


def _build_chroma_where(filters: list[tuple[str, str, Any]]) -> dict[str, Any] | None:
    """Convert ``(field, operator, value)`` triples to Chroma ``where`` syntax."""
    if not filters:
        return None

    clauses: list[dict[str, Any]] = []
    for field, operator, value in filters:
        chroma_op = _OP_MAP.get(operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {operator!r}")
        clauses.append({field: {chroma_op: value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaChunkIndex(ChunkIndex):
    """Chroma-backed chunk index.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    client:
        Pre-built client (tests pass an ``EphemeralClient`` or a mock).
    """

    def __init__(
        self,
        collection_name: str,
        *,
        host: str = "localhost",
        port: int = 8000,
        client: Any = None,
    ) -> None:
        super().__init__(collection_name)
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collection = self._client.get_or_create_collection(collection_name)

    def count_active(self, tenant_id: str, *, exclude_doc_id: str | None = None) -> int:
        filters: list[tuple[str, str, Any]] = [("tenantId", "eq", tenant_id), ("status", "eq", "active")]
        if exclude_doc_id:
            filters.append(("docId", "ne", exclude_doc_id))
        result = self._collection.get(where=_build_chroma_where(filters), include=[])
        return len(result.get("ids", []))

    def write(self, chunks: list[KnowledgeChunk]) -> None:
        if not chunks:
            return
        self._collection.upsert(
            ids=[f"{c.doc_id}:{c.text_hash}" for c in chunks],
            documents=[c.text for c in chunks],
            embeddings=[c.embedding for c in chunks],
            metadatas=[
                {
                    "tenantId": c.tenant_id,
                    "docId": c.doc_id,
                    "sourceName": c.source_name,
                    "sourceType": c.source_type,
                    "status": c.status,
                    "chunkIndex": c.chunk_index,
                    "textHash": c.text_hash,
                }
                for c in chunks
            ],
        )
        logger.debug("Upserted %d chunk(s) into %s", len(chunks), self.name)

    def set_doc_status(self, tenant_id: str, doc_id: str, status: str) -> int:
        where = _build_chroma_where([("tenantId", "eq", tenant_id), ("docId", "eq", doc_id)])
        result = self._collection.get(where=where, include=["metadatas"])
        ids = result.get("ids", [])
        if not ids:
            return 0
        self._collection.update(
            ids=ids,
            metadatas=[{**(meta or {}), "status": status} for meta in result["metadatas"]],
        )
        logger.debug("Set status %s on %d chunk(s) of %s", status, len(ids), doc_id)
        return len(ids)

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
