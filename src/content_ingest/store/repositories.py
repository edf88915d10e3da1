"""Typed access to knowledge docs, catalog jobs and proposals.

Repositories translate between domain models and store documents; the
orchestrators never build paths or dicts themselves.
"""

from __future__ import annotations

import logging
from typing import Any

from content_ingest.models import (
    ACTIVE_JOB_STATUSES,
    CatalogExtraction,
    CatalogIngestJob,
    ErrorInfo,
    IngestProposal,
    KnowledgeDoc,
    utcnow,
)
from content_ingest.store import paths
from content_ingest.store.base import DocumentStore

logger = logging.getLogger(__name__)


def _now() -> str:
    return utcnow().isoformat()


class KnowledgeRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def create_doc(self, doc: KnowledgeDoc) -> str:
        doc_id = doc.id or self.store.new_id()
        doc = doc.model_copy(update={"id": doc_id})
        self.store.set(paths.knowledge_doc(doc.tenant_id, doc_id), doc.to_doc())
        return doc_id

    def get_doc(self, tenant_id: str, doc_id: str) -> KnowledgeDoc | None:
        data = self.store.get(paths.knowledge_doc(tenant_id, doc_id))
        if data is None:
            return None
        return KnowledgeDoc.model_validate({**data, "id": doc_id})

    def update_doc(self, tenant_id: str, doc_id: str, fields: dict[str, Any]) -> None:
        self.store.update(paths.knowledge_doc(tenant_id, doc_id), {**fields, "updatedAt": _now()})

    def mark_failed(self, tenant_id: str, doc_id: str, error: ErrorInfo) -> None:
        self.update_doc(tenant_id, doc_id, {"status": "failed", "error": error.to_doc()})

    def finalize_success(
        self,
        tenant_id: str,
        doc_id: str,
        *,
        chunk_count: int,
        content_hash: str,
        mime_type: str | None,
        page_count: int | None,
    ) -> None:
        self.update_doc(
            tenant_id,
            doc_id,
            {
                "status": "active",
                "chunkCount": chunk_count,
                "contentHash": content_hash,
                "mimeType": mime_type,
                "pageCount": page_count,
                "error": None,
            },
        )

    def set_catalog_extraction(self, tenant_id: str, doc_id: str, state: CatalogExtraction) -> None:
        # Full dump (nulls included) so stale counts / errors are overwritten.
        self.update_doc(
            tenant_id, doc_id, {"catalogExtraction": state.model_dump(by_alias=True, mode="json")}
        )


class CatalogRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # -- jobs -----------------------------------------------------------------

    def find_active_job(self, market_id: str, idempotency_key: str) -> CatalogIngestJob | None:
        for job_id, data in self.store.query(paths.catalog_jobs(market_id), {"idempotencyKey": idempotency_key}):
            if data.get("status") in ACTIVE_JOB_STATUSES:
                return CatalogIngestJob.model_validate({**data, "id": job_id})
        return None

    def create_job(self, job: CatalogIngestJob) -> str:
        job_id = job.id or self.store.new_id()
        job = job.model_copy(update={"id": job_id})
        self.store.set(paths.catalog_job(job.market_id, job_id), job.to_doc())
        return job_id

    def get_job(self, market_id: str, job_id: str) -> CatalogIngestJob | None:
        data = self.store.get(paths.catalog_job(market_id, job_id))
        if data is None:
            return None
        return CatalogIngestJob.model_validate({**data, "id": job_id})

    def update_job(self, market_id: str, job_id: str, fields: dict[str, Any]) -> None:
        self.store.update(paths.catalog_job(market_id, job_id), {**fields, "updatedAt": _now()})

    # -- proposals ------------------------------------------------------------

    def create_proposal(self, proposal: IngestProposal) -> str:
        proposal_id = proposal.id or self.store.new_id()
        proposal = proposal.model_copy(update={"id": proposal_id})
        self.store.set(paths.proposal(proposal.listing_id, proposal_id), proposal.to_doc())
        return proposal_id

    def get_proposal(self, listing_id: str, proposal_id: str) -> IngestProposal | None:
        data = self.store.get(paths.proposal(listing_id, proposal_id))
        if data is None:
            return None
        return IngestProposal.model_validate({**data, "id": proposal_id})

    def listing_items(self, listing_id: str, kind: str) -> list[dict[str, Any]]:
        return [data for _, data in self.store.query(f"listings/{listing_id}/{kind}")]

    # -- tenant catalog (knowledge-doc sub-flow) --------------------------------

    def deactivate_extracted(self, tenant_id: str, doc_id: str) -> int:
        """Mark every active item extracted from *doc_id* inactive; return the count."""
        stale = [
            item_id
            for item_id, _ in self.store.query(
                paths.tenant_catalog(tenant_id),
                {"source.type": "doc", "source.docId": doc_id, "status": "active"},
            )
        ]
        if not stale:
            return 0
        batch = self.store.batch()
        now = _now()
        for item_id in stale:
            batch.set(
                f"{paths.tenant_catalog(tenant_id)}/{item_id}",
                {"status": "inactive", "updatedAt": now},
                merge=True,
            )
        batch.commit()
        return len(stale)

    def upsert_tenant_items(self, tenant_id: str, items: list[dict[str, Any]]) -> None:
        batch = self.store.batch()
        now = _now()
        for item in items:
            batch.set(
                f"{paths.tenant_catalog(tenant_id)}/{item['id']}",
                {**item, "status": "active", "updatedAt": now},
                merge=True,
            )
        batch.commit()
