"""Knowledge ingestion — the ``processing → {active, failed}`` doc state machine.

Steps for one doc::

    extract → normalize → length check → content hash → chunk + dedup
        → tenant quota → embed (sequential) → batched writes → finalize
        → optional catalog sub-flow (never fatal)

Every entry point re-reads the doc and no-ops unless it is still
``processing``, so duplicate trigger delivery is harmless.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from content_ingest.errors import (
    ContentTooShortError,
    IngestError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from content_ingest.ingestion.chunker import chunk_text, dedupe_chunks
from content_ingest.models import (
    CatalogExtraction,
    ErrorInfo,
    KnowledgeChunk,
    KnowledgeDoc,
)
from content_ingest.textutil import normalize_text, sha256_hex
from content_ingest.web.fetch import FetchProfile

if TYPE_CHECKING:
    from content_ingest.catalog.doc_extraction import DocCatalogExtractor
    from content_ingest.config import Settings
    from content_ingest.extraction.documents import DocumentExtractor
    from content_ingest.llm.models import ModelClient
    from content_ingest.store.base import ChunkIndex
    from content_ingest.store.repositories import KnowledgeRepository

logger = logging.getLogger(__name__)

_REQUIRED_REF = {"text": "text", "url": "source_url", "pdf": "file_path", "image": "file_path"}


def knowledge_profile(settings: Settings) -> FetchProfile:
    return FetchProfile(
        name="knowledge",
        max_html_bytes=settings.max_knowledge_html_bytes,
        max_asset_bytes=settings.max_asset_bytes,
        follow_links=False,
    )


class KnowledgeIngestion:
    """Create, ingest and toggle tenant knowledge documents.

    Parameters
    ----------
    settings:
        Chunking, quota and fetch tunables.
    repo:
        Knowledge doc persistence.
    extractor:
        Source → text dispatcher.
    models:
        Embedding provider.
    chunk_index:
        Where chunks are written and counted for the tenant quota.
    catalog_extractor:
        Optional sub-flow run after a successful ingest when the doc opted in.
    """

    def __init__(
        self,
        settings: Settings,
        repo: KnowledgeRepository,
        extractor: DocumentExtractor,
        models: ModelClient,
        chunk_index: ChunkIndex,
        catalog_extractor: DocCatalogExtractor | None = None,
    ) -> None:
        self.settings = settings
        self.repo = repo
        self.extractor = extractor
        self.models = models
        self.chunk_index = chunk_index
        self.catalog_extractor = catalog_extractor
        self.profile = knowledge_profile(settings)

    # -- registration ---------------------------------------------------------

    def create_doc(self, doc: KnowledgeDoc) -> str:
        """Validate and persist a new doc in ``processing``; return its id."""
        if not doc.source_name.strip():
            raise ValidationError("sourceName is required")
        field = _REQUIRED_REF[doc.source_type]
        if not (getattr(doc, field) or "").strip():
            raise ValidationError(f"{field} is required for {doc.source_type} documents")
        doc = doc.model_copy(update={"status": "processing", "catalog_extraction": None, "error": None})
        doc_id = self.repo.create_doc(doc)
        logger.info("Knowledge doc created", extra={"tenant_id": doc.tenant_id, "doc_id": doc_id})
        return doc_id

    def set_status(self, tenant_id: str, doc_id: str, status: str) -> None:
        """Toggle a finalized doc between ``active`` and ``disabled``."""
        if status not in ("active", "disabled"):
            raise ValidationError("status must be 'active' or 'disabled'")
        if self.repo.get_doc(tenant_id, doc_id) is None:
            raise NotFoundError("Document not found")
        self.repo.update_doc(tenant_id, doc_id, {"status": status})
        changed = self.chunk_index.set_doc_status(tenant_id, doc_id, status)
        logger.info(
            "Knowledge doc status set",
            extra={"tenant_id": tenant_id, "doc_id": doc_id, "status": status, "chunk_count": changed},
        )

    # -- state machine --------------------------------------------------------

    def ingest(self, tenant_id: str, doc_id: str) -> KnowledgeDoc | None:
        """Run the ingestion state machine for one doc.

        Returns the updated doc, or ``None`` when the trigger was a no-op.
        Failures are recorded on the doc and re-raised.
        """
        log_ctx = {"tenant_id": tenant_id, "doc_id": doc_id}
        doc = self.repo.get_doc(tenant_id, doc_id)
        if doc is None:
            logger.warning("Doc not found, skipping", extra=log_ctx)
            return None
        if doc.status != "processing":
            logger.info("Doc not in processing state, skipping", extra={**log_ctx, "status": doc.status})
            return None

        logger.info("Starting knowledge ingestion", extra=log_ctx)
        try:
            normalized = self._ingest(doc)
        except Exception as exc:
            error = (
                ErrorInfo(**exc.to_error())
                if isinstance(exc, IngestError)
                else ErrorInfo(code="INGEST_FAILED", message=str(exc) or "Ingestion failed")
            )
            logger.error("Knowledge ingestion failed", exc_info=True, extra={**log_ctx, "code": error.code})
            self.repo.mark_failed(tenant_id, doc_id, error)
            raise

        self._run_catalog_extraction(doc, normalized)
        return self.repo.get_doc(tenant_id, doc_id)

    def _ingest(self, doc: KnowledgeDoc) -> str:
        settings = self.settings
        extracted = self.extractor.extract(doc.to_source(), self.profile)
        normalized = normalize_text(extracted.text)
        # Inline text and structured listings have no length floor.
        exempt = doc.source_type == "text" or extracted.structured
        if not normalized or (not exempt and len(normalized) < settings.min_ingest_chars):
            raise ContentTooShortError("Extracted text too short to ingest")

        content_hash = sha256_hex(normalized)
        pieces = dedupe_chunks(
            chunk_text(
                normalized,
                settings.chunk_size,
                settings.chunk_overlap,
                settings.chunk_boundary_lookahead,
                settings.min_chunk_chars,
            )
        )

        other_active = self.chunk_index.count_active(doc.tenant_id, exclude_doc_id=doc.id)
        if other_active + len(pieces) > settings.max_chunks_per_tenant:
            raise QuotaExceededError(other_active, len(pieces), settings.max_chunks_per_tenant)

        buffered: list[KnowledgeChunk] = []
        for piece in pieces:
            buffered.append(
                KnowledgeChunk(
                    tenant_id=doc.tenant_id,
                    doc_id=doc.id,
                    source_name=doc.source_name,
                    source_type=doc.source_type,
                    chunk_index=piece.index,
                    text=piece.text,
                    text_hash=piece.text_hash,
                    embedding=self.models.embed(piece.text),
                )
            )
            if len(buffered) >= settings.chunk_write_batch_size:
                self.chunk_index.write(buffered)
                buffered = []
        if buffered:
            self.chunk_index.write(buffered)

        logger.info(
            "Embedded and wrote chunks",
            extra={"tenant_id": doc.tenant_id, "doc_id": doc.id, "chunk_count": len(pieces)},
        )
        self.repo.finalize_success(
            doc.tenant_id,
            doc.id,
            chunk_count=len(pieces),
            content_hash=content_hash,
            mime_type=extracted.mime_type,
            page_count=extracted.page_count,
        )
        return normalized

    def _run_catalog_extraction(self, doc: KnowledgeDoc, text: str) -> None:
        """Best-effort sub-flow; failures are recorded and never revert ``active``."""
        tenant_id, doc_id = doc.tenant_id, doc.id
        if not doc.extract_catalog or self.catalog_extractor is None:
            self.repo.set_catalog_extraction(tenant_id, doc_id, CatalogExtraction(status="skipped"))
            return

        self.repo.set_catalog_extraction(tenant_id, doc_id, CatalogExtraction(status="processing"))
        try:
            count, run_id = self.catalog_extractor.extract_and_save(tenant_id, doc_id, text)
        except Exception as exc:
            logger.error(
                "Catalog extraction failed (non-fatal)",
                exc_info=True,
                extra={"tenant_id": tenant_id, "doc_id": doc_id},
            )
            self.repo.set_catalog_extraction(
                tenant_id,
                doc_id,
                CatalogExtraction(
                    status="failed",
                    error=ErrorInfo(code="EXTRACT_FAILED", message=str(exc) or "Extraction failed"),
                ),
            )
            return

        self.repo.set_catalog_extraction(
            tenant_id,
            doc_id,
            CatalogExtraction(status="done", extracted_count=count, extraction_run_id=run_id),
        )
        logger.info(
            "Catalog extraction complete",
            extra={"tenant_id": tenant_id, "doc_id": doc_id, "item_count": count, "run_id": run_id},
        )
