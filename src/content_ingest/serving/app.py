"""FastAPI application exposing knowledge and catalog ingestion."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import pydantic
from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from content_ingest.catalog.doc_extraction import DocCatalogExtractor
from content_ingest.catalog.nodes import CatalogNodes
from content_ingest.catalog.orchestrator import CatalogIngestion
from content_ingest.config import Settings, get_settings
from content_ingest.errors import (
    IngestError,
    NotFoundError,
    ProposalStateError,
    ValidationError,
)
from content_ingest.extraction.assets import AssetReader
from content_ingest.extraction.documents import DocumentExtractor
from content_ingest.extraction.headless import HeadlessRenderer
from content_ingest.extraction.pdf import PdfQualityPolicy, PypdfTextParser
from content_ingest.extraction.web import WebExtractor
from content_ingest.ingestion.knowledge import KnowledgeIngestion
from content_ingest.llm.models import ModelClient
from content_ingest.logging_config import configure_logging
from content_ingest.models import KnowledgeDoc
from content_ingest.store import (
    BlobStore,
    ChunkIndex,
    DocumentStore,
    InMemoryBlobStore,
    InMemoryDocumentStore,
    LocalBlobStore,
    StoreChunkIndex,
)
from content_ingest.store.repositories import CatalogRepository, KnowledgeRepository
from content_ingest.web.fetch import GuardedFetcher
from content_ingest.web.guard import UrlGuard

logger = logging.getLogger(__name__)


# ── Wiring ────────────────────────────────────────────────────────────
@dataclass
class Services:
    """The two orchestrators every route works through."""

    knowledge: KnowledgeIngestion
    catalog: CatalogIngestion


def build_services(
    settings: Settings,
    *,
    store: DocumentStore | None = None,
    blobs: BlobStore | None = None,
    models: ModelClient | None = None,
    chunk_index: ChunkIndex | None = None,
) -> Services:
    """Assemble fetch, extraction, model and persistence components from *settings*."""
    store = store or InMemoryDocumentStore()
    if blobs is None:
        blobs = LocalBlobStore(settings.blob_root) if settings.blob_root else InMemoryBlobStore()
    models = models or ModelClient.from_settings(settings)
    if chunk_index is None:
        if settings.chunk_index_backend == "chroma":
            from content_ingest.store.chroma_index import ChromaChunkIndex

            chunk_index = ChromaChunkIndex(
                settings.chroma_collection,
                host=settings.chroma_host,
                port=settings.chroma_port,
            )
        else:
            chunk_index = StoreChunkIndex(store)

    fetcher = GuardedFetcher(
        UrlGuard(dns_timeout=settings.dns_timeout_seconds),
        timeout=settings.fetch_timeout_seconds,
        max_redirects=settings.max_redirects,
        user_agent=settings.user_agent,
    )
    headless = HeadlessRenderer(
        settings.headless_url,
        settings.headless_token,
        timeout=settings.headless_timeout_seconds,
        wait_ms=settings.headless_wait_ms,
    )
    assets = AssetReader(
        models,
        pdf_parser=PypdfTextParser() if settings.pdf_local_parse else None,
        policy=PdfQualityPolicy(
            min_chars=settings.pdf_min_chars,
            min_chars_per_page=settings.pdf_min_chars_per_page,
            max_replacement_chars=settings.pdf_max_replacement_chars,
            max_pages=settings.max_pdf_pages,
        ),
    )
    web = WebExtractor(
        fetcher,
        headless,
        assets,
        max_text_chars=settings.max_url_text_chars,
        static_min_selector_chars=settings.static_min_selector_chars,
        static_min_text_chars=settings.static_min_text_chars,
        headless_min_text_chars=settings.headless_min_text_chars,
        max_follow_links=settings.max_follow_links,
    )
    extractor = DocumentExtractor(web, assets, blobs, max_upload_bytes=settings.max_upload_mb * 1024 * 1024)

    catalog_repo = CatalogRepository(store)
    knowledge = KnowledgeIngestion(
        settings,
        KnowledgeRepository(store),
        extractor,
        models,
        chunk_index,
        catalog_extractor=DocCatalogExtractor(settings, models, catalog_repo),
    )
    catalog = CatalogIngestion(catalog_repo, CatalogNodes(settings, extractor, models))
    return Services(knowledge=knowledge, catalog=catalog)


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services(get_settings())


# ── App ───────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_logging(get_settings().log_level)
    yield


app = FastAPI(
    title="Content Ingest API",
    version="0.1.0",
    description="Knowledge and catalog ingestion for business content.",
    lifespan=lifespan,
)


@app.exception_handler(IngestError)
async def ingest_error_handler(request: Request, exc: IngestError) -> JSONResponse:
    if isinstance(exc, (ValidationError, ProposalStateError)):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
        logger.error("Request failed", extra={"path": request.url.path, "code": exc.code})
    return JSONResponse(status_code=code, content={"success": False, "error": exc.message})


# ── Request schemas ───────────────────────────────────────────────────
class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocStatusRequest(_Body):
    status: str


class CatalogJobRequest(_Body):
    market_id: str = ""
    listing_id: str = ""
    kind: str = ""
    sources: Any = None


class KnowledgeTask(_Body):
    business_id: str
    doc_id: str


class CatalogTask(_Body):
    market_id: str
    job_id: str


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness check."""
    return {"status": "ok"}


@app.post("/v1/knowledge/{business_id}/docs", status_code=status.HTTP_201_CREATED)
def create_knowledge_doc(
    business_id: str,
    body: dict[str, Any],
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Register a knowledge doc in ``processing``; ingestion runs on the task trigger."""
    try:
        doc = KnowledgeDoc.model_validate({**body, "tenantId": business_id, "id": ""})
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid document: {exc.errors()[0]['msg']}") from exc
    doc_id = services.knowledge.create_doc(doc)
    return {"success": True, "docId": doc_id}


@app.patch("/v1/knowledge/{business_id}/docs/{doc_id}")
def set_knowledge_doc_status(
    business_id: str,
    doc_id: str,
    body: DocStatusRequest,
    services: Services = Depends(get_services),
) -> dict[str, bool]:
    services.knowledge.set_status(business_id, doc_id, body.status)
    return {"success": True}


@app.post("/v1/admin/catalog-ingest/jobs", status_code=status.HTTP_201_CREATED)
def create_catalog_job(
    body: CatalogJobRequest,
    response: Response,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Create a catalog ingest job, or return the active one for the same input."""
    job_id, reused = services.catalog.create_job(body.market_id, body.listing_id, body.kind, body.sources)
    if reused:
        response.status_code = status.HTTP_200_OK
    return {"success": True, "jobId": job_id, "reused": reused}


@app.post("/v1/admin/catalog-ingest/listings/{listing_id}/proposals/{proposal_id}/apply")
def apply_proposal(
    listing_id: str,
    proposal_id: str,
    services: Services = Depends(get_services),
) -> dict[str, bool]:
    services.catalog.apply_proposal(listing_id, proposal_id)
    return {"success": True}


@app.post("/v1/admin/catalog-ingest/listings/{listing_id}/proposals/{proposal_id}/reject")
def reject_proposal(
    listing_id: str,
    proposal_id: str,
    services: Services = Depends(get_services),
) -> dict[str, bool]:
    services.catalog.reject_proposal(listing_id, proposal_id)
    return {"success": True}


# ── Event entry points (at-least-once delivery) ───────────────────────
@app.post("/tasks/knowledge-ingest")
def knowledge_ingest_task(body: KnowledgeTask, services: Services = Depends(get_services)) -> dict[str, Any]:
    doc = services.knowledge.ingest(body.business_id, body.doc_id)
    return {"success": True, "status": doc.status if doc else None}


@app.post("/tasks/catalog-ingest")
def catalog_ingest_task(body: CatalogTask, services: Services = Depends(get_services)) -> dict[str, Any]:
    job = services.catalog.run_job(body.market_id, body.job_id)
    return {"success": True, "status": job.status if job else None}
