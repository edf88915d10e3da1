"""Domain models — sources, knowledge docs/chunks, catalog jobs/proposals.

Models use snake_case attributes and persist with camelCase keys
(``model_dump(by_alias=True)``), which is the shape every store document
and HTTP payload carries.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DocStatus = Literal["processing", "active", "failed", "disabled"]
ChunkStatus = Literal["active", "disabled"]
CatalogExtractionStatus = Literal["skipped", "processing", "done", "failed"]
CatalogKind = Literal["menuItems", "services", "offerings", "tickets", "roomTypes"]
JobStatus = Literal["queued", "processing", "needs_review", "applied", "failed"]
ProposalStatus = Literal["proposed", "applied", "rejected"]
Currency = Literal["TRY", "EUR", "GBP", "USD"]
SourceType = Literal["text", "url", "pdf", "image"]

CATALOG_KINDS: tuple[str, ...] = ("menuItems", "services", "offerings", "tickets", "roomTypes")
CURRENCIES: tuple[str, ...] = ("TRY", "EUR", "GBP", "USD")
ACTIVE_JOB_STATUSES: tuple[str, ...] = ("queued", "processing", "needs_review")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_doc(self) -> dict[str, Any]:
        """Return the persisted (camelCase, JSON-safe) representation."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# ── Sources ───────────────────────────────────────────────────────────


class UrlSource(_Model):
    type: Literal["url"] = "url"
    url: str


class PdfSource(_Model):
    type: Literal["pdf"] = "pdf"
    storage_path: str
    url: str | None = None


class ImageSource(_Model):
    type: Literal["image"] = "image"
    storage_path: str
    url: str | None = None
    mime_type: str | None = None


class TextSource(_Model):
    type: Literal["text"] = "text"
    text: str


Source = Annotated[Union[UrlSource, PdfSource, ImageSource, TextSource], Field(discriminator="type")]


# ── Knowledge ─────────────────────────────────────────────────────────


class ErrorInfo(_Model):
    code: str
    message: str


class CatalogExtraction(_Model):
    status: CatalogExtractionStatus
    extracted_count: int | None = None
    extraction_run_id: str | None = None
    error: ErrorInfo | None = None


class KnowledgeDoc(_Model):
    """A tenant-scoped document registered for knowledge ingestion.

    ``text`` / ``source_url`` / ``file_path`` hold the reference for the
    matching ``source_type``.
    """

    id: str = ""
    tenant_id: str
    source_type: SourceType
    source_name: str
    text: str | None = None
    source_url: str | None = None
    file_path: str | None = None
    mime_type: str | None = None
    extract_catalog: bool = False
    status: DocStatus = "processing"
    chunk_count: int = 0
    content_hash: str | None = None
    page_count: int | None = None
    error: ErrorInfo | None = None
    catalog_extraction: CatalogExtraction | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def source_ref(self) -> str:
        return self.source_url or self.file_path or ""

    def to_source(self) -> Source:
        if self.source_type == "text":
            return TextSource(text=self.text or "")
        if self.source_type == "url":
            return UrlSource(url=self.source_url or "")
        if self.source_type == "pdf":
            return PdfSource(storage_path=self.file_path or "")
        return ImageSource(storage_path=self.file_path or "", mime_type=self.mime_type)


class KnowledgeChunk(_Model):
    tenant_id: str
    doc_id: str
    source_name: str = ""
    source_type: str = ""
    status: ChunkStatus = "active"
    chunk_index: int
    text: str
    text_hash: str
    embedding: list[float] = Field(default_factory=list)


# ── Catalog ───────────────────────────────────────────────────────────


class CatalogItem(_Model):
    """A normalized catalog entry; ``id`` is a deterministic content hash."""

    id: str
    name: str
    description: str | None = None
    price: float = 0
    currency: Currency = "TRY"
    category: str | None = None
    available: bool = True
    image_url: str | None = None
    sort_order: int = 0


class DiffSummary(_Model):
    added: int = 0
    updated: int = 0
    removed: int = 0


class CatalogIngestJob(_Model):
    id: str = ""
    market_id: str
    listing_id: str
    kind: CatalogKind
    sources: list[Source]
    idempotency_key: str
    status: JobStatus = "queued"
    proposal_id: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class IngestProposal(_Model):
    id: str = ""
    market_id: str
    job_id: str
    listing_id: str
    kind: CatalogKind
    sources: list[Source]
    status: ProposalStatus = "proposed"
    extracted_items: list[CatalogItem] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    diff_summary: DiffSummary = Field(default_factory=DiffSummary)
    created_at: datetime = Field(default_factory=utcnow)
    applied_at: datetime | None = None
    rejected_at: datetime | None = None
