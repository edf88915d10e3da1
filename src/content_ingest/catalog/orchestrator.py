"""Catalog ingestion — job creation, the job state machine, and review.

Job states: ``queued → processing → {needs_review, failed}``; after
review ``needs_review → {applied, failed}``.  Proposal states:
``proposed → {applied, rejected}``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from content_ingest.catalog.graph import build_graph, create_initial_state
from content_ingest.catalog.normalize import normalize_catalog_item
from content_ingest.catalog.sources import idempotency_key, normalize_sources
from content_ingest.errors import NotFoundError, ProposalStateError, ValidationError
from content_ingest.models import (
    CATALOG_KINDS,
    CatalogIngestJob,
    DiffSummary,
    IngestProposal,
    Source,
    UrlSource,
    utcnow,
)
from content_ingest.store import paths
from content_ingest.store.base import Transaction

if TYPE_CHECKING:
    from content_ingest.catalog.nodes import CatalogNodes
    from content_ingest.store.repositories import CatalogRepository

logger = logging.getLogger(__name__)


def fallback_image_url(sources: list[Source]) -> str | None:
    """First http(s) URL among the sources, used for items without an image."""
    for source in sources:
        url = getattr(source, "url", None)
        if url and url.startswith("http"):
            return url
    return None


class CatalogIngestion:
    """Drive catalog ingest jobs from creation to human decision.

    Parameters
    ----------
    repo:
        Job / proposal persistence.
    nodes:
        Structuring graph nodes (extraction + LLM).
    """

    def __init__(self, repo: CatalogRepository, nodes: CatalogNodes) -> None:
        self.repo = repo
        self.graph = build_graph(nodes)

    # -- creation -------------------------------------------------------------

    def create_job(self, market_id: str, listing_id: str, kind: str, raw_sources: Any) -> tuple[str, bool]:
        """Create (or reuse) a queued job; return ``(job_id, reused)``."""
        if not isinstance(market_id, str) or not market_id:
            raise ValidationError("marketId required")
        if not isinstance(listing_id, str) or not listing_id:
            raise ValidationError("listingId required")
        if kind not in CATALOG_KINDS:
            raise ValidationError(f"kind must be one of: {', '.join(CATALOG_KINDS)}")
        sources = normalize_sources(raw_sources)
        if not sources:
            raise ValidationError("At least one source is required")

        key = idempotency_key(listing_id, kind, sources)
        existing = self.repo.find_active_job(market_id, key)
        if existing is not None:
            logger.info("Reusing catalog ingest job", extra={"market_id": market_id, "job_id": existing.id})
            return existing.id, True

        job_id = self.repo.create_job(
            CatalogIngestJob(
                market_id=market_id,
                listing_id=listing_id,
                kind=kind,
                sources=sources,
                idempotency_key=key,
            )
        )
        logger.info(
            "Catalog ingest job created",
            extra={"market_id": market_id, "listing_id": listing_id, "kind": kind, "job_id": job_id},
        )
        return job_id, False

    # -- state machine --------------------------------------------------------

    def run_job(self, market_id: str, job_id: str) -> CatalogIngestJob | None:
        """Process a queued job into a proposal.

        Returns the updated job, or ``None`` when the trigger was a no-op.
        Errors are recorded on the job (``failed``) and not re-raised.
        """
        log_ctx = {"market_id": market_id, "job_id": job_id}
        job = self.repo.get_job(market_id, job_id)
        if job is None:
            logger.warning("Catalog job not found, skipping", extra=log_ctx)
            return None
        if job.status != "queued":
            logger.info("Catalog job not queued, skipping", extra={**log_ctx, "status": job.status})
            return None

        self.repo.update_job(market_id, job_id, {"status": "processing"})
        logger.info(
            "Starting catalog job",
            extra={**log_ctx, "listing_id": job.listing_id, "kind": job.kind, "source_count": len(job.sources)},
        )
        try:
            result = self.graph.invoke(create_initial_state(job_id, job.kind, job.sources))
            items = result["items"]
            proposal_id = self.repo.create_proposal(
                IngestProposal(
                    market_id=market_id,
                    job_id=job_id,
                    listing_id=job.listing_id,
                    kind=job.kind,
                    sources=job.sources,
                    extracted_items=items,
                    warnings=result["warnings"],
                    diff_summary=DiffSummary(added=len(items)),
                )
            )
            self.repo.update_job(market_id, job_id, {"status": "needs_review", "proposalId": proposal_id})
            logger.info(
                "Proposal created",
                extra={**log_ctx, "proposal_id": proposal_id, "item_count": len(items), "warnings": result["warnings"]},
            )
        except Exception as exc:
            logger.error("Catalog job failed", exc_info=True, extra=log_ctx)
            self.repo.update_job(market_id, job_id, {"status": "failed", "error": str(exc) or "Unknown error"})
        return self.repo.get_job(market_id, job_id)

    # -- review ---------------------------------------------------------------

    def _proposed(self, listing_id: str, proposal_id: str) -> IngestProposal:
        proposal = self.repo.get_proposal(listing_id, proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal not found")
        if proposal.status != "proposed":
            raise ProposalStateError(f"Proposal already {proposal.status}")
        return proposal

    def apply_proposal(self, listing_id: str, proposal_id: str) -> None:
        """Upsert the proposal's items, mark it applied and the job applied, atomically."""

        def _apply(txn: Transaction) -> None:
            data = txn.get(paths.proposal(listing_id, proposal_id))
            if data is None:
                raise NotFoundError("Proposal not found")
            proposal = IngestProposal.model_validate({**data, "id": proposal_id})
            if proposal.status != "proposed":
                raise ProposalStateError(f"Proposal already {proposal.status}")

            now = utcnow().isoformat()
            image_url = fallback_image_url(proposal.sources)
            for index, item in enumerate(proposal.extracted_items):
                normalized = normalize_catalog_item(item.to_doc(), index, proposal.kind, image_url)
                item_path = paths.listing_item(listing_id, proposal.kind, normalized.id)
                existing = txn.get(item_path) or {}
                txn.set(
                    item_path,
                    {**normalized.to_doc(), "createdAt": existing.get("createdAt", now), "updatedAt": now},
                    merge=True,
                )
            txn.set(
                paths.proposal(listing_id, proposal_id),
                {"status": "applied", "appliedAt": now, "updatedAt": now},
                merge=True,
            )
            if proposal.job_id and proposal.market_id:
                txn.set(
                    paths.catalog_job(proposal.market_id, proposal.job_id),
                    {"status": "applied", "updatedAt": now},
                    merge=True,
                )

        self._proposed(listing_id, proposal_id)
        self.repo.store.run_transaction(_apply)
        logger.info("Proposal applied", extra={"listing_id": listing_id, "proposal_id": proposal_id})

    def reject_proposal(self, listing_id: str, proposal_id: str) -> None:
        proposal = self._proposed(listing_id, proposal_id)
        now = utcnow().isoformat()
        self.repo.store.update(
            paths.proposal(listing_id, proposal_id),
            {"status": "rejected", "rejectedAt": now, "updatedAt": now},
        )
        if proposal.job_id and proposal.market_id:
            self.repo.update_job(proposal.market_id, proposal.job_id, {"status": "failed", "error": "Rejected by admin"})
        logger.info("Proposal rejected", extra={"listing_id": listing_id, "proposal_id": proposal_id})
