"""Graph nodes — each method is one step of catalog structuring.

Node contract
-------------
* Accepts the full :class:`CatalogState` dict.
* Returns a *partial* dict with **only the keys that changed**.
* Raises on unrecoverable errors; the orchestrator records the failure.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from content_ingest.catalog.normalize import (
    filter_to_source,
    normalize_catalog_item,
    parse_items_json,
    parse_price,
)
from content_ingest.catalog.state import CatalogState
from content_ingest.errors import ContentTooShortError
from content_ingest.llm.prompts import build_catalog_prompt
from content_ingest.web.fetch import FetchProfile

if TYPE_CHECKING:
    from content_ingest.config import Settings
    from content_ingest.extraction.documents import DocumentExtractor
    from content_ingest.llm.models import ModelClient

logger = logging.getLogger(__name__)

MIN_COMBINED_CHARS = 50


def catalog_profile(settings: Settings) -> FetchProfile:
    return FetchProfile(
        name="catalog",
        max_html_bytes=settings.max_html_bytes,
        max_asset_bytes=settings.max_asset_bytes,
        follow_links=True,
    )


class CatalogNodes:
    """Bind the collaborators the nodes need.

    Parameters
    ----------
    settings:
        Text caps, worker count and the containment toggle.
    extractor:
        Source → text dispatcher.
    models:
        Chat model used for structuring.
    """

    def __init__(self, settings: Settings, extractor: DocumentExtractor, models: ModelClient) -> None:
        self.settings = settings
        self.extractor = extractor
        self.models = models
        self.profile = catalog_profile(settings)

    # ── 1. EXTRACT SOURCES ────────────────────────────────────────────

    def extract_sources(self, state: CatalogState) -> dict[str, Any]:
        """Extract every source concurrently and join with blank lines.

        Any single source failure fails the job.  Short text fails it too,
        unless a source yielded structured items.
        """
        sources = state["sources"]
        workers = max(1, min(self.settings.catalog_workers, len(sources)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda s: self.extractor.extract(s, self.profile), sources))

        combined = "\n\n".join(r.text for r in results if r.text).strip()
        logger.info(
            "Text extraction complete",
            extra={"job_id": state.get("job_id"), "text_length": len(combined)},
        )
        if not combined or (len(combined) < MIN_COMBINED_CHARS and not any(r.structured for r in results)):
            raise ContentTooShortError("Extracted text too short")
        return {"text": combined}

    # ── 2. STRUCTURE ITEMS ────────────────────────────────────────────

    def structure_items(self, state: CatalogState) -> dict[str, Any]:
        """Ask the LLM for a strict JSON array of items present in the text."""
        prompt = build_catalog_prompt(state["kind"], state["text"], self.settings.max_catalog_text_chars)
        response = self.models.generate(prompt)
        raw_items = parse_items_json(response)
        logger.info(
            "Item extraction complete",
            extra={"job_id": state.get("job_id"), "item_count": len(raw_items)},
        )
        return {"raw_items": raw_items}

    # ── 3. VERIFY AGAINST SOURCE ─────────────────────────────────────

    def verify_items(self, state: CatalogState) -> dict[str, Any]:
        """Drop items whose names do not occur in the extracted text."""
        kept, dropped = filter_to_source(state["raw_items"], state["text"])
        if not dropped:
            return {"raw_items": kept}
        logger.info("Dropped items not found in source", extra={"job_id": state.get("job_id"), "dropped": dropped})
        return {"raw_items": kept, "warnings": [f"{dropped} item(s) not found in source text"]}

    # ── 4. BUILD PROPOSAL ITEMS ──────────────────────────────────────

    def build_items(self, state: CatalogState) -> dict[str, Any]:
        raw_items = state["raw_items"]
        warnings: list[str] = []
        if not raw_items:
            warnings.append("No items extracted.")
        missing = sum(1 for item in raw_items if parse_price(item.get("price")) is None)
        if missing:
            warnings.append(f"{missing} item(s) missing price.")

        items = [normalize_catalog_item(item, i, state["kind"]) for i, item in enumerate(raw_items)]
        return {"items": items, "warnings": warnings}

    # ── Routing ──────────────────────────────────────────────────────

    def route_after_structure(self, state: CatalogState) -> str:
        if self.settings.catalog_require_name_in_source and state["raw_items"]:
            return "verify_items"
        return "build_items"
