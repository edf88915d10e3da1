"""Tenant catalog extraction from knowledge-doc text.

The document is split into headed sections, each section is structured
by one LLM call, and the result replaces the items previously extracted
from the same doc.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from content_ingest.catalog.normalize import normalize_currency, parse_items_json, parse_price
from content_ingest.llm.prompts import build_section_prompt
from content_ingest.textutil import sha256_hex

if TYPE_CHECKING:
    from content_ingest.config import Settings
    from content_ingest.llm.models import ModelClient
    from content_ingest.store.repositories import CatalogRepository

logger = logging.getLogger(__name__)

PRICE_TYPES = ("fixed", "from", "hourly", "per_person", "free", "unknown")
DEFAULT_SECTION = "General"

_ALL_CAPS = re.compile(r"^[A-Z][A-Z\s&]+$")
_MARKDOWN_HEADER = re.compile(r"^#{1,3}\s+")
_MAX_HEADER_CHARS = 100
_MIN_SECTION_CHARS = 20


@dataclass
class Section:
    title: str
    text: str


def _is_header(line: str) -> bool:
    if not line or len(line) >= _MAX_HEADER_CHARS:
        return False
    return bool(_ALL_CAPS.match(line) or line.endswith(":") or _MARKDOWN_HEADER.match(line))


def _header_title(line: str) -> str:
    return _MARKDOWN_HEADER.sub("", line).rstrip(":").strip() or DEFAULT_SECTION


def split_by_sections(text: str, max_chars: int = 8000) -> list[Section]:
    """Split *text* at header-looking lines; tiny sections are dropped."""
    sections: list[Section] = []
    title = DEFAULT_SECTION
    lines: list[str] = []

    def _flush() -> None:
        body = "\n".join(lines).strip()
        if len(body) > _MIN_SECTION_CHARS:
            sections.append(Section(title, body[:max_chars]))

    for raw in text.splitlines():
        line = raw.strip()
        if _is_header(line):
            _flush()
            title = _header_title(line)
            lines = []
        else:
            lines.append(line)
    _flush()
    return sections


def _price_type(value: Any, price: float | None) -> str:
    if isinstance(value, str) and value in PRICE_TYPES:
        return value
    return "fixed" if price is not None else "unknown"


def extraction_run_id(doc_id: str) -> str:
    return f"run_{int(time.time() * 1000)}_{sha256_hex(doc_id)[:8]}"


def doc_item_id(tenant_id: str, doc_id: str, section: str, name: str, price: float | None, price_type: str) -> str:
    price_text = "null" if price is None else repr(price)
    key = f"{tenant_id}|{doc_id}|{section.lower()}|{name.lower()}|{price_text}|{price_type}"
    return sha256_hex(key)[:20]


class DocCatalogExtractor:
    """Extract and persist tenant catalog items for one knowledge doc."""

    def __init__(self, settings: Settings, models: ModelClient, repo: CatalogRepository) -> None:
        self.settings = settings
        self.models = models
        self.repo = repo

    def _extract_section(self, section: Section) -> list[dict[str, Any]]:
        try:
            response = self.models.generate(build_section_prompt(section.title, section.text))
        except Exception:
            logger.warning("Section extraction failed", exc_info=True, extra={"section": section.title})
            return []
        return parse_items_json(response)

    def extract_items(self, tenant_id: str, doc_id: str, text: str) -> list[dict[str, Any]]:
        """Structure *text* into catalog item documents (no persistence)."""
        limit = self.settings.catalog_max_items_per_doc
        items: list[dict[str, Any]] = []
        seen: set[str] = set()

        for section in split_by_sections(text, self.settings.catalog_section_max_chars):
            for raw in self._extract_section(section):
                if len(items) >= limit:
                    break
                name = raw["name"].strip()
                section_title = raw.get("section") if isinstance(raw.get("section"), str) else section.title
                key = f"{section_title.lower()}|{name.lower()}"
                if key in seen:
                    continue
                seen.add(key)

                price = parse_price(raw.get("price"))
                price_type = _price_type(raw.get("priceType"), price)
                if price_type in ("unknown", "free"):
                    price = None if price_type == "unknown" else 0.0
                description = raw.get("description")
                items.append(
                    {
                        "id": doc_item_id(tenant_id, doc_id, section_title, name, price, price_type),
                        "name": name,
                        "section": section_title,
                        "description": description.strip() if isinstance(description, str) else None,
                        "price": price,
                        "priceType": price_type,
                        "currency": normalize_currency(raw.get("currency")),
                    }
                )
            if len(items) >= limit:
                logger.warning("Catalog item cap reached", extra={"doc_id": doc_id, "limit": limit})
                break
        return items

    def extract_and_save(self, tenant_id: str, doc_id: str, text: str) -> tuple[int, str]:
        """Replace the doc's extracted catalog; return ``(item_count, run_id)``."""
        run_id = extraction_run_id(doc_id)
        items = self.extract_items(tenant_id, doc_id, text)
        deactivated = self.repo.deactivate_extracted(tenant_id, doc_id)
        source = {"type": "doc", "docId": doc_id, "extractionRunId": run_id}
        self.repo.upsert_tenant_items(tenant_id, [{**item, "source": source} for item in items])
        logger.info(
            "Catalog extracted from doc",
            extra={"tenant_id": tenant_id, "doc_id": doc_id, "items": len(items), "deactivated": deactivated},
        )
        return len(items), run_id
