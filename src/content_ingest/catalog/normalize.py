"""Parsing, normalization and verification of LLM-extracted catalog items."""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from content_ingest.models import CURRENCIES, CatalogItem
from content_ingest.textutil import sha256_hex

logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")

_CURRENCY_MARKERS = (
    ("TRY", ("₺", "TL", "LIRA")),
    ("EUR", ("€", "EURO")),
    ("GBP", ("£", "POUND", "STERLING")),
    ("USD", ("$", "DOLLAR")),
)


def parse_items_json(response: str) -> list[dict[str, Any]]:
    """Take the first ``[...]`` span of *response*; anything unparseable yields ``[]``."""
    match = _JSON_ARRAY.search(response or "")
    if not match:
        return []
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        logger.warning("LLM returned malformed JSON array")
        return []
    if not isinstance(parsed, list):
        return []
    return [
        item
        for item in parsed
        if isinstance(item, dict) and isinstance(item.get("name"), str) and item["name"].strip()
    ]


def parse_price(value: Any) -> float | None:
    """Numeric price from a number or a string like ``"₺15.00"``; ``None`` when absent."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) and value >= 0 else None
    if isinstance(value, str):
        digits = re.sub(r"[^0-9.]", "", value)
        match = re.match(r"\d*\.?\d+|\d+", digits)
        if match:
            return float(match.group(0))
    return None


def normalize_currency(value: Any) -> str:
    if not isinstance(value, str):
        return "TRY"
    code = value.strip().upper()
    if code in CURRENCIES:
        return code
    for currency, markers in _CURRENCY_MARKERS:
        if any(marker in code for marker in markers):
            return currency
    return "TRY"


def _number_text(value: float) -> str:
    return str(int(value)) if value.is_integer() else repr(value)


def _clean_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def item_id(kind: str, name: str, price: float, currency: str, category: str | None) -> str:
    return sha256_hex(f"{kind}:{name}:{_number_text(price)}:{currency}:{category or ''}")[:20]


def normalize_catalog_item(
    item: dict[str, Any],
    index: int,
    kind: str,
    fallback_image_url: str | None = None,
) -> CatalogItem:
    """Coerce one raw item to a :class:`CatalogItem`.

    The id is always the content hash; any ``id`` on the raw item is ignored.
    """
    name = _clean_str(item.get("name")) or "Unnamed Item"
    price = parse_price(item.get("price")) or 0.0
    currency = normalize_currency(item.get("currency"))
    category = _clean_str(item.get("category"))

    image_url = item.get("imageUrl")
    if not (isinstance(image_url, str) and image_url.startswith("http")):
        image_url = fallback_image_url

    return CatalogItem(
        id=item_id(kind, name, price, currency, category),
        name=name,
        description=_clean_str(item.get("description")),
        price=price,
        currency=currency,
        category=category,
        available=item.get("available") is not False,
        image_url=image_url,
        sort_order=index,
    )


# ── Source containment ───────────────────────────────────────────────


def _fold(text: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"[^\w\s]", " ", text.casefold())).strip()


def name_in_source(name: str, folded_source: str) -> bool:
    """``True`` when *name* (or every 3+ char token of it) occurs in the folded source."""
    folded = _fold(name)
    if not folded:
        return False
    if folded in folded_source:
        return True
    tokens = [t for t in folded.split() if len(t) >= 3]
    return bool(tokens) and all(t in folded_source for t in tokens)


def filter_to_source(items: list[dict[str, Any]], source_text: str) -> tuple[list[dict[str, Any]], int]:
    """Drop items whose names cannot be found in *source_text*; return ``(kept, dropped)``."""
    folded_source = _fold(source_text)
    kept = [item for item in items if name_in_source(str(item.get("name", "")), folded_source)]
    return kept, len(items) - len(kept)
