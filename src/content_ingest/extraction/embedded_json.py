"""Tier 2 — recover catalog data from framework-injected JSON and JSON-LD.

Also classifies pages that no tier can help with (403 / 429 / CAPTCHA)
and SPA shells that need a rendered DOM (Tier 3).
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

JSONValue = Any  # None | bool | int | float | str | list[JSONValue] | dict[str, JSONValue]

# ── Result classifications ────────────────────────────────────────────

EMBEDDED_JSON_OK = "embedded_json_ok"
JS_SHELL_DETECTED = "js_shell_detected"
BLOCKED_403 = "blocked_403"
RATE_LIMITED_429 = "rate_limited_429"
CAPTCHA_CHALLENGE = "captcha_challenge"
NO_ITEMS_FOUND = "no_items_found"

BLOCKING_CLASSIFICATIONS = frozenset({BLOCKED_403, RATE_LIMITED_429, CAPTCHA_CHALLENGE})

MESSAGES = {
    JS_SHELL_DETECTED: "This website requires JavaScript to load content. Try uploading a screenshot or PDF instead.",
    BLOCKED_403: "Access to this website was denied (403 Forbidden).",
    RATE_LIMITED_429: "Rate limited by the website. Please try again later.",
    CAPTCHA_CHALLENGE: "This website has bot protection. Try uploading a screenshot instead.",
    NO_ITEMS_FOUND: "Could not find menu items or products on this page. Try a direct link to the menu page.",
}


def extraction_error_message(classification: str) -> str:
    return MESSAGES.get(classification, "An unexpected error occurred while extracting content.")


# ── Candidates ────────────────────────────────────────────────────────


@dataclass
class Candidate:
    """A product-like record discovered in embedded data."""

    name: str
    description: str | None = None
    price: JSONValue = None
    has_price: bool = False
    currency: str | None = None
    category: str | None = None
    image_url: str | None = None


@dataclass(frozen=True)
class ProductScan:
    """Which keys make a JSON object look like a product, and how deep to look.

    ``object_depth_limit`` stops descending into non-container objects
    past that depth (``None`` means no extra limit).
    """

    name_keys: tuple[str, ...] = ("name", "title", "productName")
    price_keys: tuple[str, ...] = ("prices", "priceInfo")
    container_keys: tuple[str, ...] = (
        "products",
        "items",
        "menuitems",
        "menu",
        "services",
        "offerings",
        "catalog",
        "data",
        "results",
        "edges",
        "nodes",
    )
    description_keys: tuple[str, ...] = ("description",)
    currency_keys: tuple[str, ...] = ("currency", "priceCurrency", "currencyCode")
    category_keys: tuple[str, ...] = ("category",)
    max_depth: int = 10
    object_depth_limit: int | None = None


DEFAULT_SCAN = ProductScan()


def _first(obj: dict[str, JSONValue], keys: tuple[str, ...]) -> JSONValue:
    for key in keys:
        value = obj.get(key)
        if value:
            return value
    return None


def _text(value: JSONValue) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _named(item: JSONValue, scan: ProductScan) -> bool:
    return isinstance(item, dict) and bool(_first(item, scan.name_keys))


def _priced(item: dict[str, JSONValue], scan: ProductScan) -> bool:
    return "price" in item or any(item.get(key) for key in scan.price_keys)


def _to_candidate(item: dict[str, JSONValue], scan: ProductScan) -> Candidate:
    image = item.get("image") or item.get("imageUrl")
    if isinstance(image, list):
        image = image[0] if image else None
    return Candidate(
        name=_text(_first(item, scan.name_keys)) or "Unknown",
        description=_text(_first(item, scan.description_keys)),
        price=item.get("price"),
        has_price="price" in item,
        currency=_text(_first(item, scan.currency_keys)),
        category=_text(_first(item, scan.category_keys)),
        image_url=_text(image),
    )


def find_product_candidates(value: JSONValue, scan: ProductScan = DEFAULT_SCAN, depth: int = 0) -> list[Candidate]:
    """Depth-bounded walk collecting arrays whose elements look like products.

    An array qualifies when at least one element has a name key and a
    price key; every named element of a qualifying array is returned.
    Container keys from the allowlist are visited first.
    """
    if depth > scan.max_depth or not isinstance(value, (dict, list)):
        return []

    results: list[Candidate] = []
    if isinstance(value, list):
        if any(_named(item, scan) and _priced(item, scan) for item in value):
            results.extend(_to_candidate(item, scan) for item in value if _named(item, scan))
        children = list(value)
    else:
        preferred = [k for k in value if k.lower() in scan.container_keys]
        rest = [k for k in value if k.lower() not in scan.container_keys]
        children = []
        for key in preferred + rest:
            child = value[key]
            descend = (
                key in preferred
                or isinstance(child, list)
                or scan.object_depth_limit is None
                or depth < scan.object_depth_limit
            )
            if descend:
                children.append(child)

    for child in children:
        results.extend(find_product_candidates(child, scan, depth + 1))
    return results


def _offer(schema: dict[str, JSONValue]) -> dict[str, JSONValue]:
    offers = schema.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    return offers if isinstance(offers, dict) else {}


def _ld_candidate(schema: dict[str, JSONValue], category: str | None = None, *, own_price: bool = False) -> Candidate | None:
    name = _text(schema.get("name"))
    if not name:
        return None
    offer = _offer(schema)
    price = offer.get("price")
    currency = offer.get("priceCurrency")
    if own_price:
        price = schema.get("price") if price is None else price
        currency = currency or schema.get("priceCurrency")
    image = schema.get("image")
    if isinstance(image, list):
        image = image[0] if image else None
    return Candidate(
        name=name,
        description=_text(schema.get("description")),
        price=price,
        has_price=price is not None,
        currency=_text(currency),
        category=category or _text(schema.get("category")),
        image_url=_text(image),
    )


def _as_list(value: JSONValue) -> list[JSONValue]:
    if isinstance(value, list):
        return value
    return [value] if value else []


def candidates_from_json_ld(schemas: list[JSONValue]) -> list[Candidate]:
    """Interpret ``Product``, ``MenuItem``, ``ItemList``, ``Menu`` and ``Restaurant``."""
    results: list[Candidate] = []
    for schema in schemas:
        if not isinstance(schema, dict):
            continue
        kind = schema.get("@type")
        if kind in ("Product", "MenuItem"):
            candidate = _ld_candidate(schema, own_price=True)
            if candidate:
                results.append(candidate)
        if kind == "ItemList":
            for element in _as_list(schema.get("itemListElement")):
                if isinstance(element, dict) and isinstance(element.get("item"), dict):
                    candidate = _ld_candidate(element["item"])
                    if candidate:
                        results.append(candidate)
        if kind == "Menu":
            for section in _as_list(schema.get("hasMenuSection")):
                if not isinstance(section, dict):
                    continue
                section_name = _text(section.get("name"))
                for menu_item in _as_list(section.get("hasMenuItem")):
                    if isinstance(menu_item, dict):
                        candidate = _ld_candidate(menu_item, section_name)
                        if candidate:
                            results.append(candidate)
        if kind == "Restaurant" and schema.get("hasMenu"):
            results.extend(candidates_from_json_ld(_as_list(schema["hasMenu"])))
    return results


def _format_price(price: JSONValue) -> str:
    if isinstance(price, float) and price.is_integer():
        return str(int(price))
    return str(price)


def candidates_to_text(candidates: list[Candidate], limit: int | None = None) -> str:
    """Render candidates as a numbered, line-oriented block for LLM structuring."""
    blocks = []
    for i, c in enumerate(candidates[:limit] if limit else candidates):
        lines = [f"{i + 1}. {c.name}"]
        if c.description:
            lines.append(f"   {c.description}")
        if c.has_price:
            lines.append("   Price: " + " ".join(p for p in (c.currency or "", _format_price(c.price)) if p))
        if c.category:
            lines.append(f"   Category: {c.category}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


# ── Parsing helpers ───────────────────────────────────────────────────


def parse_loose_json(raw: str) -> JSONValue:
    """Parse *raw*, retrying once with trailing commas removed; ``None`` on failure."""
    try:
        return json.loads(raw)
    except ValueError:
        fixed = re.sub(r",\s*}", "}", raw)
        fixed = re.sub(r",\s*]", "]", fixed)
        try:
            return json.loads(fixed)
        except ValueError:
            return None


# ── Classification ────────────────────────────────────────────────────

_CAPTCHA_MARKERS = ("captcha", "recaptcha", "hcaptcha", "cf-turnstile", "challenge-running")


def detect_blocking(html: str, status: int = 200) -> str | None:
    if status == 403:
        return BLOCKED_403
    if status == 429:
        return RATE_LIMITED_429
    lower = html.lower()
    if any(marker in lower for marker in _CAPTCHA_MARKERS):
        return CAPTCHA_CHALLENGE
    if "cloudflare" in lower and ("checking your browser" in lower or "ray id" in lower):
        return CAPTCHA_CHALLENGE
    return None


def detect_spa_shell(soup: BeautifulSoup) -> bool:
    """Two or more shell signals mean the page needs a rendered DOM."""
    script_count = len(soup.find_all("script"))
    has_app_root = bool(soup.select("div#app, div#root, div#__next, div#__nuxt"))

    clone = BeautifulSoup(str(soup), "html.parser")
    for tag in clone(["script", "style", "meta", "link", "noscript"]):
        tag.decompose()
    body = clone.body or clone
    body_text = re.sub(r"\s+", " ", body.get_text(" ")).strip()

    signals = [
        len(body_text) < 100,
        bool(re.search(r"enable\s*javascript", body_text, re.IGNORECASE)),
        bool(re.search(r"loading", body_text, re.IGNORECASE)) and len(body_text) < 200,
        has_app_root and len(body_text) < 200,
        script_count > 3 and len(body_text) < 150,
    ]
    return sum(signals) >= 2


# ── Extraction ────────────────────────────────────────────────────────

_STATE_VARIABLES = ("__NUXT__", "__APOLLO_STATE__", "__INITIAL_STATE__", "__PRELOADED_STATE__", "__REDUX_STATE__")
STATE_PATTERNS = [
    (name.strip("_").lower(), re.compile(rf"window\.{name}\s*=\s*(\{{[\s\S]*?\}});?\s*</script>"))
    for name in _STATE_VARIABLES
]


@dataclass
class EmbeddedResult:
    classification: str
    text: str = ""
    candidates: list[Candidate] = field(default_factory=list)
    source: str = "none"

    @property
    def ok(self) -> bool:
        return self.classification == EMBEDDED_JSON_OK and bool(self.text)


def _json_ld_schemas(soup: BeautifulSoup) -> list[JSONValue]:
    schemas: list[JSONValue] = []
    for script in soup.find_all("script", type="application/ld+json"):
        parsed = parse_loose_json(script.string or script.get_text())
        if isinstance(parsed, list):
            schemas.extend(parsed)
        elif parsed is not None:
            schemas.append(parsed)
    return schemas


def extract_embedded_json(html: str, status: int = 200) -> EmbeddedResult:
    """Try each embedded-data pattern in order, then classify the page."""
    blocking = detect_blocking(html, status)
    if blocking:
        return EmbeddedResult(blocking, source="blocking_detection")

    soup = BeautifulSoup(html, "html.parser")

    attempts: list[tuple[str, str]] = []
    next_data = soup.find("script", id="__NEXT_DATA__")
    if next_data is not None:
        attempts.append(("next_data", next_data.string or next_data.get_text()))
    for name, pattern in STATE_PATTERNS:
        match = pattern.search(html)
        if match:
            attempts.append((name, match.group(1)))

    for name, raw in attempts:
        data = parse_loose_json(raw)
        if data is None:
            continue
        logger.info("Found embedded JSON", extra={"pattern": name})
        candidates = find_product_candidates(data)
        if candidates:
            return EmbeddedResult(EMBEDDED_JSON_OK, candidates_to_text(candidates), candidates, name)

    schemas = _json_ld_schemas(soup)
    if schemas:
        candidates = candidates_from_json_ld(schemas)
        if candidates:
            return EmbeddedResult(EMBEDDED_JSON_OK, candidates_to_text(candidates), candidates, "json_ld")

    if detect_spa_shell(soup):
        return EmbeddedResult(JS_SHELL_DETECTED, source="spa_detection")
    return EmbeddedResult(NO_ITEMS_FOUND)
