"""Tier 3 — render JS-only pages through a managed remote browser.

Only reached for SPA shells.  The rendered HTML is scanned for embedded
JSON again (with a wider key set); failing that, its cleaned visible
text is handed back for LLM structuring.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field

import requests

from content_ingest.extraction.embedded_json import (
    CAPTCHA_CHALLENGE,
    Candidate,
    ProductScan,
    candidates_to_text,
    detect_blocking,
    find_product_candidates,
)

logger = logging.getLogger(__name__)

HEADLESS_JSON_OK = "headless_json_ok"
HEADLESS_NO_ITEMS = "headless_no_items"
HEADLESS_BLOCKED = "headless_blocked"
HEADLESS_CAPTCHA = "headless_captcha"
HEADLESS_TIMEOUT = "headless_timeout"
HEADLESS_ERROR = "headless_error"

MESSAGES = {
    HEADLESS_BLOCKED: "The website blocked automated access. Try uploading a screenshot instead.",
    HEADLESS_CAPTCHA: "This website has CAPTCHA protection. Try uploading a screenshot instead.",
    HEADLESS_TIMEOUT: "The page took too long to load. Try uploading a screenshot instead.",
    HEADLESS_NO_ITEMS: "Could not find menu items on this page. Try a direct link to the menu.",
    HEADLESS_ERROR: "An error occurred while loading the page. Try again or upload a screenshot.",
}

RENDERED_SCAN = ProductScan(
    name_keys=("name", "title", "productName", "itemName"),
    price_keys=("prices", "priceInfo", "unitPrice"),
    container_keys=ProductScan().container_keys
    + ("content", "list", "records", "entries", "result", "productlist"),
    description_keys=("description", "content"),
    currency_keys=("currencyType", "currency", "priceCurrency"),
    category_keys=("categoryName", "category"),
    max_depth=8,
    object_depth_limit=4,
)

SCRIPT_JSON_PATTERNS = [
    re.compile(r'<script[^>]*type="application/json"[^>]*>([\s\S]*?)</script>', re.IGNORECASE),
    re.compile(r'<script[^>]*id="__NEXT_DATA__"[^>]*>([\s\S]*?)</script>', re.IGNORECASE),
    re.compile(r'<script[^>]*id="__NUXT__"[^>]*>([\s\S]*?)</script>', re.IGNORECASE),
    re.compile(r"window\.__INITIAL_STATE__\s*=\s*(\{[\s\S]*?\});", re.IGNORECASE),
    re.compile(r"window\.__PRELOADED_STATE__\s*=\s*(\{[\s\S]*?\});", re.IGNORECASE),
]
_SCRIPT_BODY = re.compile(r"<script[^>]*>([\s\S]*?)</script>", re.IGNORECASE)
_INLINE_PRODUCT = re.compile(r'\{[^{}]*"(?:name|title|productName)"[^{}]*"price"[^{}]*\}')

MAX_RENDERED_ITEMS = 100
MAX_CLEAN_TEXT_CHARS = 50_000


def headless_error_message(classification: str) -> str:
    return MESSAGES.get(classification, "Extraction failed. Try uploading a screenshot.")


@dataclass
class HeadlessResult:
    classification: str
    text: str = ""
    candidates: list[Candidate] = field(default_factory=list)


def clean_rendered_text(html: str, max_chars: int = MAX_CLEAN_TEXT_CHARS) -> str:
    text = re.sub(r"<script[\s\S]*?</script>", "", html, flags=re.IGNORECASE)
    text = re.sub(r"<style[\s\S]*?</style>", "", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", " ", text)
    return re.sub(r"\s+", " ", text).strip()[:max_chars]


def scan_rendered_html(html: str) -> list[Candidate]:
    """Embedded-JSON scan over rendered HTML, then a loose inline-object fallback."""
    found: list[Candidate] = []
    for pattern in SCRIPT_JSON_PATTERNS:
        for match in pattern.finditer(html):
            try:
                body = json.loads(match.group(1).strip())
            except ValueError:
                continue
            found.extend(find_product_candidates(body, RENDERED_SCAN))

    if not found:
        for script in _SCRIPT_BODY.finditer(html):
            for raw in _INLINE_PRODUCT.findall(script.group(1)):
                try:
                    body = json.loads(raw)
                except ValueError:
                    continue
                found.extend(find_product_candidates([body], RENDERED_SCAN))
    return found


class HeadlessRenderer:
    """Client for a browserless-style ``/content`` rendering endpoint.

    Parameters
    ----------
    base_url:
        Service root, e.g. ``https://chrome.browserless.io``.
    token:
        API token; without one every call returns ``headless_error``.
    timeout:
        Navigation timeout in seconds passed to the service.
    wait_ms:
        Extra wait after network idle, for late XHR.
    session:
        Optional ``requests.Session`` (tests inject a mock).
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 45.0,
        wait_ms: int = 8000,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.wait_ms = wait_ms
        self._session = session or requests.Session()

    def render(self, url: str) -> str:
        """Return the fully rendered HTML of *url*; raises ``requests`` errors."""
        timeout_ms = int(self.timeout * 1000)
        resp = self._session.post(
            f"{self.base_url}/content",
            params={"token": self.token, "stealth": "true"},
            json={
                "url": url,
                "gotoOptions": {"waitUntil": "networkidle0", "timeout": timeout_ms},
                "waitForTimeout": self.wait_ms,
                "waitForSelector": {"selector": "body", "timeout": 10_000},
                "bestAttempt": True,
            },
            # Navigation budget plus the post-idle wait and some slack.
            timeout=self.timeout + self.wait_ms / 1000 + 15,
        )
        resp.raise_for_status()
        return resp.text

    def extract(self, url: str) -> HeadlessResult:
        if not self.token:
            logger.warning("Headless rendering token not configured")
            return HeadlessResult(HEADLESS_ERROR)

        logger.info("Rendering page via headless service", extra={"url": url})
        try:
            html = self.render(url)
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            logger.error("Headless service error", extra={"url": url, "status": status})
            return HeadlessResult(HEADLESS_BLOCKED if status in (403, 429) else HEADLESS_ERROR)
        except requests.Timeout:
            logger.warning("Headless render timed out", extra={"url": url})
            return HeadlessResult(HEADLESS_TIMEOUT)
        except requests.RequestException as exc:
            logger.error("Headless render failed", extra={"url": url, "error": str(exc)})
            return HeadlessResult(HEADLESS_TIMEOUT if "timeout" in str(exc).lower() else HEADLESS_ERROR)

        candidates = scan_rendered_html(html)
        if not candidates:
            if detect_blocking(html) == CAPTCHA_CHALLENGE:
                logger.warning("Rendered page is a captcha challenge", extra={"url": url})
                return HeadlessResult(HEADLESS_CAPTCHA)
            text = clean_rendered_text(html)
            logger.info("Rendered page has no embedded items", extra={"url": url, "text_length": len(text)})
            return HeadlessResult(HEADLESS_NO_ITEMS, text)

        logger.info("Extracted items from rendered page", extra={"url": url, "item_count": len(candidates)})
        return HeadlessResult(HEADLESS_JSON_OK, candidates_to_text(candidates, MAX_RENDERED_ITEMS), candidates)
