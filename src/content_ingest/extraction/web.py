"""URL extraction — guarded fetch, content sniffing and the three tiers.

Flow for one page::

    fetch (guarded) ─┬─ pdf / image ──► AssetReader
                     ├─ other text ───► normalize
                     └─ html ─► Tier 1 ─(< 200 chars)─► Tier 2 ─(SPA shell)─► Tier 3
                                   │
                                   └─► follow-up links (catalog profile, one hop)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

from content_ingest.errors import ExtractionBlockedError, ExtractionError
from content_ingest.extraction.assets import AssetReader, normalize_image_mime
from content_ingest.extraction.embedded_json import (
    BLOCKING_CLASSIFICATIONS,
    JS_SHELL_DETECTED,
    extract_embedded_json,
    extraction_error_message,
)
from content_ingest.extraction.headless import (
    HEADLESS_NO_ITEMS,
    HeadlessRenderer,
    headless_error_message,
)
from content_ingest.extraction.static_html import extract_static
from content_ingest.textutil import normalize_text
from content_ingest.web.fetch import Blocked, FetchProfile, GuardedFetcher, is_image, is_pdf

logger = logging.getLogger(__name__)

MIN_URL_TEXT_CHARS = 50


@dataclass
class PageText:
    """Text recovered from a URL.

    ``structured`` marks item listings recovered from embedded data (Tier 2
    or 3); they are accepted however short they are.  ``mime_type`` and
    ``page_count`` describe what the URL actually served.
    """

    text: str
    structured: bool = False
    mime_type: str = "text/html"
    page_count: int | None = None


def _is_html(content_type: str) -> bool:
    return not content_type or "text/html" in content_type or "application/xhtml+xml" in content_type


class WebExtractor:
    """Turn a public URL into text suitable for chunking or LLM structuring.

    Parameters
    ----------
    fetcher:
        Guarded fetcher (SSRF policy, size and time limits).
    headless:
        Tier 3 renderer.
    assets:
        Reader for PDFs and images served directly by the URL.
    max_text_chars:
        Cap on the text returned per page.
    static_min_text_chars:
        Tier 1 output shorter than this escalates to Tier 2.
    headless_min_text_chars:
        Rendered text without items is accepted only above this length.
    max_follow_links:
        Follow-up links fetched per page when the profile allows it.
    """

    def __init__(
        self,
        fetcher: GuardedFetcher,
        headless: HeadlessRenderer,
        assets: AssetReader,
        *,
        max_text_chars: int = 200_000,
        static_min_selector_chars: int = 80,
        static_min_text_chars: int = 200,
        headless_min_text_chars: int = 200,
        max_follow_links: int = 4,
    ) -> None:
        self.fetcher = fetcher
        self.headless = headless
        self.assets = assets
        self.max_text_chars = max_text_chars
        self.static_min_selector_chars = static_min_selector_chars
        self.static_min_text_chars = static_min_text_chars
        self.headless_min_text_chars = headless_min_text_chars
        self.max_follow_links = max_follow_links

    def extract(self, url: str, profile: FetchProfile) -> PageText:
        """Extract text from *url* (plus same-site follow-ups when the profile allows).

        Raises
        ------
        ExtractionBlockedError
            When the site blocks us or no tier could render it.
        ExtractionError
            When unstructured text is shorter than 50 chars.
        """
        visited: set[str] = set()
        result = self._extract_once(url, profile, profile.follow_links, visited)
        if not result.text.strip() or (not result.structured and len(result.text.strip()) < MIN_URL_TEXT_CHARS):
            raise ExtractionError("URL_EXTRACT_FAILED: No meaningful content found")
        return result

    def _extract_once(self, url: str, profile: FetchProfile, follow_links: bool, visited: set[str]) -> PageText:
        if url in visited:
            return PageText("")
        visited.add(url)

        outcome = self.fetcher.fetch(url, profile)
        if isinstance(outcome, Blocked):
            logger.warning("Extraction blocked", extra={"url": url, "classification": outcome.classification})
            raise ExtractionBlockedError(outcome.classification, extraction_error_message(outcome.classification))

        final_url, content_type = outcome.url, outcome.content_type
        if is_pdf(content_type, final_url):
            pdf = self.assets.read_pdf(outcome.content)
            return PageText(pdf.text[: self.max_text_chars], mime_type=pdf.mime_type, page_count=pdf.page_count)
        if is_image(content_type, final_url):
            mime = normalize_image_mime(content_type, final_url)
            return PageText(self.assets.read_image(outcome.content, mime).text[: self.max_text_chars], mime_type=mime)

        html = outcome.text
        if not _is_html(content_type):
            mime = content_type.split(";")[0].strip().lower() or "text/plain"
            return PageText(normalize_text(html)[: self.max_text_chars], mime_type=mime)

        # Tier 1
        static = extract_static(
            html,
            min_selector_chars=self.static_min_selector_chars,
            max_chars=self.max_text_chars,
            max_links=self.max_follow_links,
        )
        combined = static.text

        if len(combined) < self.static_min_text_chars:
            logger.info("Static HTML minimal, trying embedded JSON", extra={"url": url, "static_length": len(combined)})
            embedded = extract_embedded_json(html, outcome.status)
            if embedded.ok:
                logger.info(
                    "Embedded JSON extraction succeeded",
                    extra={"url": url, "pattern": embedded.source, "item_count": len(embedded.candidates)},
                )
                return PageText(embedded.text[: self.max_text_chars], structured=True)

            if embedded.classification in BLOCKING_CLASSIFICATIONS:
                logger.warning("Extraction blocked", extra={"url": url, "classification": embedded.classification})
                raise ExtractionBlockedError(
                    embedded.classification, extraction_error_message(embedded.classification)
                )

            if embedded.classification == JS_SHELL_DETECTED:
                return self._render(url)

        if follow_links and static.links:
            combined = self._follow(final_url, static.links, combined, profile, visited)

        return PageText(combined[: self.max_text_chars])

    def _render(self, url: str) -> PageText:
        logger.info("SPA shell detected, trying headless render", extra={"url": url})
        rendered = self.headless.extract(url)
        if rendered.candidates and rendered.text:
            return PageText(rendered.text[: self.max_text_chars], structured=True)
        if rendered.classification == HEADLESS_NO_ITEMS and len(rendered.text) > self.headless_min_text_chars:
            logger.info("Using rendered page text", extra={"url": url, "text_length": len(rendered.text)})
            return PageText(rendered.text[: self.max_text_chars])
        logger.warning("Headless extraction failed", extra={"url": url, "classification": rendered.classification})
        raise ExtractionBlockedError(rendered.classification, headless_error_message(rendered.classification))

    def _follow(
        self,
        base_url: str,
        links: list[str],
        combined: str,
        profile: FetchProfile,
        visited: set[str],
    ) -> str:
        base_host = urlsplit(base_url).hostname
        follow_ups: list[str] = []
        for href in links:
            absolute = urljoin(base_url, href)
            if urlsplit(absolute).hostname != base_host or absolute == base_url:
                continue
            if absolute not in follow_ups and absolute not in visited:
                follow_ups.append(absolute)
        follow_ups = follow_ups[: self.max_follow_links]
        if not follow_ups:
            return combined

        logger.info("Following candidate links", extra={"url": base_url, "count": len(follow_ups)})
        with ThreadPoolExecutor(max_workers=len(follow_ups)) as pool:
            futures = [pool.submit(self._extract_once, link, profile, False, visited) for link in follow_ups]

        extra = []
        for link, future in zip(follow_ups, futures):
            exc = future.exception()
            if exc is not None:
                logger.warning("Follow-up link failed", extra={"url": link, "error": str(exc)})
                continue
            page = future.result()
            if page.text:
                extra.append(page.text)
        if extra:
            combined = "\n\n".join([combined, *extra])
        return combined
