"""Tier 1 — visible text from server-rendered HTML plus follow-up link candidates."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from content_ingest.textutil import normalize_text

STRIP_TAGS = ["script", "style", "nav", "footer", "header", "aside", "noscript", "iframe", "svg", "form"]
BOILERPLATE_PATTERN = re.compile(r"nav|footer|header|sidebar", re.IGNORECASE)
CONTENT_SELECTORS = ["main", "article", '[role="main"]', ".content", "#content", ".main", "#main", "body"]

LINK_KEYWORDS = (
    "menu",
    "menus",
    "food",
    "drink",
    "drinks",
    "wine",
    "cocktail",
    "price",
    "prices",
    "pricelist",
    "price-list",
    "services",
    "treatments",
    "spa",
    "salon",
    "packages",
    "catalog",
    "shop",
)
_IMAGE_LINK_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")


@dataclass
class StaticResult:
    text: str
    links: list[str] = field(default_factory=list)


def _is_boilerplate(tag) -> bool:  # noqa: ANN001
    if tag.attrs is None:
        return False
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = [classes]
    values = [*classes, tag.get("id") or ""]
    return any(BOILERPLATE_PATTERN.search(value) for value in values)


def score_link(href: str, link_text: str) -> int:
    """Score an anchor by how likely it leads to menu / price content."""
    href_lower = href.lower()
    text_lower = link_text.lower()
    score = sum(2 for kw in LINK_KEYWORDS if kw in href_lower or kw in text_lower)
    if href_lower.endswith(".pdf"):
        score += 5
    if href_lower.endswith(_IMAGE_LINK_EXTENSIONS):
        score += 3
    return score


def extract_static(html: str, *, min_selector_chars: int = 80, max_chars: int = 200_000, max_links: int = 4) -> StaticResult:
    """Strip boilerplate and return the main visible text and top link candidates.

    Parameters
    ----------
    html:
        Raw HTML document.
    min_selector_chars:
        A content selector is accepted once its text is longer than this.
    max_chars:
        Cap on the returned text.
    max_links:
        Number of follow-up hrefs to return, highest score first.
    """
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(STRIP_TAGS):
        tag.decompose()
    for tag in soup.find_all(_is_boilerplate):
        if not tag.decomposed:
            tag.decompose()

    extracted = ""
    for selector in CONTENT_SELECTORS:
        nodes = soup.select(selector)
        content = "\n".join(node.get_text(separator="\n") for node in nodes)
        if len(content.strip()) > min_selector_chars:
            extracted = content
            break

    text = normalize_text(extracted)[:max_chars]

    candidates: dict[str, int] = {}
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(("#", "mailto:", "tel:")):
            continue
        score = score_link(href, anchor.get_text(" "))
        if score <= 0:
            continue
        candidates[href] = max(candidates.get(href, 0), score)

    links = [href for href, _ in sorted(candidates.items(), key=lambda kv: kv[1], reverse=True)][:max_links]
    return StaticResult(text=text, links=links)
