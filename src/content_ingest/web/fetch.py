"""Guarded HTTP fetch with redirect re-validation and size/time limits.

A single hop is modelled by :meth:`GuardedFetcher.fetch_once`, which
returns a :data:`FetchOutcome`.  :meth:`GuardedFetcher.fetch` drives the
hop loop over ``(url, hops_remaining)`` and re-applies the URL guard
before every request.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Union
from urllib.parse import urljoin, urlsplit

import requests

from content_ingest.errors import UrlFetchError, UrlTooLargeError
from content_ingest.web.guard import UrlGuard

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")

_CHUNK_SIZE = 64 * 1024


# ── Outcomes ──────────────────────────────────────────────────────────


@dataclass
class Ok:
    url: str
    status: int
    content_type: str
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)
    encoding: str | None = None

    @property
    def text(self) -> str:
        try:
            return self.content.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            return self.content.decode("utf-8", errors="replace")


@dataclass
class Blocked:
    """The site refused us (403 / 429); terminal for the tier chain."""

    url: str
    status: int
    classification: str


@dataclass
class Redirect:
    next_url: str


@dataclass
class Failed:
    reason: str


FetchOutcome = Union[Ok, Blocked, Redirect, Failed]


@dataclass(frozen=True)
class FetchProfile:
    """Byte ceilings and link-following policy for one caller."""

    name: str
    max_html_bytes: int
    max_asset_bytes: int
    follow_links: bool


def is_pdf(content_type: str, url: str) -> bool:
    return "application/pdf" in content_type or urlsplit(url).path.lower().endswith(".pdf")


def is_image(content_type: str, url: str) -> bool:
    return content_type.startswith("image/") or urlsplit(url).path.lower().endswith(IMAGE_EXTENSIONS)


def _is_asset(content_type: str, url: str) -> bool:
    return is_pdf(content_type, url) or is_image(content_type, url)


# ── Fetcher ───────────────────────────────────────────────────────────


class GuardedFetcher:
    """Fetch public https resources under the SSRF policy.

    Parameters
    ----------
    guard:
        Policy applied to the initial URL and every redirect target.
    timeout:
        Total wall-clock budget per request in seconds (connect + body).
    max_redirects:
        Redirect hops allowed before failing.
    user_agent:
        ``User-Agent`` header sent with every request.
    session:
        Optional ``requests.Session`` (tests inject a mock).
    """

    def __init__(
        self,
        guard: UrlGuard,
        *,
        timeout: float = 12.0,
        max_redirects: int = 5,
        user_agent: str = "Mozilla/5.0",
        session: requests.Session | None = None,
    ) -> None:
        self.guard = guard
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.user_agent = user_agent
        self._session = session or requests.Session()

    def fetch(self, url: str, profile: FetchProfile) -> Ok | Blocked:
        """Follow redirects manually until a terminal outcome.

        Raises
        ------
        UrlNotAllowedError
            When any hop violates the guard.
        UrlTooLargeError
            When the body exceeds the profile's ceiling.
        UrlFetchError
            On network errors, non-2xx statuses or too many redirects.
        """
        current = url
        hops_remaining = self.max_redirects
        while True:
            self.guard.assert_allowed(current)
            outcome = self.fetch_once(current, profile)
            if isinstance(outcome, Redirect):
                if hops_remaining <= 0:
                    raise UrlFetchError("too many redirects")
                hops_remaining -= 1
                logger.debug("Redirect %s -> %s", current, outcome.next_url)
                current = outcome.next_url
                continue
            if isinstance(outcome, Failed):
                raise UrlFetchError(outcome.reason)
            return outcome

    def fetch_once(self, url: str, profile: FetchProfile) -> FetchOutcome:
        """Perform exactly one GET without following redirects."""
        deadline = time.monotonic() + self.timeout
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/pdf,image/*;q=0.9,*/*;q=0.8",
        }
        try:
            with self._session.get(
                url,
                headers=headers,
                allow_redirects=False,
                stream=True,
                timeout=(self.timeout, self.timeout),
            ) as resp:
                status = resp.status_code
                if status in REDIRECT_STATUSES:
                    location = resp.headers.get("location")
                    if not location:
                        return Failed(f"{status} redirect with no location")
                    return Redirect(urljoin(url, location))
                if status == 403:
                    return Blocked(url, status, "blocked_403")
                if status == 429:
                    return Blocked(url, status, "rate_limited_429")
                if not 200 <= status < 300:
                    return Failed(f"HTTP {status}")

                content_type = (resp.headers.get("content-type") or "").lower()
                limit = profile.max_asset_bytes if _is_asset(content_type, url) else profile.max_html_bytes
                declared = resp.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > limit:
                    raise UrlTooLargeError(int(declared), limit)

                body = bytearray()
                for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                    body.extend(chunk)
                    if len(body) > limit:
                        raise UrlTooLargeError(len(body), limit)
                    if time.monotonic() > deadline:
                        return Failed("request timed out")

                return Ok(
                    url=url,
                    status=status,
                    content_type=content_type,
                    content=bytes(body),
                    headers=dict(resp.headers),
                    encoding=resp.encoding if "charset=" in content_type else None,
                )
        except requests.Timeout as exc:
            logger.info("Fetch timed out", extra={"url": url})
            raise UrlFetchError("request timed out", cause=exc) from exc
        except requests.RequestException as exc:
            raise UrlFetchError(str(exc), cause=exc) from exc
