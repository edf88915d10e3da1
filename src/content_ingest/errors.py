"""Error taxonomy shared by every ingestion component.

Each error carries a stable ``code`` and a human-readable ``message``.
Orchestrators record ``to_error()`` on the owning entity so that the
API layer can render a reason without re-deriving it.
"""

from __future__ import annotations

from typing import Any


class IngestError(Exception):
    """Base class for all ingestion failures."""

    code = "INGEST_FAILED"

    def __init__(self, message: str, *, code: str | None = None, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.__cause__ = cause

    def to_error(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


# ── Policy violations (never retried) ────────────────────────────────


class UrlNotAllowedError(IngestError):
    """The URL (or one of its redirect hops) violates the fetch policy."""

    code = "URL_NOT_ALLOWED"

    def __init__(self, reason: str) -> None:
        super().__init__(f"URL_NOT_ALLOWED: {reason}")
        self.reason = reason


class DnsTimeoutError(IngestError):
    code = "DNS_TIMEOUT"

    def __init__(self, host: str) -> None:
        super().__init__("DNS_TIMEOUT")
        self.host = host


# ── Transient fetch failures ─────────────────────────────────────────


class UrlTooLargeError(IngestError):
    code = "URL_TOO_LARGE"

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"URL_TOO_LARGE: {size} bytes (max {limit})")
        self.size = size
        self.limit = limit


class UrlFetchError(IngestError):
    code = "URL_FETCH_FAILED"

    def __init__(self, reason: str, *, cause: Exception | None = None) -> None:
        super().__init__(f"URL_FETCH_FAILED: {reason}", cause=cause)
        self.reason = reason


# ── Extraction ───────────────────────────────────────────────────────


class ExtractionError(IngestError):
    """No usable text could be produced for a source."""

    code = "URL_EXTRACT_FAILED"


class ExtractionBlockedError(ExtractionError):
    """A tier returned a terminal classification (blocked, captcha, headless failure…)."""

    def __init__(self, classification: str, human_message: str) -> None:
        super().__init__(f"URL_EXTRACT_FAILED: {human_message}")
        self.classification = classification
        self.human_message = human_message

    def to_error(self) -> dict[str, Any]:
        return {"code": self.classification, "message": self.message}


class PdfTooLongError(IngestError):
    code = "PDF_TOO_LONG"

    def __init__(self, page_count: int, limit: int) -> None:
        super().__init__(f"PDF too long ({page_count} pages), max {limit}")
        self.page_count = page_count


class UploadTooLargeError(IngestError):
    code = "UPLOAD_TOO_LARGE"


# ── Business rules ───────────────────────────────────────────────────


class QuotaExceededError(IngestError):
    code = "CHUNK_LIMIT_EXCEEDED"

    def __init__(self, existing: int, incoming: int, limit: int) -> None:
        super().__init__(f"Chunk limit exceeded: {existing}+{incoming} > {limit}")
        self.existing = existing
        self.incoming = incoming
        self.limit = limit


class ContentTooShortError(IngestError):
    code = "CONTENT_TOO_SHORT"


# ── External-input / state errors (mapped to HTTP statuses) ─────────


class ValidationError(IngestError):
    code = "INVALID_REQUEST"


class NotFoundError(IngestError):
    code = "NOT_FOUND"


class ProposalStateError(IngestError):
    code = "INVALID_STATE"
