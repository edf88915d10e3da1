"""Binary asset reading — PDFs (cheap-first) and images (vision)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

from content_ingest.errors import PdfTooLongError
from content_ingest.extraction.pdf import PdfQualityPolicy, PdfTextParser
from content_ingest.llm.models import ModelClient
from content_ingest.llm.prompts import IMAGE_TEXT_PROMPT, PDF_TEXT_PROMPT
from content_ingest.textutil import normalize_text

logger = logging.getLogger(__name__)


@dataclass
class ExtractedText:
    text: str
    mime_type: str
    page_count: int | None = None
    structured: bool = False


def normalize_image_mime(content_type: str, url: str = "") -> str:
    """Resolve an ``image/*`` MIME type from a header or the URL extension."""
    lower = (content_type or "").lower()
    if lower.startswith("image/"):
        return lower.split(";")[0].strip()
    path = urlsplit(url).path.lower()
    if path.endswith(".png"):
        return "image/png"
    if path.endswith(".webp"):
        return "image/webp"
    if path.endswith(".gif"):
        return "image/gif"
    return "image/jpeg"


class AssetReader:
    """Read text out of PDFs and images.

    Parameters
    ----------
    models:
        Vision-capable model client used for images and PDF fallback.
    pdf_parser:
        Local text-layer parser, or ``None`` to always use the model.
    policy:
        Quality thresholds deciding when the local parse is unusable.
    """

    def __init__(
        self,
        models: ModelClient,
        pdf_parser: PdfTextParser | None = None,
        policy: PdfQualityPolicy | None = None,
    ) -> None:
        self.models = models
        self.pdf_parser = pdf_parser
        self.policy = policy or PdfQualityPolicy()

    def read_pdf(self, data: bytes) -> ExtractedText:
        page_count: int | None = None
        if self.pdf_parser is not None:
            try:
                parsed = self.pdf_parser.parse(data)
            except Exception:
                logger.warning("Local PDF parse failed, using vision model", exc_info=True)
            else:
                page_count = parsed.page_count
                if self.policy.too_long(parsed.page_count):
                    raise PdfTooLongError(parsed.page_count, self.policy.max_pages)
                text = normalize_text(parsed.text)
                if not self.policy.looks_bad(text, parsed.page_count):
                    return ExtractedText(text, "application/pdf", parsed.page_count)
                logger.info(
                    "Local PDF text looks unusable, using vision model",
                    extra={"chars": len(text), "page_count": parsed.page_count},
                )

        text = self.models.generate_from_file(data, "application/pdf", PDF_TEXT_PROMPT)
        return ExtractedText(normalize_text(text), "application/pdf", page_count)

    def read_image(self, data: bytes, mime_type: str) -> ExtractedText:
        text = self.models.generate_from_file(data, mime_type, IMAGE_TEXT_PROMPT)
        return ExtractedText(normalize_text(text), mime_type)
