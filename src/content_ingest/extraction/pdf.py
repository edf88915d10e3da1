"""Local PDF text-layer parsing and the quality policy that gates it.

Parsing locally is the cheap path.  When no parser is configured, the
parser fails, or its output looks like garbage, the caller falls back
to the vision model.  Only an over-long document fails outright.
"""

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from pypdf import PdfReader

logger = logging.getLogger(__name__)


@dataclass
class ParsedPdf:
    text: str
    page_count: int


class PdfTextParser(ABC):
    """Capability: turn PDF bytes into text plus a page count."""

    @abstractmethod
    def parse(self, data: bytes) -> ParsedPdf: ...


class PypdfTextParser(PdfTextParser):
    def parse(self, data: bytes) -> ParsedPdf:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
        return ParsedPdf(text="\n\n".join(pages), page_count=len(pages))


@dataclass(frozen=True)
class PdfQualityPolicy:
    """Thresholds for deciding a local text layer is unusable.

    The defaults are heuristics, not correctness requirements.
    """

    min_chars: int = 200
    min_chars_per_page: int = 50
    max_replacement_chars: int = 0
    max_pages: int = 50

    def looks_bad(self, text: str, page_count: int) -> bool:
        stripped = text.strip()
        if len(stripped) < self.min_chars:
            return True
        if stripped.count("�") > self.max_replacement_chars:
            return True
        return len(stripped) / max(page_count, 1) < self.min_chars_per_page

    def too_long(self, page_count: int) -> bool:
        return page_count > self.max_pages
