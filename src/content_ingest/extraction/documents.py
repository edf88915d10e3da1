"""Document extractor — dispatch a :data:`~content_ingest.models.Source` to its reader."""

from __future__ import annotations

import logging

from content_ingest.errors import UploadTooLargeError
from content_ingest.extraction.assets import AssetReader, ExtractedText, normalize_image_mime
from content_ingest.extraction.web import WebExtractor
from content_ingest.models import ImageSource, PdfSource, Source, TextSource, UrlSource
from content_ingest.store.base import BlobStore
from content_ingest.textutil import normalize_text
from content_ingest.web.fetch import FetchProfile

logger = logging.getLogger(__name__)


class DocumentExtractor:
    """Produce raw text for any source type.

    * ``text``  → normalized inline text
    * ``url``   → Tier 1 → 2 → 3 via :class:`WebExtractor`
    * ``pdf``   → local parse, vision fallback
    * ``image`` → vision
    """

    def __init__(
        self,
        web: WebExtractor,
        assets: AssetReader,
        blobs: BlobStore,
        *,
        max_upload_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self.web = web
        self.assets = assets
        self.blobs = blobs
        self.max_upload_bytes = max_upload_bytes

    def _download(self, path: str) -> tuple[bytes, str | None]:
        data, content_type = self.blobs.download(path)
        if len(data) > self.max_upload_bytes:
            raise UploadTooLargeError(
                f"File too large: {len(data)} bytes (max {self.max_upload_bytes})"
            )
        return data, content_type

    def extract(self, source: Source, profile: FetchProfile) -> ExtractedText:
        if isinstance(source, TextSource):
            return ExtractedText(normalize_text(source.text), "text/plain")

        if isinstance(source, UrlSource):
            page = self.web.extract(source.url, profile)
            return ExtractedText(
                page.text, page.mime_type, page_count=page.page_count, structured=page.structured
            )

        if isinstance(source, PdfSource):
            data, _ = self._download(source.storage_path)
            return self.assets.read_pdf(data)

        if isinstance(source, ImageSource):
            data, content_type = self._download(source.storage_path)
            mime = source.mime_type or content_type or "image/jpeg"
            return self.assets.read_image(data, normalize_image_mime(mime, source.storage_path))

        raise TypeError(f"Unsupported source: {source!r}")
