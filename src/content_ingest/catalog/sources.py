"""Catalog job source normalization and the job idempotency key."""

from __future__ import annotations

import json
import re
from typing import Any
from urllib.parse import unquote, urlsplit

from content_ingest.models import ImageSource, PdfSource, Source, UrlSource
from content_ingest.textutil import sha256_hex

_FIREBASE_OBJECT = re.compile(r"/v0/b/[^/]+/o/(.+)$")


def storage_path_from_url(raw_url: str) -> str | None:
    """Extract the object path from a known cloud-storage download URL.

    Recognizes Firebase Storage download URLs
    (``https://firebasestorage.googleapis.com/v0/b/<bucket>/o/<encoded path>``)
    and GCS public URLs (``https://storage.googleapis.com/<bucket>/<path>``).
    """
    try:
        parts = urlsplit(raw_url)
    except ValueError:
        return None
    host = (parts.hostname or "").lower()

    if host == "firebasestorage.googleapis.com" or host.endswith(".firebasestorage.googleapis.com"):
        match = _FIREBASE_OBJECT.search(parts.path)
        return unquote(match.group(1)) if match else None

    if host == "storage.googleapis.com":
        segments = [s for s in parts.path.split("/") if s]
        if len(segments) < 2:
            return None
        return "/".join(segments[1:])

    return None


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_sources(raw: Any) -> list[Source]:
    """Coerce client-supplied source dicts into typed sources.

    ``pdf`` / ``image`` entries without a resolvable storage path are
    demoted to ``url`` sources; unknown and empty entries are dropped.
    """
    if not isinstance(raw, list):
        return []
    sources: list[Source] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        kind = entry.get("type")
        url = _clean(entry.get("url"))
        if kind == "url":
            if url:
                sources.append(UrlSource(url=url))
        elif kind in ("pdf", "image"):
            storage_path = _clean(entry.get("storagePath")) or (storage_path_from_url(url) if url else None)
            if storage_path:
                cls = PdfSource if kind == "pdf" else ImageSource
                sources.append(cls(storage_path=storage_path))
            elif url:
                sources.append(UrlSource(url=url))
    return sources


def idempotency_key(listing_id: str, kind: str, sources: list[Source]) -> str:
    """Stable hash of ``(listing_id, kind, sources)``; independent of dict key order."""
    encoded = json.dumps([s.to_doc() for s in sources], sort_keys=True, separators=(",", ":"))
    return sha256_hex(f"{listing_id}:{kind}:{encoded}")
