"""Catalog structuring state — shared across all graph nodes.

Each field is documented so that new nodes can be added without
guessing what data is available.
"""

from __future__ import annotations

from typing import Annotated, Any, TypedDict

from content_ingest.models import CatalogItem, Source


def _append_list(existing: list[Any], new: list[Any]) -> list[Any]:
    """Reducer that appends *new* items to the *existing* list."""
    return existing + new


class CatalogState(TypedDict):
    """Typed state that flows through the catalog structuring graph.

    Attributes
    ----------
    job_id:
        Catalog ingest job being processed (for log correlation).
    kind:
        Target listing collection (``menuItems``, ``services`` …).
    sources:
        Normalized sources attached to the job.
    text:
        Combined extracted text of every source.
    raw_items:
        Items parsed from the LLM response, before normalization.
    items:
        Normalized :class:`CatalogItem` objects for the proposal.
    warnings:
        Reviewer-facing warnings accumulated by the nodes.
    """

    job_id: str
    kind: str
    sources: list[Source]
    text: str
    raw_items: list[dict[str, Any]]
    items: list[CatalogItem]
    warnings: Annotated[list[str], _append_list]
