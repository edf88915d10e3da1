"""LangGraph definition of catalog structuring.

Graph topology::

      ┌─────────────────┐
      │ extract_sources  │   ← all sources, concurrently
      └───────┬─────────┘
              ▼
      ┌─────────────────┐
      │ structure_items  │   ← LLM → strict JSON array
      └───────┬─────────┘
              │ containment check on?
       yes ┌──┴───────────┐ no
           ▼              │
      ┌──────────────┐    │
      │ verify_items │    │
      └──────┬───────┘    │
             ▼            ▼
      ┌─────────────────────┐
      │     build_items      │   ← normalize + warnings
      └─────────┬───────────┘
                ▼
             [ END ]
"""

from __future__ import annotations

from typing import Any

from langgraph.graph import END, StateGraph

from content_ingest.catalog.nodes import CatalogNodes
from content_ingest.catalog.state import CatalogState
from content_ingest.models import Source


def build_graph(nodes: CatalogNodes):  # noqa: ANN201
    """Construct and return the compiled structuring graph."""
    workflow = StateGraph(CatalogState)

    # -- Nodes ---------------------------------------------------------------
    workflow.add_node("extract_sources", nodes.extract_sources)
    workflow.add_node("structure_items", nodes.structure_items)
    workflow.add_node("verify_items", nodes.verify_items)
    workflow.add_node("build_items", nodes.build_items)

    # -- Edges ---------------------------------------------------------------
    workflow.set_entry_point("extract_sources")
    workflow.add_edge("extract_sources", "structure_items")
    workflow.add_conditional_edges(
        "structure_items",
        nodes.route_after_structure,
        {
            "verify_items": "verify_items",
            "build_items": "build_items",
        },
    )
    workflow.add_edge("verify_items", "build_items")
    workflow.add_edge("build_items", END)

    return workflow.compile()


def create_initial_state(job_id: str, kind: str, sources: list[Source]) -> dict[str, Any]:
    """Build a minimal initial state dict for ``graph.invoke()``."""
    return {
        "job_id": job_id,
        "kind": kind,
        "sources": sources,
        "text": "",
        "raw_items": [],
        "items": [],
        "warnings": [],
    }
