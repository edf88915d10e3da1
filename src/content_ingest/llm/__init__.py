"""Model provider adapters (chat, vision, embeddings) and prompt builders."""

from content_ingest.llm.models import ModelClient, get_embeddings, get_llm

__all__ = ["ModelClient", "get_embeddings", "get_llm"]
