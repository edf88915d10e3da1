"""Shared configuration loaded from environment / ``.env``.

Every tunable used by the ingestion core lives on :class:`Settings`.
The object is built once per process by :func:`get_settings` and then
handed to each component through its constructor, so extraction code
never reads the environment on its own.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="API key for the chat/vision model provider")
    llm_model_name: str = Field(default="gpt-4o-mini", description="Chat / vision model identifier")
    llm_base_url: str = Field(
        default="",
        description="Base URL of an OpenAI-compatible endpoint. Leave empty for the OpenAI cloud.",
    )
    llm_timeout_seconds: float = 90.0
    llm_max_retries: int = 2

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"

    # Chunking
    chunk_size: int = 1200
    chunk_overlap: int = 150
    chunk_boundary_lookahead: int = 200
    min_chunk_chars: int = 50
    min_ingest_chars: int = 50
    chunk_write_batch_size: int = 75
    max_chunks_per_tenant: int = 500

    # Guarded fetch
    fetch_timeout_seconds: float = 12.0
    dns_timeout_seconds: float = 1.5
    max_redirects: int = 5
    max_html_bytes: int = 750_000
    max_knowledge_html_bytes: int = 250_000
    max_asset_bytes: int = 12 * 1024 * 1024
    max_url_text_chars: int = 200_000
    max_follow_links: int = 4
    user_agent: str = "Mozilla/5.0 (compatible; ContentIngestBot/1.0)"

    # Tiered extraction
    static_min_selector_chars: int = 80
    static_min_text_chars: int = 200
    headless_url: str = "https://chrome.browserless.io"
    headless_token: str = ""
    headless_timeout_seconds: float = 45.0
    headless_wait_ms: int = 8000
    headless_min_text_chars: int = 200

    # PDF / uploads
    pdf_local_parse: bool = True
    pdf_min_chars: int = 200
    pdf_min_chars_per_page: int = 50
    pdf_max_replacement_chars: int = 0
    max_pdf_pages: int = 50
    max_upload_mb: int = 10

    # Catalog
    max_catalog_text_chars: int = 60_000
    catalog_section_max_chars: int = 8000
    catalog_max_items_per_doc: int = 500
    catalog_require_name_in_source: bool = True
    catalog_workers: int = 4

    # Chunk index backend: "store" keeps chunks in the document store,
    # "chroma" mirrors them into a Chroma collection.
    chunk_index_backend: str = "store"
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "knowledge_chunks"

    # Uploaded files. Empty keeps blobs in memory (tests, local runs).
    blob_root: str = ""

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, built on first use."""
    return Settings()
