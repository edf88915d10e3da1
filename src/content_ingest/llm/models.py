"""Model provider adapters — single place to swap providers.

:class:`ModelClient` exposes the three capabilities the ingestion core
needs (``generate``, ``generate_from_file`` and ``embed``) on top of any
LangChain chat model and embeddings implementation.  Production wires
``ChatOpenAI`` (OpenAI cloud or any OpenAI-compatible endpoint) and
``HuggingFaceEmbeddings``; tests wire LangChain's fake models.
"""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any

from langchain_core.messages import HumanMessage
from langchain_huggingface import HuggingFaceEmbeddings
from langchain_openai import ChatOpenAI

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings
    from langchain_core.language_models import BaseChatModel

    from content_ingest.config import Settings

logger = logging.getLogger(__name__)


def get_llm(settings: Settings, temperature: float = 0.0) -> ChatOpenAI:
    """Return the configured chat / vision model.

    When ``settings.llm_base_url`` is set the client is pointed at that
    OpenAI-compatible endpoint instead of the OpenAI cloud API.
    """
    kwargs: dict = {
        "model": settings.llm_model_name,
        "temperature": temperature,
        "timeout": settings.llm_timeout_seconds,
        "max_retries": settings.llm_max_retries,
    }

    if settings.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        kwargs["base_url"] = settings.llm_base_url
        # Self-hosted endpoints often need no key; LangChain requires a non-empty value.
        kwargs["api_key"] = settings.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = settings.openai_api_key

    return ChatOpenAI(**kwargs)


def get_embeddings(settings: Settings) -> HuggingFaceEmbeddings:
    """Return the configured sentence-transformer embedding function."""
    return HuggingFaceEmbeddings(model_name=settings.embedding_model)


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def file_content_block(data: bytes, mime_type: str) -> dict[str, Any]:
    """Inline *data* as an OpenAI-style multimodal content block."""
    encoded = base64.b64encode(data).decode("ascii")
    if mime_type == "application/pdf":
        return {
            "type": "file",
            "file": {"filename": "document.pdf", "file_data": f"data:application/pdf;base64,{encoded}"},
        }
    return {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}}


class ModelClient:
    """Completion, multimodal completion and embedding behind one object.

    Parameters
    ----------
    chat:
        Any LangChain chat model.
    embeddings:
        Any LangChain embeddings implementation.
    """

    def __init__(self, chat: BaseChatModel, embeddings: Embeddings) -> None:
        self.chat = chat
        self.embeddings = embeddings

    @classmethod
    def from_settings(cls, settings: Settings) -> ModelClient:
        return cls(get_llm(settings), get_embeddings(settings))

    def generate(self, prompt: str) -> str:
        response = self.chat.invoke(prompt)
        return _content_text(response.content)

    def generate_from_file(self, data: bytes, mime_type: str, instructions: str) -> str:
        """Ask the model to read an image or PDF and follow *instructions*."""
        message = HumanMessage(
            content=[
                file_content_block(data, mime_type),
                {"type": "text", "text": instructions},
            ]
        )
        response = self.chat.invoke([message])
        return _content_text(response.content)

    def embed(self, text: str) -> list[float]:
        return list(self.embeddings.embed_query(text))
