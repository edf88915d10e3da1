"""Unit tests for the model client wrapper, prompts and JSON logging."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.language_models import FakeListChatModel
from langchain_core.messages import HumanMessage

from content_ingest.llm.models import ModelClient, file_content_block
from content_ingest.llm.prompts import build_catalog_prompt
from content_ingest.logging_config import JSONFormatter


class RecordingChatModel(FakeListChatModel):
    """Fake chat model that keeps the last input it was invoked with."""

    last_input: Any = None

    def invoke(self, input, config=None, **kwargs):  # noqa: ANN001, ANN201, A002
        self.last_input = input
        return super().invoke(input, config, **kwargs)


class TestModelClient:
    def test_generate_returns_text(self) -> None:
        client = ModelClient(FakeListChatModel(responses=["[]"]), DeterministicFakeEmbedding(size=8))
        assert client.generate("hello") == "[]"

    def test_generate_from_file_sends_multimodal_message(self) -> None:
        chat = RecordingChatModel(responses=["Margherita 120 TRY"])
        client = ModelClient(chat, DeterministicFakeEmbedding(size=8))

        assert client.generate_from_file(b"\x89PNG", "image/png", "Read the menu") == "Margherita 120 TRY"

        (message,) = chat.last_input
        assert isinstance(message, HumanMessage)
        assert message.content[0]["image_url"]["url"].startswith("data:image/png;base64,")
        assert message.content[1] == {"type": "text", "text": "Read the menu"}

    def test_embeddings_are_deterministic(self) -> None:
        client = ModelClient(FakeListChatModel(responses=["[]"]), DeterministicFakeEmbedding(size=8))
        assert client.embed("kebab") == client.embed("kebab")
        assert len(client.embed("kebab")) == 8


def test_pdf_content_block() -> None:
    block = file_content_block(b"%PDF-1.7", "application/pdf")
    assert block["type"] == "file"
    assert block["file"]["file_data"].startswith("data:application/pdf;base64,")


def test_catalog_prompt_truncates_text() -> None:
    prompt = build_catalog_prompt("menuItems", "a" * 500, max_chars=100)
    assert "a" * 100 in prompt
    assert "a" * 101 not in prompt


class TestJSONFormatter:
    def test_extra_fields_become_keys(self) -> None:
        record = logging.LogRecord("content_ingest.test", logging.INFO, __file__, 1, "Doc %s", ("ready",), None)
        record.tenant_id = "t1"
        record.doc_id = "d1"
        payload = json.loads(JSONFormatter().format(record))
        assert payload["message"] == "Doc ready"
        assert payload["level"] == "INFO"
        assert payload["tenant_id"] == "t1"
        assert payload["doc_id"] == "d1"
        assert payload["ts"].endswith("Z")

    def test_exception_is_serialized(self) -> None:
        try:
            raise ValueError("bad input")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        payload = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad input" in payload["exc_info"]
