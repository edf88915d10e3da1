"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.language_models import FakeListChatModel

from content_ingest.config import Settings
from content_ingest.llm.models import ModelClient
from content_ingest.store import InMemoryBlobStore, InMemoryDocumentStore


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


def make_models(*responses: str) -> ModelClient:
    """Model client whose chat model replies with *responses* in order."""
    return ModelClient(
        FakeListChatModel(responses=list(responses) or ["[]"]),
        DeterministicFakeEmbedding(size=8),
    )


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None, headless_token="", openai_api_key="test")


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def blobs() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture()
def models() -> ModelClient:
    return make_models("[]")


@pytest.fixture()
def model_factory():  # noqa: ANN201
    """``model_factory("reply 1", "reply 2")`` → scripted :class:`ModelClient`."""
    return make_models
