"""Abstract persistence interfaces.

Paths are slash-separated, alternating collection and document ids
(``businesses/b1/knowledgeDocs/d1``).  Documents are plain JSON-like
dicts.  Implementations must provide:

* single-document get / set (optionally merged),
* equality queries over one collection or a collection group,
* batched writes (atomic per batch),
* transactions whose writes land all-or-nothing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, TypeVar

from content_ingest.models import KnowledgeChunk

T = TypeVar("T")


class WriteBatch(ABC):
    """Buffered writes committed together."""

    @abstractmethod
    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...


class Transaction(WriteBatch):
    """A write batch that can also read; committed only if the callback returns."""

    @abstractmethod
    def get(self, path: str) -> dict[str, Any] | None: ...


class DocumentStore(ABC):
    """Backend-agnostic document store."""

    @abstractmethod
    def get(self, path: str) -> dict[str, Any] | None:
        """Return a copy of the document at *path*, or ``None``."""
        ...

    @abstractmethod
    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        """Write *data* at *path*.

        With ``merge=True`` nested dicts are merged into the existing
        document instead of replacing it.
        """
        ...

    @abstractmethod
    def query(
        self,
        collection_path: str,
        where: dict[str, Any] | None = None,
    ) -> list[tuple[str, dict[str, Any]]]:
        """Return ``(doc_id, data)`` pairs in *collection_path* matching all equality filters.

        Filter keys may be dotted paths into nested maps (``"source.docId"``).
        """
        ...

    @abstractmethod
    def query_group(
        self,
        collection_id: str,
        where: dict[str, Any] | None = None,
    ) -> list[tuple[str, dict[str, Any]]]:
        """Like :meth:`query` but across every collection named *collection_id*.

        Returns ``(full_path, data)`` pairs.
        """
        ...

    @abstractmethod
    def batch(self) -> WriteBatch: ...

    @abstractmethod
    def run_transaction(self, callback: Callable[[Transaction], T]) -> T:
        """Run *callback* in a transaction; its writes commit only if it returns."""
        ...

    @abstractmethod
    def new_id(self) -> str: ...

    def update(self, path: str, data: dict[str, Any]) -> None:
        """Merge *data* into an existing document."""
        self.set(path, data, merge=True)


class BlobStore(ABC):
    """Object storage for uploaded PDFs and images."""

    @abstractmethod
    def download(self, path: str) -> tuple[bytes, str | None]:
        """Return ``(data, content_type)`` for the object at *path*.

        Raises :class:`~content_ingest.errors.NotFoundError` when missing.
        """
        ...

    @staticmethod
    def object_path(path: str) -> str:
        """Strip a ``gs://bucket/`` prefix or leading slashes."""
        if path.startswith("gs://"):
            _, _, rest = path[len("gs://") :].partition("/")
            return rest
        return path.lstrip("/")


class ChunkIndex(ABC):
    """Where knowledge chunks (text + embedding) are persisted.

    Parameters
    ----------
    name:
        Logical name of the index (collection / namespace).
    """

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    def count_active(self, tenant_id: str, *, exclude_doc_id: str | None = None) -> int:
        """Count active chunks for *tenant_id*, optionally ignoring one document."""
        ...

    @abstractmethod
    def write(self, chunks: list[KnowledgeChunk]) -> None:
        """Upsert *chunks* (keyed by ``(doc_id, text_hash)``) as one batch."""
        ...

    @abstractmethod
    def set_doc_status(self, tenant_id: str, doc_id: str, status: str) -> int:
        """Set *status* on every chunk of one document; return how many changed."""
        ...

    def health_check(self) -> bool:
        return True
