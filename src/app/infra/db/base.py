# src/app/infra/db/base.py
"""
Abstract base class for the document store.
This interface allows easy swapping between Firestore and the in-memory
backend used for local development and tests.

Paths are slash-separated: an even number of segments addresses a document
(``recipes/r1/likes/u1``), an odd number addresses a collection
(``recipes/r1/likes``).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Optional

Filter = tuple[str, str, Any]

ASCENDING = "asc"
DESCENDING = "desc"


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class Increment:
    """Atomic numeric increment; a missing field counts from 0."""
    amount: int = 1


def join_path(*segments: str) -> str:
    return "/".join(str(s).strip("/") for s in segments)


def split_path(path: str) -> list[str]:
    return [segment for segment in path.split("/") if segment]


def is_document_path(path: str) -> bool:
    segments = split_path(path)
    return bool(segments) and len(segments) % 2 == 0


class WriteBatch(ABC):
    """
    A group of writes applied atomically on commit.

    Used as a context manager, the batch commits when the block exits
    cleanly and is discarded when it raises.
    """

    @abstractmethod
    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> "WriteBatch":
        pass

    @abstractmethod
    def update(self, path: str, data: dict[str, Any]) -> "WriteBatch":
        pass

    @abstractmethod
    def delete(self, path: str) -> "WriteBatch":
        pass

    @abstractmethod
    def commit(self) -> None:
        pass

    def __enter__(self) -> "WriteBatch":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()


class DocumentStore(ABC):
    """
    Abstract interface for document storage operations.

    Implementations:
    - FirestoreDocumentStore: Google Cloud Firestore via firebase-admin
    - InMemoryDocumentStore: process-local dict, for tests and offline dev
    """

    @abstractmethod
    def get(self, path: str) -> Optional[dict[str, Any]]:
        """
        Read one document.

        Returns:
            The document data with an ``id`` key, or None if absent
        """
        pass

    @abstractmethod
    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        """Create or overwrite a document (or merge into it)."""
        pass

    @abstractmethod
    def update(self, path: str, data: dict[str, Any]) -> None:
        """
        Partially update an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        pass

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete a document. Deleting an absent document is not an error."""
        pass

    @abstractmethod
    def add(self, collection: str, data: dict[str, Any]) -> str:
        """
        Create a document with a generated id.

        Returns:
            The new document id
        """
        pass

    @abstractmethod
    def new_id(self, collection: str) -> str:
        """Reserve a fresh document id inside a collection."""
        pass

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        direction: str = DESCENDING,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        List documents of one collection.

        Args:
            collection: Collection path
            filters: (field, op, value) triples, op in ==, !=, <, <=, >, >=, in
            order_by: Field to sort by
            direction: ASCENDING or DESCENDING
            limit: Max documents to return

        Returns:
            Document dicts, each with an ``id`` key
        """
        pass

    @abstractmethod
    def count(self, collection: str, filters: Iterable[Filter] = ()) -> int:
        """Count documents of one collection."""
        pass

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Start an atomic write batch."""
        pass
