# src/app/infra/db/firestore_store.py
"""
Google Cloud Firestore document store.
Uses the client created by firebase-admin; store sentinels are translated
into Firestore field transforms.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from google.api_core.exceptions import NotFound
from google.cloud.firestore_v1 import (
    SERVER_TIMESTAMP as FIRESTORE_SERVER_TIMESTAMP,
    FieldFilter,
    Increment as FirestoreIncrement,
    Query,
)

from src.app.domain.errors import DocumentNotFoundError
from src.app.infra.db.base import (
    ASCENDING,
    SERVER_TIMESTAMP,
    DocumentStore,
    Filter,
    Increment,
    WriteBatch,
)

logger = logging.getLogger(__name__)


def _translate(data: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in data.items():
        if value is SERVER_TIMESTAMP:
            out[key] = FIRESTORE_SERVER_TIMESTAMP
        elif isinstance(value, Increment):
            out[key] = FirestoreIncrement(value.amount)
        else:
            out[key] = value
    return out


def _snapshot_to_dict(snapshot) -> dict[str, Any]:
    return {"id": snapshot.id, **(snapshot.to_dict() or {})}


class FirestoreDocumentStore(DocumentStore):
    def __init__(self, client):
        self._client = client
        logger.info("FirestoreDocumentStore initialized: project=%s", getattr(client, "project", None))

    def get(self, path: str) -> Optional[dict[str, Any]]:
        snapshot = self._client.document(path).get()
        if not snapshot.exists:
            return None
        return _snapshot_to_dict(snapshot)

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        self._client.document(path).set(_translate(data), merge=merge)

    def update(self, path: str, data: dict[str, Any]) -> None:
        try:
            self._client.document(path).update(_translate(data))
        except NotFound as e:
            raise DocumentNotFoundError(path) from e

    def delete(self, path: str) -> None:
        self._client.document(path).delete()

    def new_id(self, collection: str) -> str:
        return self._client.collection(collection).document().id

    def add(self, collection: str, data: dict[str, Any]) -> str:
        _, ref = self._client.collection(collection).add(_translate(data))
        return ref.id

    def _build_query(self, collection: str, filters: Iterable[Filter]):
        query = self._client.collection(collection)
        for field_name, op, value in filters:
            query = query.where(filter=FieldFilter(field_name, op, value))
        return query

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        direction: str = "desc",
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        query = self._build_query(collection, filters)
        if order_by:
            query = query.order_by(
                order_by,
                direction=Query.ASCENDING if direction == ASCENDING else Query.DESCENDING,
            )
        if limit is not None:
            query = query.limit(int(limit))
        return [_snapshot_to_dict(snapshot) for snapshot in query.stream()]

    def count(self, collection: str, filters: Iterable[Filter] = ()) -> int:
        results = self._build_query(collection, filters).count().get()
        return int(results[0][0].value) if results else 0

    def batch(self) -> "FirestoreWriteBatch":
        return FirestoreWriteBatch(self._client)


class FirestoreWriteBatch(WriteBatch):
    def __init__(self, client):
        self._client = client
        self._batch = client.batch()
        self._paths: list[str] = []

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> "FirestoreWriteBatch":
        self._batch.set(self._client.document(path), _translate(data), merge=merge)
        self._paths.append(path)
        return self

    def update(self, path: str, data: dict[str, Any]) -> "FirestoreWriteBatch":
        self._batch.update(self._client.document(path), _translate(data))
        self._paths.append(path)
        return self

    def delete(self, path: str) -> "FirestoreWriteBatch":
        self._batch.delete(self._client.document(path))
        self._paths.append(path)
        return self

    def commit(self) -> None:
        try:
            self._batch.commit()
        except NotFound as e:
            raise DocumentNotFoundError(", ".join(self._paths)) from e
