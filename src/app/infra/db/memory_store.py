# src/app/infra/db/memory_store.py
"""
Process-local document store.
Mirrors the Firestore semantics the services rely on (server timestamps,
increments, atomic batches) so the whole service layer runs without
credentials.
"""
from __future__ import annotations

import copy
import logging
import operator
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional
from uuid import uuid4

from src.app.domain.errors import DocumentNotFoundError
from src.app.infra.db.base import (
    ASCENDING,
    SERVER_TIMESTAMP,
    DocumentStore,
    Filter,
    Increment,
    WriteBatch,
    is_document_path,
    split_path,
)

logger = logging.getLogger(__name__)

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda value, options: value in options,
    "array_contains": lambda value, item: isinstance(value, list) and item in value,
}

_MISSING = object()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parent(path: str) -> str:
    return "/".join(split_path(path)[:-1])


def _doc_id(path: str) -> str:
    return split_path(path)[-1]


def _normalize(path: str) -> str:
    return "/".join(split_path(path))


def _matches(doc: dict[str, Any], filters: Iterable[Filter]) -> bool:
    for field_name, op, expected in filters:
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported filter operator: {op}")
        value = doc.get(field_name, _MISSING)
        if value is _MISSING:
            return False
        try:
            if not _OPERATORS[op](value, expected):
                return False
        except TypeError:
            return False
    return True


class InMemoryDocumentStore(DocumentStore):
    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._docs: dict[str, dict[str, Any]] = {}
        self._lock = threading.RLock()
        self._clock = clock

    # -- value resolution -------------------------------------------------

    def _resolve(self, current: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
        resolved: dict[str, Any] = {}
        for key, value in data.items():
            if value is SERVER_TIMESTAMP:
                resolved[key] = self._clock()
            elif isinstance(value, Increment):
                base = current.get(key)
                if not isinstance(base, (int, float)) or isinstance(base, bool):
                    base = 0
                resolved[key] = base + value.amount
            else:
                resolved[key] = copy.deepcopy(value)
        return resolved

    def _apply_set(self, docs: dict, path: str, data: dict[str, Any], merge: bool) -> None:
        path = _require_document(path)
        current = docs.get(path, {})
        resolved = self._resolve(current if merge else {}, data)
        docs[path] = {**current, **resolved} if merge else resolved

    def _apply_update(self, docs: dict, path: str, data: dict[str, Any]) -> None:
        path = _require_document(path)
        if path not in docs:
            raise DocumentNotFoundError(path)
        current = docs[path]
        docs[path] = {**current, **self._resolve(current, data)}

    @staticmethod
    def _apply_delete(docs: dict, path: str) -> None:
        docs.pop(_require_document(path), None)

    # -- DocumentStore ----------------------------------------------------

    def get(self, path: str) -> Optional[dict[str, Any]]:
        path = _require_document(path)
        with self._lock:
            data = self._docs.get(path)
            if data is None:
                return None
            return {"id": _doc_id(path), **copy.deepcopy(data)}

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        with self._lock:
            self._apply_set(self._docs, path, data, merge)

    def update(self, path: str, data: dict[str, Any]) -> None:
        with self._lock:
            self._apply_update(self._docs, path, data)

    def delete(self, path: str) -> None:
        with self._lock:
            self._apply_delete(self._docs, path)

    def new_id(self, collection: str) -> str:
        return uuid4().hex[:20]

    def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = self.new_id(collection)
        self.set(f"{_normalize(collection)}/{doc_id}", data)
        return doc_id

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        order_by: Optional[str] = None,
        direction: str = "desc",
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        collection = _normalize(collection)
        filters = list(filters)
        with self._lock:
            rows = [
                {"id": _doc_id(path), **copy.deepcopy(data)}
                for path, data in self._docs.items()
                if _parent(path) == collection and _matches(data, filters)
            ]

        if order_by:
            present = [row for row in rows if row.get(order_by) is not None]
            absent = [row for row in rows if row.get(order_by) is None]
            present.sort(key=lambda row: row[order_by], reverse=direction != ASCENDING)
            rows = present + absent

        if limit is not None:
            rows = rows[: max(0, int(limit))]
        return rows

    def count(self, collection: str, filters: Iterable[Filter] = ()) -> int:
        return len(self.query(collection, filters))

    def batch(self) -> "InMemoryWriteBatch":
        return InMemoryWriteBatch(self)

    def _commit(self, ops: list[tuple[str, str, Any, bool]]) -> None:
        with self._lock:
            staged = dict(self._docs)
            for kind, path, data, merge in ops:
                if kind == "set":
                    self._apply_set(staged, path, data, merge)
                elif kind == "update":
                    self._apply_update(staged, path, data)
                else:
                    self._apply_delete(staged, path)
            self._docs = staged
        logger.debug("Committed in-memory batch: ops=%d", len(ops))


class InMemoryWriteBatch(WriteBatch):
    def __init__(self, store: InMemoryDocumentStore):
        self._store = store
        self._ops: list[tuple[str, str, Any, bool]] = []

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> "InMemoryWriteBatch":
        self._ops.append(("set", path, data, merge))
        return self

    def update(self, path: str, data: dict[str, Any]) -> "InMemoryWriteBatch":
        self._ops.append(("update", path, data, False))
        return self

    def delete(self, path: str) -> "InMemoryWriteBatch":
        self._ops.append(("delete", path, None, False))
        return self

    def commit(self) -> None:
        ops, self._ops = self._ops, []
        self._store._commit(ops)


def _require_document(path: str) -> str:
    if not is_document_path(path):
        raise ValueError(f"Not a document path: {path!r}")
    return _normalize(path)
