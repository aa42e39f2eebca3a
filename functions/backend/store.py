"""
Document store abstraction for Firestore and an in-memory test implementation.
"""

from __future__ import annotations

import operator
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Protocol, Sequence

from firebase_admin import firestore
from google.api_core import exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter

# Firestore caps a single write batch at 500 operations.
MAX_BATCH_SIZE = 500

# (field, op, value), using Firestore's operator strings.
QueryFilter = tuple[str, str, Any]
DocumentKey = tuple[str, str]


@dataclass
class StoredDocument:
    id: str
    data: dict


class DocumentStore(Protocol):
    """Operations the functions need from the document database."""

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def add(self, collection: str, data: dict) -> str:
        ...

    def set(
        self, collection: str, doc_id: str, data: dict, *, merge: bool = False
    ) -> None:
        ...

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter],
        *,
        limit: Optional[int] = None,
    ) -> list[StoredDocument]:
        ...

    def delete_many(self, keys: Iterable[DocumentKey]) -> int:
        ...


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _matches(data: dict, filters: Sequence[QueryFilter]) -> bool:
    for field_path, op, value in filters:
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported query operator: {op}")
        current = data.get(field_path)
        # Firestore skips documents missing the field for anything but ==.
        if current is None and op != "==":
            return False
        try:
            if not _OPERATORS[op](current, value):
                return False
        except TypeError:
            return False
    return True


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}

    def _collection(self, collection: str) -> Dict[str, dict]:
        return self.collections.setdefault(collection, {})

    @staticmethod
    def _resolve(data: dict) -> dict:
        now = datetime.now(timezone.utc)
        return {k: (now if v is SERVER_TIMESTAMP else v) for k, v in data.items()}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        doc = self._collection(collection).get(doc_id)
        return dict(doc) if doc is not None else None

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self._collection(collection)[doc_id] = self._resolve(data)
        return doc_id

    def set(
        self, collection: str, doc_id: str, data: dict, *, merge: bool = False
    ) -> None:
        docs = self._collection(collection)
        if merge and doc_id in docs:
            docs[doc_id].update(self._resolve(data))
        else:
            docs[doc_id] = self._resolve(data)

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        docs = self._collection(collection)
        if doc_id not in docs:
            raise exceptions.NotFound(f"No document to update: {collection}/{doc_id}")
        docs[doc_id].update(self._resolve(data))

    def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter],
        *,
        limit: Optional[int] = None,
    ) -> list[StoredDocument]:
        results = [
            StoredDocument(id=doc_id, data=dict(data))
            for doc_id, data in self._collection(collection).items()
            if _matches(data, filters)
        ]
        return results[:limit] if limit is not None else results

    def delete_many(self, keys: Iterable[DocumentKey]) -> int:
        deleted = 0
        for collection, doc_id in keys:
            if self._collection(collection).pop(doc_id, None) is not None:
                deleted += 1
        return deleted

    def count(self, collection: str) -> int:
        return len(self._collection(collection))

    def all(self, collection: str) -> list[StoredDocument]:
        return self.query(collection, [])


@dataclass
class FirestoreDocumentStore:
    """Document store backed by the default Firebase app's Firestore client."""

    client: Any = field(default=None)

    def __post_init__(self):
        if self.client is None:
            self.client = firestore.client()

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = self.client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    def add(self, collection: str, data: dict) -> str:
        _, doc_ref = self.client.collection(collection).add(data)
        return doc_ref.id

    def set(
        self, collection: str, doc_id: str, data: dict, *, merge: bool = False
    ) -> None:
        self.client.collection(collection).document(doc_id).set(data, merge=merge)

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        self.client.collection(collection).document(doc_id).update(data)

    def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter],
        *,
        limit: Optional[int] = None,
    ) -> list[StoredDocument]:
        query = self.client.collection(collection)
        for field_path, op, value in filters:
            query = query.where(filter=FieldFilter(field_path, op, value))
        if limit is not None:
            query = query.limit(limit)
        return [
            StoredDocument(id=snapshot.id, data=snapshot.to_dict())
            for snapshot in query.stream()
        ]

    def delete_many(self, keys: Iterable[DocumentKey]) -> int:
        keys = list(keys)
        for start in range(0, len(keys), MAX_BATCH_SIZE):
            batch = self.client.batch()
            for collection, doc_id in keys[start : start + MAX_BATCH_SIZE]:
                batch.delete(self.client.collection(collection).document(doc_id))
            batch.commit()
        return len(keys)
