from __future__ import annotations

import asyncio
import copy
import itertools
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from hirefeed.schemas.posts import parse_timestamp


class StoreError(Exception):
    """Base document store error."""


class StoreUnavailableError(StoreError):
    """Raised when the backend is unavailable or not configured."""


class StoreNotFoundError(StoreError):
    """Raised when the target document does not exist."""


class StoreConflictError(StoreError):
    """Raised when creating a document whose id is already taken."""


class StoreUnsupportedError(StoreError):
    """Raised when a write uses an array transform the backend does not offer."""


@dataclass(frozen=True, slots=True)
class ArrayAppend:
    values: tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class ArrayUnion:
    """Add values not already present; with ``key`` set, presence is decided on that member."""

    values: tuple[Any, ...]
    key: str | None = None


@dataclass(frozen=True, slots=True)
class ArrayRemove:
    values: tuple[Any, ...]


FIELD_TRANSFORMS = (ArrayAppend, ArrayUnion, ArrayRemove)


@dataclass(frozen=True, slots=True)
class StoredDocument:
    id: str
    data: dict[str, Any]


def apply_field_transform(current: Any, transform: ArrayAppend | ArrayUnion | ArrayRemove) -> list[Any]:
    items = list(current) if isinstance(current, list) else []
    if isinstance(transform, ArrayAppend):
        return items + [copy.deepcopy(value) for value in transform.values]
    if isinstance(transform, ArrayUnion):
        for value in transform.values:
            if transform.key is None:
                present = value in items
            else:
                marker = value.get(transform.key) if isinstance(value, dict) else None
                present = any(isinstance(item, dict) and item.get(transform.key) == marker for item in items)
            if not present:
                items.append(copy.deepcopy(value))
        return items
    return [item for item in items if item not in transform.values]


class InMemoryDocumentStore:
    """Process-local document store used for local runs and tests.

    Every call yields to the event loop once before touching state, so
    concurrent callers interleave the way they would against a remote store.
    """

    def __init__(self, *, supports_array_transforms: bool = True) -> None:
        self.supports_array_transforms = supports_array_transforms
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._sequence: dict[tuple[str, str], int] = {}
        self._counter = itertools.count(1)

    async def close(self) -> None:
        return None

    async def get(self, collection: str, document_id: str) -> StoredDocument | None:
        await asyncio.sleep(0)
        data = self._collections.get(collection, {}).get(document_id)
        if data is None:
            return None
        return StoredDocument(id=document_id, data=copy.deepcopy(data))

    async def query(
        self,
        collection: str,
        *,
        where: dict[str, Any] | None = None,
        starts_with: dict[str, str] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StoredDocument]:
        await asyncio.sleep(0)
        documents = self._collections.get(collection, {})
        matched = [
            (document_id, data)
            for document_id, data in documents.items()
            if all(data.get(field) == value for field, value in (where or {}).items())
            and all(
                isinstance(data.get(field), str) and data[field].startswith(prefix)
                for field, prefix in (starts_with or {}).items()
            )
        ]
        matched.sort(key=lambda entry: self._sequence[(collection, entry[0])])
        if order_by is not None:
            # sorted() is stable for reverse=True too, so insertion order breaks ties.
            matched.sort(key=lambda entry: _order_key(entry[1].get(order_by)), reverse=descending)
        window = matched[offset:] if limit is None else matched[offset : offset + limit]
        return [StoredDocument(id=document_id, data=copy.deepcopy(data)) for document_id, data in window]

    async def create(self, collection: str, data: dict[str, Any], document_id: str | None = None) -> str:
        await asyncio.sleep(0)
        documents = self._collections.setdefault(collection, {})
        new_id = document_id or uuid4().hex
        if new_id in documents:
            raise StoreConflictError(f"document already exists: {collection}/{new_id}")
        documents[new_id] = copy.deepcopy(data)
        self._sequence[(collection, new_id)] = next(self._counter)
        return new_id

    async def merge_update(self, collection: str, document_id: str, fields: dict[str, Any]) -> dict[str, int]:
        """Shallow-merge ``fields`` and return the length change of every transformed array."""
        await asyncio.sleep(0)
        document = self._collections.get(collection, {}).get(document_id)
        if document is None:
            raise StoreNotFoundError(f"document not found: {collection}/{document_id}")
        if not self.supports_array_transforms and any(isinstance(value, FIELD_TRANSFORMS) for value in fields.values()):
            raise StoreUnsupportedError("array transforms are disabled for this store")

        changes: dict[str, int] = {}
        for field, value in fields.items():
            if isinstance(value, FIELD_TRANSFORMS):
                previous = document.get(field)
                updated = apply_field_transform(previous, value)
                changes[field] = len(updated) - (len(previous) if isinstance(previous, list) else 0)
                document[field] = updated
            else:
                document[field] = copy.deepcopy(value)
        return changes


def _order_key(value: Any) -> tuple[int, float, str]:
    # Timestamps may be ISO strings or epoch seconds; both rank by instant, above anything unparseable.
    if value is None:
        return (0, 0.0, "")
    moment = parse_timestamp(value)
    if moment is None:
        return (1, 0.0, str(value))
    return (2, moment.timestamp(), "")
