from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Iterator, List, Optional, TypeVar

from pydantic import BaseModel

from .exceptions import DocumentNotFoundError
from .identity import next_id
from .match import match
from .validators import Validator

if TYPE_CHECKING:
    from .database import Database

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class Document(Generic[T]):
    """A stored payload and the id it lives under."""

    id: str
    data: T


class CollectionHandle(Generic[T]):
    """Operations over one named collection of a :class:`Database`.

    Parameters
    ----------
    database:
        Owner of the collection tree. The handle keeps no documents of its
        own; every call reads or writes ``database.collections[name]``.
    name:
        Collection name, the key into the database's tree.
    validator:
        Validator fixed for the lifetime of this handle. Every payload that
        reaches the tree through the handle has passed it.

    Reads (:meth:`select`, :meth:`find`, :meth:`find_one`) are synchronous full
    scans in insertion order. Mutations are coroutines that change memory first
    and then await one flush of the whole tree.
    """

    def __init__(self, database: "Database", name: str, validator: Validator[T]) -> None:
        self.database = database
        self.name = name
        self.validator = validator

    @property
    def documents(self) -> dict[str, Document[T]]:
        # Re-created lazily if the collection was removed or the database cleared.
        return self.database.collections.setdefault(self.name, {})

    # Document lifecycle ------------------------------------------------
    def create(self, raw: Any) -> Document[T]:
        """Validate ``raw`` and wrap it in a new, not yet saved, document."""
        value = self.validator.validate(raw)
        return Document(id=next_id(self.name, self.documents), data=value)

    async def save(self, document: Document[T]) -> T:
        """Store ``document`` under its id, validating its data against this collection."""
        document.data = self.validator.validate(document.data)
        self.documents[document.id] = Document(id=document.id, data=document.data)
        await self.database.flush()
        return document.data

    async def delete(self, document: Document[T]) -> bool:
        return await self.remove(document.id)

    async def set_value(self, document: Document[T], raw: Any) -> T:
        document.data = self.validator.validate(raw)
        return await self.save(document)

    # Collection-level operations ---------------------------------------
    async def remove(self, id: str) -> bool:
        if self.documents.pop(id, None) is None:
            return False
        await self.database.flush()
        return True

    async def remove_all(self, pattern: Any, limit: int | None = None) -> bool:
        """Delete documents whose data matches ``pattern``.

        At most ``limit`` deletions are attempted when given. The tree is
        flushed once, whatever was removed. Returns ``False`` if an attempted
        deletion found nothing to remove.
        """
        documents = self.documents
        ok = True
        attempted = 0
        for id, document in list(documents.items()):
            if limit is not None and attempted >= limit:
                break
            if not match(pattern, document.data):
                continue
            attempted += 1
            if documents.pop(id, None) is None:
                ok = False
        logger.debug("Removed %d documents from %s", attempted, self.name)
        await self.database.flush()
        return ok

    async def update(self, pattern: Any, value: Any, rewrite: bool = False) -> T:
        """Merge ``value`` into (or, with ``rewrite``, replace) the first match."""
        document = self.find_one(pattern)
        if document is None:
            raise DocumentNotFoundError(f"No document in '{self.name}' matches {pattern!r}")
        return await self._commit(document, value, rewrite)

    async def update_id(self, id: str, value: Any, rewrite: bool = False) -> T:
        document = self.select(id)
        if document is None:
            raise DocumentNotFoundError(f"No document '{id}' in '{self.name}'")
        return await self._commit(document, value, rewrite)

    async def clear(self) -> None:
        self.documents.clear()
        await self.database.flush()

    # Queries -----------------------------------------------------------
    def select(self, id: str) -> Optional[Document[T]]:
        return self.documents.get(id)

    def find(self, pattern: Any, limit: int | None = None) -> List[Document[T]]:
        found: List[Document[T]] = []
        if limit is not None and limit <= 0:
            return found
        for document in self.documents.values():
            if match(pattern, document.data):
                found.append(document)
                if limit is not None and len(found) >= limit:
                    break
        return found

    def find_one(self, pattern: Any) -> Optional[Document[T]]:
        found = self.find(pattern, 1)
        return found[0] if found else None

    def count(self, pattern: Any = None) -> int:
        if pattern is None:
            return len(self.documents)
        return len(self.find(pattern))

    def exists(self, pattern: Any = None) -> bool:
        if pattern is None:
            return bool(self.documents)
        return self.find_one(pattern) is not None

    def ids(self) -> List[str]:
        return list(self.documents)

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self) -> Iterator[Document[T]]:
        return iter(list(self.documents.values()))

    def __contains__(self, id: object) -> bool:
        return id in self.documents

    def __repr__(self) -> str:
        return f"CollectionHandle({self.name!r}, {self.validator!r})"

    # Internal helpers --------------------------------------------------
    async def _commit(self, document: Document[T], value: Any, rewrite: bool) -> T:
        candidate = value if rewrite else _merge(document.data, value)
        document.data = self.validator.validate(candidate)
        await self.database.flush()
        return document.data


def _as_mapping(value: Any, *, exclude_unset: bool = False) -> dict[str, Any] | None:
    # Models dump by alias, the form their validator accepts.
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_unset=exclude_unset)
    if isinstance(value, Mapping):
        return dict(value)
    return None


def _aliased_keys(model: BaseModel, changes: dict[str, Any]) -> dict[str, Any]:
    fields = type(model).model_fields
    renamed: dict[str, Any] = {}
    for key, value in changes.items():
        info = fields.get(key)
        renamed[info.alias if info is not None and info.alias else key] = value
    return renamed


def _merge(existing: Any, patch: Any) -> Any:
    """Shallow-merge ``patch`` over ``existing`` when both are mappings.

    Patch keys naming a model field are written under the field's alias.
    Any other combination (a scalar on either side) replaces the existing
    value with ``patch``.
    """
    current = _as_mapping(existing)
    changes = _as_mapping(patch, exclude_unset=True)
    if current is None or changes is None:
        return patch
    if isinstance(existing, BaseModel):
        changes = _aliased_keys(existing, changes)
    return {**current, **changes}
