"""
File-backed document collections validated by Pydantic.

The public API centers around :class:`Database`, which keeps every collection
in memory and rewrites a single backing file after each mutation, and
:class:`CollectionHandle`, returned by :meth:`Database.collect`, which exposes
create/read/update/delete and partial-match queries over one collection.
"""

from .collection import CollectionHandle, Document
from .database import Database
from .exceptions import (
    CorruptStoreError,
    DocdanticError,
    DocumentNotFoundError,
    DocumentValidationError,
    UnknownFormatError,
)
from .handlers import FileHandler, JsonHandler, YamlHandler
from .identity import next_id
from .match import match
from .validators import Validator, resolve_validator

__all__ = (
    "CollectionHandle",
    "CorruptStoreError",
    "Database",
    "DocdanticError",
    "Document",
    "DocumentNotFoundError",
    "DocumentValidationError",
    "FileHandler",
    "JsonHandler",
    "UnknownFormatError",
    "Validator",
    "YamlHandler",
    "match",
    "next_id",
    "resolve_validator",
)
