from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Iterator

from pydantic import BaseModel


def match(pattern: Any, candidate: Any) -> bool:
    """Return ``True`` when ``candidate`` contains everything ``pattern`` describes.

    Scalars compare with ``==``. Mappings, Pydantic models and non-string
    sequences act as filters: every key (or index) they carry must match the
    candidate's value at that key, recursively, while keys the pattern does not
    name are ignored. An empty pattern therefore matches anything, and a
    missing candidate key reads as ``None``. Model candidates answer to both
    field names and aliases.
    """
    if pattern == candidate:
        return True
    if not _is_composite(pattern):
        return False
    for key, expected in _items(pattern):
        if not match(expected, _lookup(candidate, key)):
            return False
    return True


def _is_composite(value: Any) -> bool:
    if isinstance(value, (Mapping, BaseModel)):
        return True
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _items(pattern: Any) -> Iterator[tuple[Any, Any]]:
    if isinstance(pattern, BaseModel):
        for name in pattern.model_fields_set:
            yield name, getattr(pattern, name)
    elif isinstance(pattern, Mapping):
        yield from pattern.items()
    else:
        yield from enumerate(pattern)


def _lookup(candidate: Any, key: Any) -> Any:
    if isinstance(candidate, Mapping):
        return candidate.get(key)
    if isinstance(candidate, BaseModel):
        fields = type(candidate).model_fields
        if key in fields:
            return getattr(candidate, key)
        for name, info in fields.items():
            if info.alias is not None and info.alias == key:
                return getattr(candidate, name)
        return (candidate.model_extra or {}).get(key)
    if isinstance(candidate, Sequence) and not isinstance(candidate, (str, bytes, bytearray)):
        if isinstance(key, int) and -len(candidate) <= key < len(candidate):
            return candidate[key]
    return None
