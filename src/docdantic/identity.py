from __future__ import annotations

import hashlib
import time
from collections.abc import Mapping
from typing import Any

import orjson
from pydantic_core import to_jsonable_python


def canonical_json(value: Any) -> bytes:
    """Serialize ``value`` deterministically (sorted keys, JSON-compatible)."""
    return orjson.dumps(to_jsonable_python(value), option=orjson.OPT_SORT_KEYS)


def next_id(name: str, documents: Mapping[str, Any]) -> str:
    """Derive a fresh document id for collection ``name``.

    The id is the SHA-384 hex digest of the current nanosecond timestamp, the
    collection's current contents and its name. Collisions are not detected.
    """
    digest = hashlib.sha384()
    digest.update(str(time.time_ns()).encode("ascii"))
    digest.update(canonical_json(documents))
    digest.update(name.encode("utf-8"))
    return digest.hexdigest()
