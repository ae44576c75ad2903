from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, List

from pydantic_core import to_jsonable_python

from .collection import CollectionHandle, Document
from .exceptions import CorruptStoreError, DocumentValidationError, UnknownFormatError
from .handlers import Decoder, Encoder, FileHandler, HookHandler, JsonHandler, YamlHandler
from .validators import resolve_validator


logger = logging.getLogger(__name__)

FORMAT_REGISTRY: Mapping[str, type[FileHandler]] = {
    "json": JsonHandler,
    ".json": JsonHandler,
    "yaml": YamlHandler,
    "yml": YamlHandler,
    ".yaml": YamlHandler,
    ".yml": YamlHandler,
}

EXTENSION_REGISTRY: Mapping[str, type[FileHandler]] = {
    ".json": JsonHandler,
    ".yaml": YamlHandler,
    ".yml": YamlHandler,
}


def _resolve_handler(name: str) -> FileHandler:
    try:
        handler_cls = FORMAT_REGISTRY[name.lower()]
    except KeyError as exc:
        raise UnknownFormatError(f"Unsupported format '{name}'") from exc
    return handler_cls()


def _infer_handler(path: Path | None) -> FileHandler:
    if path is None:
        return JsonHandler()
    handler_cls = EXTENSION_REGISTRY.get(path.suffix.lower(), JsonHandler)
    return handler_cls()


class Database:
    """In-memory tree of named document collections backed by a single file.

    Parameters
    ----------
    path:
        Backing file. Created, holding an empty tree, when missing. ``None``
        keeps the database in memory and makes every flush a no-op.
    format:
        Named handler for the file contents (``"json"``, ``"yaml"``). Inferred
        from the file suffix when omitted, falling back to JSON.
    encoder:
        Optional hook turning the JSON-compatible tree into ``str`` or
        ``bytes``; replaces the handler's own encoding.
    decoder:
        Optional hook turning the file's bytes back into a tree.

    Every mutation rewrites the whole file from the whole tree. Flushes are
    not serialized: two mutations issued concurrently may have their writes
    land out of order, leaving the older snapshot on disk.
    """

    def __init__(
        self,
        path: Path | str | None = None,
        *,
        format: str | None = None,
        encoder: Encoder | None = None,
        decoder: Decoder | None = None,
    ) -> None:
        self.path = Path(path).expanduser() if path is not None else None
        handler = _resolve_handler(format) if format is not None else _infer_handler(self.path)
        if encoder is not None or decoder is not None:
            handler = HookHandler(handler, encoder=encoder, decoder=decoder)
        self.handler = handler

        self.collections: dict[str, dict[str, Document[Any]]] = {}
        # Collections whose documents came from disk and have not met a validator yet.
        self._unbound: set[str] = set()
        if self.path is not None:
            self._load(self.path)

    # Collection lifecycle ----------------------------------------------
    def collect(self, name: str, validator: Any) -> CollectionHandle[Any]:
        """Bind ``validator`` to collection ``name`` and return its handle.

        ``validator`` is a declarative ``{field: annotation}`` mapping, a
        :class:`~docdantic.validators.Validator`, or any type Pydantic can
        validate. Existing documents are kept. Documents loaded from the
        backing file are validated the first time their collection is bound;
        later rebinds do not validate stored documents again.
        """
        resolved = resolve_validator(validator, name=_model_name(name))
        documents = self.collections.setdefault(name, {})
        if name in self._unbound:
            validated: dict[str, Any] = {}
            for id, document in documents.items():
                try:
                    validated[id] = resolved.validate(document.data)
                except DocumentValidationError as exc:
                    raise DocumentValidationError(
                        f"Stored document '{id}' in '{name}' is invalid: {exc}"
                    ) from exc
            for id, value in validated.items():
                documents[id].data = value
            self._unbound.discard(name)
        logger.debug("Bound collection %s to %r", name, resolved)
        return CollectionHandle(self, name, resolved)

    async def remove(self, name: str) -> bool:
        existed = self.collections.pop(name, None) is not None
        self._unbound.discard(name)
        await self.flush()
        return existed

    async def clear(self) -> None:
        self.collections.clear()
        self._unbound.clear()
        await self.flush()

    def names(self) -> List[str]:
        return list(self.collections)

    def __contains__(self, name: object) -> bool:
        return name in self.collections

    # Persistence -------------------------------------------------------
    def snapshot(self) -> dict[str, Any]:
        """Return the JSON-compatible form of the whole tree."""
        return {
            name: {
                id: {"id": document.id, "data": to_jsonable_python(document.data, by_alias=True)}
                for id, document in documents.items()
            }
            for name, documents in self.collections.items()
        }

    async def flush(self) -> None:
        """Overwrite the backing file with the current tree."""
        if self.path is None:
            return
        payload = self.handler.encode(self.snapshot())
        logger.debug("Flushing %d bytes to %s", len(payload), self.path)
        await asyncio.to_thread(self.handler.write, self.path, payload)

    # Internal helpers --------------------------------------------------
    def _load(self, path: Path) -> None:
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            self.handler.write(path, self.handler.encode({}))
            logger.debug("Created empty store at %s", path)
        tree = self.handler.read(path)
        if not isinstance(tree, Mapping):
            raise CorruptStoreError(f"{path} does not contain a mapping of collections")
        for name, documents in tree.items():
            if not isinstance(documents, Mapping):
                raise CorruptStoreError(f"Collection '{name}' in {path} is not a mapping")
            loaded: dict[str, Document[Any]] = {}
            for id, entry in documents.items():
                if not isinstance(entry, Mapping) or "data" not in entry:
                    raise CorruptStoreError(f"Document '{id}' in '{name}' has no data")
                loaded[id] = Document(id=id, data=entry["data"])
            self.collections[name] = loaded
            self._unbound.add(name)
        logger.debug("Loaded %d collections from %s", len(self.collections), path)


def _model_name(name: str) -> str:
    words = "".join(part.capitalize() for part in name.replace("-", "_").split("_"))
    return f"{words or 'Collection'}Document"
