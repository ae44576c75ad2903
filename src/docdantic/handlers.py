from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable

import orjson
import yaml

Encoder = Callable[[Mapping[str, Any]], "str | bytes"]
Decoder = Callable[[bytes], Any]


class FileHandler(ABC):
    """Abstract interface for translating between a collection tree and file bytes."""

    extension: str
    extensions: tuple[str, ...] | None = None

    @abstractmethod
    def encode(self, tree: Mapping[str, Any]) -> bytes:
        """Serialize a JSON-compatible tree."""

    @abstractmethod
    def decode(self, raw: bytes) -> Any:
        """Deserialize file contents. Empty input decodes to an empty tree."""

    def read(self, path: Path) -> Any:
        return self.decode(path.read_bytes())

    def write(self, path: Path, payload: bytes) -> None:
        # Truncates and overwrites in place; no temporary file, no fsync.
        with path.open("wb") as fh:
            fh.write(payload)


class JsonHandler(FileHandler):
    extension = ".json"
    extensions = (".json",)

    def encode(self, tree: Mapping[str, Any]) -> bytes:
        return orjson.dumps(tree)

    def decode(self, raw: bytes) -> Any:
        if not raw.strip():
            return {}
        return orjson.loads(raw)


class YamlHandler(FileHandler):
    extension = ".yaml"
    extensions = (".yaml", ".yml")

    def encode(self, tree: Mapping[str, Any]) -> bytes:
        text = yaml.safe_dump(dict(tree), allow_unicode=True, sort_keys=False)
        return text.encode("utf-8")

    def decode(self, raw: bytes) -> Any:
        payload = yaml.safe_load(raw.decode("utf-8"))
        return {} if payload is None else payload


class HookHandler(FileHandler):
    """Wrap a handler with caller-supplied encode and/or decode hooks."""

    def __init__(
        self,
        base: FileHandler,
        *,
        encoder: Encoder | None = None,
        decoder: Decoder | None = None,
    ) -> None:
        self.base = base
        self.extension = base.extension
        self.extensions = base.extensions
        self._encoder = encoder
        self._decoder = decoder

    def encode(self, tree: Mapping[str, Any]) -> bytes:
        if self._encoder is None:
            return self.base.encode(tree)
        payload = self._encoder(tree)
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return payload

    def decode(self, raw: bytes) -> Any:
        if self._decoder is None:
            return self.base.decode(raw)
        return self._decoder(raw)
