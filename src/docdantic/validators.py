from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError, create_model

from .exceptions import DocumentValidationError

T = TypeVar("T")


class Validator(Generic[T]):
    """Validate raw payloads into values of a collection's declared shape.

    Parameters
    ----------
    target:
        Any type Pydantic can validate: a ``BaseModel`` subclass, a dataclass,
        a ``TypedDict`` or a plain annotation such as ``list[str]``.
    """

    def __init__(self, target: Any) -> None:
        self.target = target
        self._adapter: TypeAdapter[T] = TypeAdapter(target)

    def validate(self, raw: Any) -> T:
        try:
            return self._adapter.validate_python(raw)
        except ValidationError as exc:
            raise DocumentValidationError(str(exc)) from exc

    def __repr__(self) -> str:
        return f"Validator({getattr(self.target, '__name__', self.target)!r})"


def model_from_spec(name: str, spec: Mapping[str, Any]) -> type[BaseModel]:
    """Build a model from ``{field: annotation}`` or ``{field: (annotation, default)}``."""
    fields: dict[str, Any] = {}
    for field, declaration in spec.items():
        if isinstance(declaration, tuple):
            fields[field] = declaration
        else:
            fields[field] = (declaration, ...)
    return create_model(name, **fields)


def resolve_validator(spec: Any, *, name: str = "Document") -> Validator[Any]:
    """Resolve a declarative spec or a prebuilt type into a :class:`Validator`."""
    if isinstance(spec, Validator):
        return spec
    if isinstance(spec, Mapping):
        return Validator(model_from_spec(name, spec))
    return Validator(spec)
