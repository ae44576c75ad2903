class DocdanticError(Exception):
    """Base exception for docdantic errors."""


class DocumentValidationError(DocdanticError, ValueError):
    """Raised when a payload does not satisfy a collection's validator."""


class DocumentNotFoundError(DocdanticError, KeyError):
    """Raised when an update targets a document that does not exist."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class UnknownFormatError(DocdanticError):
    """Raised when a requested file format is not supported."""


class CorruptStoreError(DocdanticError):
    """Raised when the backing file does not hold a collection tree."""
