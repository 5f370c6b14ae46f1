"""Error vocabulary shared by the storage, service and web layers.

Everything raised on purpose derives from ``IwootError`` so the web layer can
catch it in one place and turn it into a user-facing message.
"""
from __future__ import annotations

from collections.abc import Iterable


class IwootError(Exception):
    """Base class for all application errors."""


class ValidationError(IwootError):
    """One or more field-level rules were violated."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Validation failed: {', '.join(self.errors)}")


class NotFoundError(IwootError):
    """The requested record does not exist."""


class BackendError(IwootError):
    """The document store or file storage rejected an operation."""

    def __init__(self, message: str, code: str = "unknown") -> None:
        self.code = code
        super().__init__(message)


class AccessDeniedError(BackendError):
    """The caller does not own the record, or is not signed in."""

    def __init__(self, message: str = "Missing or insufficient permissions") -> None:
        super().__init__(message, code="permission-denied")


class ServiceError(IwootError):
    """A backend failure surfaced by a service with a display-safe message."""
