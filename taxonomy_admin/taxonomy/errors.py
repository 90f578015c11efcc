"""
Error taxonomy shared by the store, reconciliation, bulk and import layers.

Per-item failures are caught at the item boundary and rendered into result
error lists with ``str(exc)``; only failures that prevent an operation from
starting propagate to callers.
"""

from __future__ import annotations

from typing import Sequence


class TaxonomyError(Exception):
    """Base exception for taxonomy administration failures."""


class NotFoundError(TaxonomyError):
    """Raised when a record id does not exist in the store."""

    def __init__(self, kind: str, record_id: object) -> None:
        super().__init__("not found")
        self.kind = kind
        self.record_id = record_id


class ConstraintViolationError(TaxonomyError):
    """Raised when a write conflicts with a unique or foreign-key constraint."""

    def __init__(self, message: str, *, constraint: str | None = None) -> None:
        super().__init__(message)
        self.constraint = constraint


class ValidationError(TaxonomyError):
    """Raised when a field or request is missing or malformed."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class TransportFailureError(TaxonomyError):
    """Raised when the store cannot be reached or the query fails outright."""


class FormatError(TaxonomyError):
    """Raised when an import file cannot be parsed at all."""

    def __init__(self, message: str, *, details: Sequence[str] | None = None) -> None:
        if details:
            message = message + " " + " ".join(details)
        super().__init__(message)
        self.details = tuple(details or ())
