"""Exception hierarchy shared across Tetsu components."""

from __future__ import annotations


class TetsuError(RuntimeError):
    """Base class for failures that should abort an indexing run."""


class MetadataServiceError(TetsuError):
    """Raised when the remote catalog session is unusable.

    Authentication failures, transport failures and malformed replies all end
    up here; none of them are per-file conditions.
    """

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class EntityNotFoundError(TetsuError):
    """Raised when the catalog has no entity for a requested identifier."""

    def __init__(self, kind: str, entity_id: int) -> None:
        super().__init__(f"No {kind} with id {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class CacheStoreError(TetsuError):
    """Raised when the local sqlite store cannot be opened or written."""
