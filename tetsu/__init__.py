"""Tetsu package initialization."""

from __future__ import annotations

from .errors import (
    CacheStoreError,
    EntityNotFoundError,
    MetadataServiceError,
    TetsuError,
)
from .hashing import CHUNK_SIZE, ed2k_digest, ed2k_hash

__all__ = [
    "__version__",
    "CHUNK_SIZE",
    "CacheStoreError",
    "EntityNotFoundError",
    "MetadataServiceError",
    "TetsuError",
    "ed2k_digest",
    "ed2k_hash",
    "get_version",
]

__version__ = "0.3.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
