"""Shared helpers for inspecting and clearing the index database."""

from __future__ import annotations

from pathlib import Path


def load_cache_summary(db_path: Path) -> dict[str, int] | None:
    """Return row counts per table, or None when the database does not exist yet."""

    if not db_path.exists():
        return None
    from ..cache import CacheDatabase  # local import keeps CLI startup light

    with CacheDatabase.open(db_path) as db:
        return db.stats()


def clear_index_database(db_path: Path) -> int:
    """Delete the database file; return how many indexed paths it held."""

    from ..cache import clear_cache  # local import keeps CLI startup light

    return clear_cache(db_path)
