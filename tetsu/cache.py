"""Persistent index cache for Tetsu backed by SQLite.

Two stores share one database:

* ``EntityCacheStore`` keeps catalog entities (anime, episodes, groups, files)
  keyed by their AniDB identifier. Rows are only ever replaced, never
  invalidated; identifiers are stable on the remote side.
* ``PathIndexStore`` maps a filesystem path to a file identifier, with a
  secondary unique key on (filename, filesize) so a moved file is recognised
  without rehashing.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Callable, Sequence

from .errors import CacheStoreError, MetadataServiceError
from .models import (
    E,
    Entity,
    EntityKind,
    column_names,
    entity_from_row,
    entity_key,
    entity_to_row,
    kind_of,
)
from .text import Messages

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
_ENTITY_TABLES: tuple[str, ...] = tuple(kind.table for kind in EntityKind)
PATH_INDEX_TABLE = "indexed_files"


def _connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL;")
    conn.execute("PRAGMA synchronous = NORMAL;")
    conn.execute("PRAGMA temp_store = MEMORY;")
    conn.execute("PRAGMA busy_timeout = 5000;")
    return conn


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
        (table,),
    ).fetchone()
    return row is not None


def _schema_version(conn: sqlite3.Connection) -> int | None:
    if not _table_exists(conn, "schema_meta"):
        return None
    row = conn.execute("SELECT version FROM schema_meta LIMIT 1").fetchone()
    return int(row["version"]) if row is not None else None


def _schema_needs_reset(conn: sqlite3.Connection) -> bool:
    version = _schema_version(conn)
    if version is None:
        # databases written before schema_meta existed carry the same layout
        return False
    return version < SCHEMA_VERSION


def _reset_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        DROP TABLE IF EXISTS indexed_files;
        DROP TABLE IF EXISTS files;
        DROP TABLE IF EXISTS groups;
        DROP TABLE IF EXISTS episodes;
        DROP TABLE IF EXISTS anime;
        DROP TABLE IF EXISTS schema_meta;
        """
    )


def _ensure_schema(conn: sqlite3.Connection) -> None:
    if _schema_needs_reset(conn):
        logger.info("index schema is outdated; rebuilding tables")
        _reset_schema(conn)
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS schema_meta (
            version INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS anime (
            aid                 INTEGER PRIMARY KEY,
            dateflags           INTEGER,
            year                TEXT,
            atype               TEXT,
            related_aid_list    TEXT,
            related_aid_type    TEXT,
            romaji_name         TEXT,
            kanji_name          TEXT,
            english_name        TEXT,
            short_name_list     TEXT,
            episodes            INTEGER,
            special_ep_count    INTEGER,
            air_date            INTEGER,
            end_date            INTEGER,
            picname             TEXT,
            nsfw                BOOLEAN,
            characterid_list    TEXT,
            specials_count      INTEGER,
            credits_count       INTEGER,
            other_count         INTEGER,
            trailer_count       INTEGER,
            parody_count        INTEGER
        );

        CREATE TABLE IF NOT EXISTS episodes (
            eid                 INTEGER PRIMARY KEY,
            aid                 INTEGER,
            length              INTEGER,
            rating              INTEGER,
            votes               INTEGER,
            epno                TEXT,
            eng                 TEXT,
            romaji              TEXT,
            kanji               TEXT,
            aired               INTEGER,
            etype               INTEGER
        );

        CREATE TABLE IF NOT EXISTS groups (
            gid                 INTEGER PRIMARY KEY,
            rating              INTEGER,
            votes               INTEGER,
            acount              INTEGER,
            fcount              INTEGER,
            name                TEXT,
            short               TEXT,
            irc_channel         TEXT,
            irc_server          TEXT,
            url                 TEXT,
            picname             TEXT,
            foundeddate         INTEGER,
            disbandeddate       INTEGER,
            dateflags           INTEGER,
            lastreleasedate     INTEGER,
            lastactivitydate    INTEGER,
            grouprelations      TEXT
        );

        CREATE TABLE IF NOT EXISTS files (
            fid                 INTEGER PRIMARY KEY,
            aid                 INTEGER,
            eid                 INTEGER,
            gid                 INTEGER,
            state               INTEGER,
            size                INTEGER,
            ed2k                TEXT,
            colour_depth        TEXT,
            quality             TEXT,
            source              TEXT,
            audio_codec_list    TEXT,
            audio_bitrate_list  INTEGER,
            video_codec         TEXT,
            video_bitrate       INTEGER,
            video_resolution    TEXT,
            dub_language        TEXT,
            sub_language        TEXT,
            length_in_seconds   INTEGER,
            description         TEXT,
            aired_date          INTEGER
        );

        CREATE TABLE IF NOT EXISTS indexed_files (
            path                TEXT PRIMARY KEY,
            filename            TEXT,
            filesize            INTEGER,
            fid                 INTEGER,
            UNIQUE (filename, filesize) ON CONFLICT REPLACE
        );

        CREATE INDEX IF NOT EXISTS idx_files_ed2k
            ON files(size, ed2k);
        """
    )
    if _schema_version(conn) is None:
        conn.execute("INSERT INTO schema_meta (version) VALUES (?)", (SCHEMA_VERSION,))
    conn.commit()


class CacheDatabase:
    """Owns the sqlite connection and the single writer lock shared by both stores."""

    def __init__(self, conn: sqlite3.Connection, path: Path) -> None:
        self.conn = conn
        self.path = path
        self.lock = Lock()

    @classmethod
    def open(cls, path: Path | str) -> "CacheDatabase":
        db_path = Path(path).expanduser()
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = _connect(db_path)
            _ensure_schema(conn)
        except (OSError, sqlite3.Error) as exc:
            raise CacheStoreError(
                Messages.ERROR_STORE_OPEN.format(path=db_path, reason=exc)
            ) from exc
        return cls(conn, db_path)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "CacheDatabase":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def query(self, sql: str, params: Sequence[object] = ()) -> list[sqlite3.Row]:
        return self.conn.execute(sql, tuple(params)).fetchall()

    def write(self, sql: str, params: Sequence[object] = ()) -> int:
        """Execute a single statement in its own transaction; return affected rows."""
        with self.lock:
            try:
                with self.conn:
                    cursor = self.conn.execute(sql, tuple(params))
            except sqlite3.Error as exc:
                raise CacheStoreError(
                    Messages.ERROR_STORE_WRITE.format(path=self.path, reason=exc)
                ) from exc
            return cursor.rowcount

    def stats(self) -> dict[str, int]:
        """Return row counts for every table Tetsu owns."""
        counts: dict[str, int] = {}
        for table in (*_ENTITY_TABLES, PATH_INDEX_TABLE):
            row = self.conn.execute(f"SELECT COUNT(*) AS total FROM {table}").fetchone()
            counts[table] = int(row["total"] if row is not None else 0)
        return counts


class EntityCacheStore:
    """Cache-aside storage for catalog entities, one table per entity kind."""

    def __init__(self, db: CacheDatabase) -> None:
        self.db = db

    def get(self, kind: EntityKind, entity_id: int) -> Entity | None:
        rows = self.db.query(
            f"SELECT * FROM {kind.table} WHERE {kind.key} = ?",
            (entity_id,),
        )
        if not rows:
            return None
        return entity_from_row(kind.entity_type, rows[0])

    def put(self, entity: Entity) -> None:
        kind = kind_of(entity)
        columns = column_names(kind.entity_type)
        placeholders = ", ".join("?" for _ in columns)
        self.db.write(
            f"INSERT OR REPLACE INTO {kind.table} ({', '.join(columns)}) "
            f"VALUES ({placeholders})",
            entity_to_row(entity),
        )

    def get_or_fetch(
        self,
        kind: EntityKind,
        entity_id: int,
        fetch: Callable[[int], E],
    ) -> E:
        """Return the cached entity, fetching and storing it on a miss.

        Errors raised by *fetch* propagate and nothing is written. An entity
        whose key differs from *entity_id* is rejected as a malformed reply.
        """
        cached = self.get(kind, entity_id)
        if cached is not None:
            logger.debug("found %s %s in cache", kind.value, entity_id)
            return cached  # type: ignore[return-value]

        live = fetch(entity_id)
        returned = entity_key(live)
        if returned != entity_id:
            raise MetadataServiceError(
                Messages.ERROR_KEY_MISMATCH.format(
                    kind=kind.value, requested=entity_id, returned=returned
                )
            )
        self.put(live)
        return live


@dataclass(slots=True)
class PathIndexEntry:
    path: str
    filename: str
    filesize: int
    fid: int
    moved_from: str | None = None


class PathIndexStore:
    """Maps filesystem paths to cached file identifiers."""

    def __init__(self, db: CacheDatabase) -> None:
        self.db = db

    def lookup(self, path: str, filename: str, size: int | None) -> PathIndexEntry | None:
        """Match on the exact path, or on (filename, size) for moved files.

        A (filename, size) match recorded under another path is rewritten to
        *path* before returning, so the next prune pass keeps it.
        """
        if size is None:
            rows = self.db.query(
                f"SELECT path, filename, filesize, fid FROM {PATH_INDEX_TABLE} WHERE path = ?",
                (path,),
            )
        else:
            rows = self.db.query(
                f"""
                SELECT path, filename, filesize, fid
                FROM {PATH_INDEX_TABLE}
                WHERE path = ? OR (filename = ? AND filesize = ?)
                ORDER BY (path = ?) DESC
                LIMIT 1
                """,
                (path, filename, size, path),
            )
        if not rows:
            return None
        row = rows[0]
        entry = PathIndexEntry(
            path=row["path"],
            filename=row["filename"],
            filesize=int(row["filesize"]),
            fid=int(row["fid"]),
        )
        if entry.path != path:
            logger.info("%s moved to %s; updating index", entry.path, path)
            self.db.write(
                f"UPDATE {PATH_INDEX_TABLE} SET path = ? WHERE path = ?",
                (path, entry.path),
            )
            entry.moved_from = entry.path
            entry.path = path
        return entry

    def record(self, path: str, filename: str, size: int, fid: int) -> None:
        self.db.write(
            f"INSERT OR REPLACE INTO {PATH_INDEX_TABLE} (path, filename, filesize, fid) "
            "VALUES (?, ?, ?, ?)",
            (path, filename, size, fid),
        )

    def paths(self) -> list[str]:
        rows = self.db.query(f"SELECT path FROM {PATH_INDEX_TABLE} ORDER BY path")
        return [row["path"] for row in rows]

    def delete_where_path_missing(
        self,
        exists: Callable[[str], bool] = os.path.exists,
    ) -> list[str]:
        """Delete every entry whose path no longer exists; return the removed paths."""
        removed: list[str] = []
        for path in self.paths():
            if exists(path):
                continue
            logger.info("deleting %s from index", path)
            self.db.write(f"DELETE FROM {PATH_INDEX_TABLE} WHERE path = ?", (path,))
            removed.append(path)
        return removed


def clear_cache(db_path: Path) -> int:
    """Remove the index database file, returning the number of indexed paths it held."""

    if not db_path.exists():
        return 0

    with CacheDatabase.open(db_path) as db:
        total = db.stats().get(PATH_INDEX_TABLE, 0)

    db_path.unlink()
    for suffix in ("-wal", "-shm"):
        sidecar = Path(f"{db_path}{suffix}")
        if sidecar.exists():
            sidecar.unlink()
    return total
