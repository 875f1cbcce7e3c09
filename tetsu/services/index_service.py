"""Logic helpers for the `tetsu index` command."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Sequence, TypeVar

from .resolve_service import CacheFacade
from ..cache import PathIndexStore
from ..errors import EntityNotFoundError
from ..models import AniFile, Anime, Episode, Group
from ..utils import collect_files

logger = logging.getLogger(__name__)

T = TypeVar("T")


class IndexStatus(str, Enum):
    EMPTY = "empty"
    STORED = "stored"


class IndexPhase(str, Enum):
    DISCOVER = "discover"
    PROCESS = "process"
    PRUNE = "prune"
    DONE = "done"


class EntryStatus(str, Enum):
    RESOLVED = "resolved"
    UNKNOWN = "unknown"
    FAILED = "failed"


@dataclass(slots=True)
class IndexedEntry:
    path: Path
    status: EntryStatus
    file: AniFile | None = None
    anime: Anime | None = None
    episode: Episode | None = None
    group: Group | None = None
    error: str | None = None


@dataclass(slots=True)
class IndexResult:
    status: IndexStatus
    files_total: int = 0
    files_resolved: int = 0
    files_unknown: int = 0
    files_failed: int = 0
    pruned: list[str] = field(default_factory=list)
    entries: list[IndexedEntry] = field(default_factory=list)


ProgressCallback = Callable[[IndexPhase, int, int], None]


def _notify(callback: ProgressCallback | None, phase: IndexPhase, done: int, total: int) -> None:
    if callback is not None:
        callback(phase, done, total)


def _resolve_related(resolve: Callable[[int], T], entity_id: int | None) -> T | None:
    if not entity_id:
        return None
    try:
        return resolve(entity_id)
    except EntityNotFoundError as exc:
        logger.info("%s; showing as unknown", exc)
        return None


def _process_file(facade: CacheFacade, path: Path) -> IndexedEntry:
    logger.debug("indexing %s...", path)
    anifile = facade.resolve_file(path)
    if anifile is None:
        return IndexedEntry(path=path, status=EntryStatus.UNKNOWN)
    logger.debug("file: %r", anifile)

    anime = _resolve_related(facade.resolve_anime, anifile.aid)
    logger.debug("anime: %r", anime)
    episode = _resolve_related(facade.resolve_episode, anifile.eid)
    logger.debug("episode: %r", episode)
    group = _resolve_related(facade.resolve_group, anifile.gid)
    logger.debug("group: %r", group)
    return IndexedEntry(
        path=path,
        status=EntryStatus.RESOLVED,
        file=anifile,
        anime=anime,
        episode=episode,
        group=group,
    )


def build_index(
    directory: Path,
    *,
    facade: CacheFacade,
    path_index: PathIndexStore,
    include_hidden: bool = False,
    extensions: Sequence[str] | None = None,
    skip_unreadable: bool = False,
    exists: Callable[[str], bool] = os.path.exists,
    on_progress: ProgressCallback | None = None,
) -> IndexResult:
    """Run one discover -> process -> prune pass over *directory*.

    Discovery completes before any file is processed. Prune only runs after
    every file was visited; an exception while processing skips it.
    """

    _notify(on_progress, IndexPhase.DISCOVER, 0, 0)
    files = collect_files(directory, include_hidden=include_hidden, extensions=extensions)
    total = len(files)
    _notify(on_progress, IndexPhase.DISCOVER, total, total)

    result = IndexResult(
        status=IndexStatus.STORED if files else IndexStatus.EMPTY,
        files_total=total,
    )

    _notify(on_progress, IndexPhase.PROCESS, 0, total)
    for done, path in enumerate(files, start=1):
        try:
            entry = _process_file(facade, path)
        except OSError as exc:
            if not skip_unreadable:
                logger.error("failed to read %s: %s", path, exc)
                raise
            logger.error("skipping unreadable file %s: %s", path, exc)
            entry = IndexedEntry(path=path, status=EntryStatus.FAILED, error=str(exc))
        if entry.status == EntryStatus.RESOLVED:
            result.files_resolved += 1
        elif entry.status == EntryStatus.UNKNOWN:
            result.files_unknown += 1
        else:
            result.files_failed += 1
        result.entries.append(entry)
        _notify(on_progress, IndexPhase.PROCESS, done, total)

    _notify(on_progress, IndexPhase.PRUNE, 0, 1)
    result.pruned = path_index.delete_where_path_missing(exists)
    _notify(on_progress, IndexPhase.PRUNE, 1, 1)

    _notify(on_progress, IndexPhase.DONE, total, total)
    return result
