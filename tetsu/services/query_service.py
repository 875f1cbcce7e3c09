"""Logic helpers for the `tetsu query` command.

Queries never talk to AniDB: they only read what a previous `tetsu index`
run cached. Related entities missing from the cache are reported as None.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..cache import EntityCacheStore, PathIndexStore
from ..models import AniFile, Anime, EntityKind, Episode, Group


@dataclass(slots=True)
class QueryResult:
    path: Path
    indexed: bool
    file: AniFile | None = None
    anime: Anime | None = None
    episode: Episode | None = None
    group: Group | None = None
    moved_from: str | None = None

    def as_pairs(self) -> list[tuple[str, str]]:
        """Flatten the result into (field, value) rows for display."""
        pairs: list[tuple[str, str]] = [("path", str(self.path))]
        if self.moved_from:
            pairs.append(("moved_from", self.moved_from))
        if self.file is not None:
            pairs.extend(
                [
                    ("fid", str(self.file.fid)),
                    ("size", _text(self.file.size)),
                    ("ed2k", _text(self.file.ed2k)),
                    ("quality", _text(self.file.quality)),
                    ("source", _text(self.file.source)),
                    ("video", _join(self.file.video_codec, self.file.video_resolution)),
                    ("audio", _text(self.file.audio_codec_list)),
                    ("dub_language", _text(self.file.dub_language)),
                    ("sub_language", _text(self.file.sub_language)),
                ]
            )
        pairs.append(("anime", self.anime.display_name if self.anime else "-"))
        pairs.append(("episode", self.episode.display_name if self.episode else "-"))
        pairs.append(("group", self.group.display_name if self.group else "-"))
        return pairs


def _text(value: object) -> str:
    return "-" if value is None or value == "" else str(value)


def _join(*values: object) -> str:
    parts = [str(value) for value in values if value not in (None, "")]
    return " ".join(parts) if parts else "-"


def _cached(entities: EntityCacheStore, kind: EntityKind, entity_id: int | None):
    if not entity_id:
        return None
    return entities.get(kind, entity_id)


def query_file(
    path: Path,
    *,
    entities: EntityCacheStore,
    path_index: PathIndexStore,
) -> QueryResult:
    """Look *path* up in the local index and load its cached catalog entities."""

    size: int | None = None
    if path.is_file():
        size = path.stat().st_size
    entry = path_index.lookup(str(path), path.name, size)
    if entry is None:
        return QueryResult(path=path, indexed=False)

    anifile = entities.get(EntityKind.FILE, entry.fid)
    result = QueryResult(path=path, indexed=True, file=anifile, moved_from=entry.moved_from)
    if anifile is None:
        return result
    result.anime = _cached(entities, EntityKind.ANIME, anifile.aid)
    result.episode = _cached(entities, EntityKind.EPISODE, anifile.eid)
    result.group = _cached(entities, EntityKind.GROUP, anifile.gid)
    return result
