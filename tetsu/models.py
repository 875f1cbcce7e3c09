"""Cached catalog entities and the generic row codec used to persist them."""

from __future__ import annotations

import typing
from dataclasses import dataclass, fields
from enum import Enum
from functools import lru_cache
from typing import Callable, Mapping, Sequence, TypeVar, Union


@dataclass(slots=True)
class Anime:
    aid: int
    dateflags: int | None = None
    year: str | None = None
    atype: str | None = None
    related_aid_list: str | None = None
    related_aid_type: str | None = None
    romaji_name: str | None = None
    kanji_name: str | None = None
    english_name: str | None = None
    short_name_list: str | None = None
    episodes: int | None = None
    special_ep_count: int | None = None
    air_date: int | None = None
    end_date: int | None = None
    picname: str | None = None
    nsfw: bool | None = None
    characterid_list: str | None = None
    specials_count: int | None = None
    credits_count: int | None = None
    other_count: int | None = None
    trailer_count: int | None = None
    parody_count: int | None = None

    @property
    def display_name(self) -> str:
        return self.romaji_name or self.english_name or self.kanji_name or f"aid {self.aid}"


@dataclass(slots=True)
class Episode:
    eid: int
    aid: int | None = None
    length: int | None = None
    rating: int | None = None
    votes: int | None = None
    epno: str | None = None
    eng: str | None = None
    romaji: str | None = None
    kanji: str | None = None
    aired: int | None = None
    etype: int | None = None

    @property
    def display_name(self) -> str:
        title = self.eng or self.romaji or self.kanji or ""
        label = self.epno or f"eid {self.eid}"
        return f"{label} - {title}" if title else label


@dataclass(slots=True)
class Group:
    gid: int
    rating: int | None = None
    votes: int | None = None
    acount: int | None = None
    fcount: int | None = None
    name: str | None = None
    short: str | None = None
    irc_channel: str | None = None
    irc_server: str | None = None
    url: str | None = None
    picname: str | None = None
    foundeddate: int | None = None
    disbandeddate: int | None = None
    dateflags: int | None = None
    lastreleasedate: int | None = None
    lastactivitydate: int | None = None
    grouprelations: str | None = None

    @property
    def display_name(self) -> str:
        return self.short or self.name or f"gid {self.gid}"


@dataclass(slots=True)
class AniFile:
    """A specific file known to AniDB, identified by its ed2k hash and size."""

    fid: int
    aid: int | None = None
    eid: int | None = None
    gid: int | None = None
    state: int | None = None
    size: int | None = None
    ed2k: str | None = None
    colour_depth: str | None = None
    quality: str | None = None
    source: str | None = None
    audio_codec_list: str | None = None
    audio_bitrate_list: int | None = None
    video_codec: str | None = None
    video_bitrate: int | None = None
    video_resolution: str | None = None
    dub_language: str | None = None
    sub_language: str | None = None
    length_in_seconds: int | None = None
    description: str | None = None
    aired_date: int | None = None


Entity = Union[Anime, Episode, Group, AniFile]
E = TypeVar("E", Anime, Episode, Group, AniFile)


class EntityKind(str, Enum):
    ANIME = "anime"
    EPISODE = "episode"
    GROUP = "group"
    FILE = "file"

    @property
    def table(self) -> str:
        return _TABLES[self]

    @property
    def key(self) -> str:
        return _KEYS[self]

    @property
    def entity_type(self) -> type:
        return _TYPES[self]


_TABLES = {
    EntityKind.ANIME: "anime",
    EntityKind.EPISODE: "episodes",
    EntityKind.GROUP: "groups",
    EntityKind.FILE: "files",
}
_KEYS = {
    EntityKind.ANIME: "aid",
    EntityKind.EPISODE: "eid",
    EntityKind.GROUP: "gid",
    EntityKind.FILE: "fid",
}
_TYPES = {
    EntityKind.ANIME: Anime,
    EntityKind.EPISODE: Episode,
    EntityKind.GROUP: Group,
    EntityKind.FILE: AniFile,
}


def kind_of(entity: Entity) -> EntityKind:
    for kind, entity_type in _TYPES.items():
        if isinstance(entity, entity_type):
            return kind
    raise TypeError(f"Unsupported entity type: {type(entity).__name__}")


def entity_key(entity: Entity) -> int:
    return int(getattr(entity, kind_of(entity).key))


def column_names(entity_type: type) -> tuple[str, ...]:
    """Return the column order for *entity_type* (the dataclass field order)."""
    return tuple(item.name for item in fields(entity_type))


@lru_cache(maxsize=None)
def _field_types(entity_type: type) -> tuple[tuple[str, type], ...]:
    hints = typing.get_type_hints(entity_type)
    resolved: list[tuple[str, type]] = []
    for item in fields(entity_type):
        hint = hints[item.name]
        args = [arg for arg in typing.get_args(hint) if arg is not type(None)]
        resolved.append((item.name, args[0] if args else hint))
    return tuple(resolved)


def entity_to_row(entity: Entity) -> tuple:
    """Encode *entity* as a tuple of sqlite values in column order."""
    row = []
    for name, field_type in _field_types(type(entity)):
        value = getattr(entity, name)
        if field_type is bool and value is not None:
            value = int(bool(value))
        row.append(value)
    return tuple(row)


def entity_from_row(entity_type: type[E], row: Mapping[str, object]) -> E:
    """Decode a sqlite row (anything indexable by column name) into *entity_type*."""
    values: dict[str, object] = {}
    for name, field_type in _field_types(entity_type):
        value = row[name]
        if field_type is bool and value is not None:
            value = bool(value)
        values[name] = value
    return entity_type(**values)


def _parse_int(raw: str) -> int | None:
    token = raw.strip()
    if not token:
        return None
    try:
        return int(token)
    except ValueError:
        return None


def _parse_bool(raw: str) -> bool | None:
    token = raw.strip()
    if not token:
        return None
    return token not in {"0", "false", "False"}


def _parse_str(raw: str) -> str | None:
    return raw if raw != "" else None


_PARSERS: dict[type, Callable[[str], object]] = {
    int: _parse_int,
    bool: _parse_bool,
    str: _parse_str,
}


def entity_from_fields(entity_type: type[E], values: Sequence[str]) -> E:
    """Build *entity_type* from positional text fields as returned by the catalog.

    Missing trailing fields become None; extra fields are ignored.
    """
    parsed: dict[str, object] = {}
    for idx, (name, field_type) in enumerate(_field_types(entity_type)):
        raw = values[idx] if idx < len(values) else ""
        parsed[name] = _PARSERS.get(field_type, _parse_str)(raw)
    key_name = column_names(entity_type)[0]
    if parsed[key_name] is None:
        raise ValueError(f"Missing {key_name} in catalog fields: {list(values)!r}")
    return entity_type(**parsed)
