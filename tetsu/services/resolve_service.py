"""Cache-aside lookups that sit between the local index and the catalog service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from ..cache import EntityCacheStore, PathIndexStore
from ..errors import EntityNotFoundError
from ..hashing import ed2k_hash
from ..models import AniFile, Anime, Entity, EntityKind, Episode, Group
from ..providers.base import MetadataService

logger = logging.getLogger(__name__)


class CacheFacade:
    """Resolve files and catalog entities, hitting the network only on cache misses.

    The facade is driven by one caller at a time; the database writer lock
    covers the case where it is shared across threads.
    """

    def __init__(
        self,
        service: MetadataService,
        entities: EntityCacheStore,
        path_index: PathIndexStore,
        *,
        hash_workers: int | None = None,
    ) -> None:
        self.service = service
        self.entities = entities
        self.path_index = path_index
        self.hash_workers = hash_workers

    def _fetcher(self, kind: EntityKind) -> Callable[[int], Entity]:
        def _fetch(entity_id: int) -> Entity:
            result = self.service.fetch_by_id(kind, entity_id)
            if result.not_found:
                raise EntityNotFoundError(kind.value, entity_id)
            result.raise_for_status()
            return result.value

        return _fetch

    def resolve_file(self, path: Path | str) -> AniFile | None:
        """Return the catalog record for the file at *path*, or None if AniDB does not know it.

        Unknown files are not cached, so they are hashed again on every scan.
        OSError from stat/hash propagates; MetadataServiceError propagates.
        """
        file_path = Path(path)
        size = file_path.stat().st_size
        entry = self.path_index.lookup(str(file_path), file_path.name, size)
        if entry is not None:
            logger.info("found in cache: %s", file_path.name)
            try:
                return self.entities.get_or_fetch(
                    EntityKind.FILE, entry.fid, self._fetcher(EntityKind.FILE)
                )
            except EntityNotFoundError:
                logger.warning("file %s for %s is no longer in the catalog", entry.fid, file_path)
                return None

        logger.info("hashing %s...", file_path)
        ed2k = ed2k_hash(file_path, workers=self.hash_workers)
        logger.debug("ed2k %s size %s", ed2k, size)

        result = self.service.fetch_by_content_hash(size, ed2k)
        if result.not_found:
            logger.info("unknown file: %s", file_path)
            return None
        result.raise_for_status()
        anifile: AniFile = result.value

        self.entities.put(anifile)
        self.path_index.record(str(file_path), file_path.name, size, anifile.fid)
        return anifile

    def resolve_anime(self, aid: int) -> Anime:
        return self.entities.get_or_fetch(EntityKind.ANIME, aid, self._fetcher(EntityKind.ANIME))

    def resolve_episode(self, eid: int) -> Episode:
        return self.entities.get_or_fetch(
            EntityKind.EPISODE, eid, self._fetcher(EntityKind.EPISODE)
        )

    def resolve_group(self, gid: int) -> Group:
        return self.entities.get_or_fetch(EntityKind.GROUP, gid, self._fetcher(EntityKind.GROUP))
