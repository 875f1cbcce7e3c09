import sqlite3

import pytest

import tetsu.cache as cache
from tetsu.errors import CacheStoreError, MetadataServiceError
from tetsu.models import AniFile, Anime, EntityKind


@pytest.fixture
def db(tmp_path):
    database = cache.CacheDatabase.open(tmp_path / "index.db")
    yield database
    database.close()


def test_open_creates_schema(db):
    stats = db.stats()

    assert stats == {
        "anime": 0,
        "episodes": 0,
        "groups": 0,
        "files": 0,
        "indexed_files": 0,
    }
    rows = db.query("SELECT version FROM schema_meta")
    assert [row["version"] for row in rows] == [cache.SCHEMA_VERSION]


def test_open_reports_unusable_location(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with pytest.raises(CacheStoreError):
        cache.CacheDatabase.open(blocker / "index.db")


def test_outdated_schema_is_rebuilt(tmp_path):
    db_path = tmp_path / "index.db"
    with cache.CacheDatabase.open(db_path) as db:
        cache.EntityCacheStore(db).put(Anime(aid=1, romaji_name="Old"))
        db.write("UPDATE schema_meta SET version = ?", (0,))

    with cache.CacheDatabase.open(db_path) as db:
        assert cache.EntityCacheStore(db).get(EntityKind.ANIME, 1) is None
        assert db.stats()["anime"] == 0


def test_entity_put_and_get_round_trip(db):
    store = cache.EntityCacheStore(db)
    anime = Anime(aid=1, romaji_name="Cowboy Bebop", nsfw=False, episodes=26)

    store.put(anime)

    assert store.get(EntityKind.ANIME, 1) == anime
    assert store.get(EntityKind.ANIME, 2) is None


def test_put_replaces_existing_row(db):
    store = cache.EntityCacheStore(db)
    store.put(Anime(aid=1, romaji_name="First"))
    store.put(Anime(aid=1, romaji_name="Second"))

    assert store.get(EntityKind.ANIME, 1).romaji_name == "Second"
    assert db.stats()["anime"] == 1


def test_get_or_fetch_only_fetches_once(db):
    store = cache.EntityCacheStore(db)
    calls = []

    def fetch(aid):
        calls.append(aid)
        return Anime(aid=aid, romaji_name="Trigun")

    first = store.get_or_fetch(EntityKind.ANIME, 4, fetch)
    second = store.get_or_fetch(EntityKind.ANIME, 4, fetch)

    assert first == second
    assert calls == [4]


def test_get_or_fetch_propagates_errors_without_writing(db):
    store = cache.EntityCacheStore(db)

    def fetch(aid):
        raise MetadataServiceError("offline")

    with pytest.raises(MetadataServiceError):
        store.get_or_fetch(EntityKind.ANIME, 4, fetch)
    assert store.get(EntityKind.ANIME, 4) is None


def test_get_or_fetch_rejects_mismatched_key(db):
    store = cache.EntityCacheStore(db)

    def fetch(aid):
        return Anime(aid=aid + 1, romaji_name="Wrong")

    with pytest.raises(MetadataServiceError):
        store.get_or_fetch(EntityKind.ANIME, 4, fetch)
    assert db.stats()["anime"] == 0


def test_lookup_matches_exact_path(db):
    index = cache.PathIndexStore(db)
    index.record("/lib/a/ep01.mkv", "ep01.mkv", 100, 7)

    entry = index.lookup("/lib/a/ep01.mkv", "ep01.mkv", 100)

    assert entry is not None
    assert entry.fid == 7
    assert entry.moved_from is None


def test_lookup_heals_moved_path(db):
    index = cache.PathIndexStore(db)
    index.record("/lib/a/ep01.mkv", "ep01.mkv", 100, 7)

    entry = index.lookup("/lib/b/ep01.mkv", "ep01.mkv", 100)

    assert entry is not None
    assert entry.fid == 7
    assert entry.path == "/lib/b/ep01.mkv"
    assert entry.moved_from == "/lib/a/ep01.mkv"
    assert index.paths() == ["/lib/b/ep01.mkv"]


def test_lookup_requires_matching_size(db):
    index = cache.PathIndexStore(db)
    index.record("/lib/a/ep01.mkv", "ep01.mkv", 100, 7)

    assert index.lookup("/lib/b/ep01.mkv", "ep01.mkv", 101) is None
    assert index.lookup("/lib/b/ep01.mkv", "ep01.mkv", None) is None
    assert index.lookup("/lib/a/ep01.mkv", "ep01.mkv", None).fid == 7


def test_record_replaces_on_filename_and_size(db):
    index = cache.PathIndexStore(db)
    index.record("/lib/a/ep01.mkv", "ep01.mkv", 100, 7)
    index.record("/lib/b/ep01.mkv", "ep01.mkv", 100, 8)

    assert index.paths() == ["/lib/b/ep01.mkv"]
    assert index.lookup("/lib/b/ep01.mkv", "ep01.mkv", 100).fid == 8


def test_prune_only_touches_path_index(db):
    entities = cache.EntityCacheStore(db)
    index = cache.PathIndexStore(db)
    entities.put(AniFile(fid=7, aid=1))
    index.record("/lib/keep.mkv", "keep.mkv", 10, 7)
    index.record("/lib/gone.mkv", "gone.mkv", 20, 7)

    removed = index.delete_where_path_missing(lambda path: path == "/lib/keep.mkv")

    assert removed == ["/lib/gone.mkv"]
    assert index.paths() == ["/lib/keep.mkv"]
    assert entities.get(EntityKind.FILE, 7) is not None


def test_write_errors_become_cache_store_errors(db):
    with pytest.raises(CacheStoreError):
        db.write("INSERT INTO missing_table VALUES (1)")


def test_clear_cache_removes_database(tmp_path):
    db_path = tmp_path / "index.db"
    with cache.CacheDatabase.open(db_path) as db:
        cache.PathIndexStore(db).record("/lib/a.mkv", "a.mkv", 1, 1)
        cache.PathIndexStore(db).record("/lib/b.mkv", "b.mkv", 2, 2)

    removed = cache.clear_cache(db_path)

    assert removed == 2
    assert not db_path.exists()
    assert not (tmp_path / "index.db-wal").exists()
    assert cache.clear_cache(db_path) == 0


def test_connection_uses_row_factory(db):
    assert db.conn.row_factory is sqlite3.Row
