import re

import pytest
from typer.testing import CliRunner

from tetsu import __version__
from tetsu.cli import app
from tetsu.models import AniFile, Anime, EntityKind, Episode
from tetsu.providers.base import LookupResult, LookupStatus
from tetsu.services import resolve_service

ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")
KNOWN_HASH = "a" * 32


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text)


def flat(text: str) -> str:
    return " ".join(strip_ansi(text).split())


class FakeClient:
    hash_result = None
    instances = []

    def __init__(self):
        self.calls = []
        self.closed = False
        FakeClient.instances.append(self)

    @classmethod
    def from_config(cls, config):
        return cls()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def fetch_by_id(self, kind, entity_id):
        self.calls.append((kind, entity_id))
        entities = {
            (EntityKind.ANIME, 1): Anime(aid=1, romaji_name="Trigun"),
            (EntityKind.EPISODE, 2): Episode(eid=2, aid=1, epno="01"),
        }
        entity = entities.get((kind, entity_id))
        if entity is None:
            return LookupResult.missing("NO SUCH ENTITY", 330)
        return LookupResult.found(entity)

    def fetch_by_content_hash(self, size, ed2k):
        self.calls.append(("hash", size, ed2k))
        if FakeClient.hash_result is not None:
            return FakeClient.hash_result
        if ed2k == KNOWN_HASH:
            return LookupResult.found(AniFile(fid=12, aid=1, eid=2, gid=3, size=size, ed2k=ed2k))
        return LookupResult.missing("NO SUCH FILE", 320)

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def temp_config_home(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_file = config_dir / "config.json"
    monkeypatch.setattr("tetsu.config.CONFIG_DIR", config_dir)
    monkeypatch.setattr("tetsu.config.CONFIG_FILE", config_file)
    monkeypatch.setattr("tetsu.config.load_dotenv", lambda: False)
    for name in ("TETSU_USERNAME", "TETSU_PASSWORD", "TETSU_DATABASE", "PASS"):
        monkeypatch.delenv(name, raising=False)
    return config_file


@pytest.fixture
def fake_anidb(monkeypatch):
    FakeClient.hash_result = None
    FakeClient.instances = []

    def fake_hash(path, *, workers=None):
        return KNOWN_HASH if path.name == "ep01.mkv" else "b" * 32

    monkeypatch.setattr("tetsu.cli.AniDBClient", FakeClient)
    monkeypatch.setattr(resolve_service, "ed2k_hash", fake_hash)
    return FakeClient


@pytest.fixture
def library(tmp_path):
    root = tmp_path / "library"
    (root / "show").mkdir(parents=True)
    (root / "show" / "ep01.mkv").write_bytes(b"known")
    (root / "show" / "extra.mkv").write_bytes(b"unknown")
    return root


def _index(runner, library, db_path):
    return runner.invoke(app, ["index", str(library), "-d", str(db_path)])


def test_version_flag():
    runner = CliRunner()

    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"Tetsu v{__version__}" in result.output


def test_index_then_query_porcelain(tmp_path, library, fake_anidb):
    runner = CliRunner()
    db_path = tmp_path / "index.db"

    result = _index(runner, library, db_path)

    assert result.exit_code == 0, result.output
    output = flat(result.output)
    assert "2 files scanned: 1 resolved, 1 unknown, 0 unreadable" in output
    assert "Tetsu index results" in output
    assert fake_anidb.instances[0].closed is True

    query = runner.invoke(
        app,
        [
            "query",
            str(library / "show" / "ep01.mkv"),
            "-d",
            str(db_path),
            "--format",
            "porcelain",
        ],
    )

    assert query.exit_code == 0, query.output
    lines = query.output.splitlines()
    assert "fid\t12" in lines
    assert "anime\tTrigun" in lines
    assert "group\t-" in lines


def test_query_rich_table(tmp_path, library, fake_anidb):
    runner = CliRunner()
    db_path = tmp_path / "index.db"
    _index(runner, library, db_path)

    result = runner.invoke(app, ["query", str(library / "show" / "ep01.mkv"), "-d", str(db_path)])

    assert result.exit_code == 0
    output = strip_ansi(result.output)
    assert "Cached catalog entry" in output
    assert "Trigun" in output
    assert "Field" in output


def test_query_unknown_file_is_not_indexed(tmp_path, library, fake_anidb):
    runner = CliRunner()
    db_path = tmp_path / "index.db"
    _index(runner, library, db_path)

    result = runner.invoke(
        app, ["query", str(library / "show" / "extra.mkv"), "-d", str(db_path)]
    )

    assert result.exit_code == 1
    assert "has not been indexed yet" in flat(result.output)


def test_query_without_database(tmp_path):
    runner = CliRunner()

    result = runner.invoke(app, ["query", str(tmp_path / "ep.mkv"), "-d", str(tmp_path / "none.db")])

    assert result.exit_code == 1
    assert not (tmp_path / "none.db").exists()


def test_index_reports_missing_credentials(tmp_path, library):
    runner = CliRunner()

    result = _index(runner, library, tmp_path / "index.db")

    assert result.exit_code == 1
    assert "credentials are missing" in flat(result.output)


def test_index_aborts_on_service_failure(tmp_path, library, fake_anidb):
    fake_anidb.hash_result = LookupResult(
        LookupStatus.FATAL, message="AniDB request failed: 555 BANNED", code=555
    )
    runner = CliRunner()

    result = _index(runner, library, tmp_path / "index.db")

    assert result.exit_code == 1
    assert "555 BANNED" in flat(result.output)
    assert fake_anidb.instances[0].closed is True


def test_index_rejects_missing_directory(tmp_path, fake_anidb):
    runner = CliRunner()

    result = _index(runner, tmp_path / "missing", tmp_path / "index.db")

    assert result.exit_code != 0
    assert fake_anidb.instances == []


def test_index_empty_directory(tmp_path, fake_anidb):
    empty = tmp_path / "empty"
    empty.mkdir()
    runner = CliRunner()

    result = _index(runner, empty, tmp_path / "index.db")

    assert result.exit_code == 0
    assert "No files found" in flat(result.output)


def test_cache_show_and_clear(tmp_path, library, fake_anidb):
    runner = CliRunner()
    db_path = tmp_path / "index.db"

    missing = runner.invoke(app, ["cache", "--show", "-d", str(db_path)])
    assert "No index database found" in flat(missing.output)

    _index(runner, library, db_path)
    shown = runner.invoke(app, ["cache", "--show", "-d", str(db_path)])
    assert shown.exit_code == 0
    assert "Indexed paths: 1" in strip_ansi(shown.output)
    assert "Anime: 1" in strip_ansi(shown.output)

    cleared = runner.invoke(app, ["cache", "--clear", "-d", str(db_path)])
    assert cleared.exit_code == 0
    assert "Removed index database" in flat(cleared.output)
    assert not db_path.exists()


def test_cache_rejects_conflicting_flags(tmp_path):
    runner = CliRunner()

    result = runner.invoke(app, ["cache", "--show", "--clear", "-d", str(tmp_path / "x.db")])

    assert result.exit_code != 0


def test_database_from_environment(tmp_path, library, fake_anidb, monkeypatch):
    db_path = tmp_path / "env.db"
    monkeypatch.setenv("TETSU_DATABASE", str(db_path))
    runner = CliRunner()

    result = runner.invoke(app, ["index", str(library)])

    assert result.exit_code == 0, result.output
    assert db_path.exists()


def test_config_updates_and_show(temp_config_home):
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["config", "--set-username", "spike", "--set-password", "swordfish", "--show"],
    )

    assert result.exit_code == 0
    output = flat(result.output)
    assert "AniDB username set to spike." in output
    assert "AniDB password saved." in output
    assert "Username: spike" in output
    assert "Password set: yes" in output
    assert "swordfish" not in output


def test_config_without_options_shows_summary():
    runner = CliRunner()

    result = runner.invoke(app, ["config"])

    assert result.exit_code == 0
    assert "Server: api.anidb.net:9000" in flat(result.output)


def test_config_rejects_invalid_hash_workers():
    runner = CliRunner()

    result = runner.invoke(app, ["config", "--set-hash-workers", "0"])

    assert result.exit_code != 0


def test_config_dir_option_redirects_config_file(tmp_path, temp_config_home):
    runner = CliRunner()
    custom = tmp_path / "custom-config"

    result = runner.invoke(
        app,
        ["--config-dir", str(custom), "config", "--set-username", "faye"],
    )

    assert result.exit_code == 0, result.output
    assert '"username": "faye"' in (custom / "config.json").read_text(encoding="utf-8")
    assert not temp_config_home.exists()

    shown = runner.invoke(app, ["--config-dir", str(custom), "config", "--show"])
    assert "Username: faye" in flat(shown.output)
    default = runner.invoke(app, ["config", "--show"])
    assert "Username: -" in flat(default.output)
