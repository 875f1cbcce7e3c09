from pathlib import Path

import pytest

from tetsu.utils import (
    collect_files,
    ensure_positive,
    format_path,
    normalize_extensions,
    resolve_directory,
    resolve_file,
)


def _tree(root: Path) -> None:
    (root / "season1").mkdir(parents=True)
    (root / ".trash").mkdir()
    (root / "season1" / "ep01.mkv").write_text("a")
    (root / "season1" / "ep02.MP4").write_text("b")
    (root / "season1" / ".ep03.mkv").write_text("c")
    (root / ".trash" / "old.mkv").write_text("d")
    (root / "notes.txt").write_text("e")


def test_collect_files_skips_hidden_by_default(tmp_path):
    _tree(tmp_path)

    files = collect_files(tmp_path)

    assert [path.relative_to(tmp_path).as_posix() for path in files] == [
        "notes.txt",
        "season1/ep01.mkv",
        "season1/ep02.MP4",
    ]


def test_collect_files_includes_hidden(tmp_path):
    _tree(tmp_path)

    files = collect_files(tmp_path, include_hidden=True)

    names = {path.name for path in files}
    assert {".ep03.mkv", "old.mkv"} <= names
    assert len(files) == 5


def test_collect_files_filters_extensions_case_insensitively(tmp_path):
    _tree(tmp_path)

    files = collect_files(tmp_path, extensions=(".mkv", ".mp4"))

    assert [path.name for path in files] == ["ep01.mkv", "ep02.MP4"]


def test_collect_files_rejects_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        collect_files(tmp_path / "missing")


def test_normalize_extensions():
    assert normalize_extensions(None) == ()
    assert normalize_extensions(["MKV", ".mp4,avi", "mkv", "."]) == (".avi", ".mkv", ".mp4")


def test_resolve_directory_validates(tmp_path):
    target = tmp_path / "file.mkv"
    target.write_text("x")

    assert resolve_directory(tmp_path) == tmp_path.resolve()
    with pytest.raises(NotADirectoryError):
        resolve_directory(target)


def test_resolve_file_does_not_require_existence(tmp_path):
    assert resolve_file(tmp_path / "later.mkv") == (tmp_path / "later.mkv").resolve()


def test_format_path_relative_to_base(tmp_path):
    inside = tmp_path / "season1" / "ep01.mkv"

    assert format_path(inside, tmp_path) == "./season1/ep01.mkv"
    assert format_path(inside, tmp_path / "other") == str(inside)
    assert format_path(inside) == str(inside)


def test_ensure_positive():
    assert ensure_positive(3, "workers") == 3
    with pytest.raises(ValueError):
        ensure_positive(0, "workers")
