from __future__ import annotations

from typer.testing import CliRunner

import tetsu
from tetsu.cli import app, run


def test_get_version_matches_dunder():
    assert tetsu.get_version() == tetsu.__version__


def test_package_exports_hashing():
    assert tetsu.CHUNK_SIZE == 9_728_000
    assert tetsu.ed2k_digest(b"").hex() == "31d6cfe0d16ae931b73c59d7e0c089c0"


def test_cli_version_flag_prints_version():
    runner = CliRunner()
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"Tetsu v{tetsu.__version__}" in result.stdout


def test_run_forwards_arguments(monkeypatch):
    captured = {}

    def fake_app(*args, **kwargs):
        captured["kwargs"] = kwargs

    monkeypatch.setattr("tetsu.cli.app", fake_app)

    run(["cache", "--show"])

    assert captured["kwargs"] == {"args": ["cache", "--show"]}
