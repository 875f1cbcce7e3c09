from rich.console import Console

from tetsu import cli
from tetsu.output import format_status_icon
from tetsu.services.index_service import IndexPhase, IndexResult, IndexStatus


class RecordingProgress:
    def __init__(self):
        self.tasks = []
        self.updates = []

    def add_task(self, description, total=None):
        self.tasks.append((description, total))
        return len(self.tasks) - 1

    def update(self, task, **kwargs):
        self.updates.append((task, kwargs))


def test_status_icon_variants():
    console = Console()

    assert format_status_icon(None) == "[yellow]?[/yellow]"
    assert "green" in format_status_icon(True, console)
    assert "red" in format_status_icon(False, console)


def test_status_icon_ascii_fallback(monkeypatch):
    monkeypatch.setattr("tetsu.output.supports_unicode_output", lambda console=None: False)

    assert format_status_icon(True) == "[green]OK[/green]"
    assert format_status_icon(False) == "[red]X[/red]"


def test_index_progress_tracks_phases():
    progress = RecordingProgress()
    callback = cli._IndexProgress(progress)

    callback(IndexPhase.DISCOVER, 0, 0)
    callback(IndexPhase.PROCESS, 1, 4)
    callback(IndexPhase.DONE, 4, 4)

    assert progress.tasks == [("Discovering files", None)]
    assert progress.updates[-1][1]["description"] == "Resolving files"
    assert progress.updates[-1][1]["completed"] == 1
    assert progress.updates[-1][1]["total"] == 4


def test_format_summary_pluralizes():
    result = IndexResult(
        status=IndexStatus.STORED,
        files_total=1,
        files_resolved=1,
        pruned=["/gone.mkv"],
    )

    summary = cli._format_summary(result)

    assert summary.startswith("1 file scanned")
    assert "1 stale entry pruned" in summary


def test_escape_porcelain_field():
    assert cli._escape_porcelain_field("a\tb\nc\\d") == "a\\tb\\nc\\\\d"
