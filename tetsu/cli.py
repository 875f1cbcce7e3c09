"""Command line interface for Tetsu."""

from __future__ import annotations

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Sequence

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
)
from rich.table import Table

from . import __version__
from .cache import CacheDatabase, EntityCacheStore, PathIndexStore
from .config import config_dir_context, load_config, resolve_database_path
from .errors import TetsuError
from .output import format_status_icon
from .providers.anidb import AniDBClient
from .services.cache_service import clear_index_database, load_cache_summary
from .services.config_service import apply_config_updates, get_config_snapshot
from .services.index_service import (
    EntryStatus,
    IndexPhase,
    IndexResult,
    IndexStatus,
    build_index,
)
from .services.query_service import QueryResult, query_file
from .services.resolve_service import CacheFacade
from .text import Messages, Styles
from .utils import format_path, normalize_extensions, resolve_directory, resolve_file

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help=Messages.APP_HELP,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


class QueryOutputFormat(str, Enum):
    rich = "rich"
    porcelain = "porcelain"


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"Tetsu v{__version__}")
        raise typer.Exit()


def _configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logger = logging.getLogger("tetsu")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.addHandler(RichHandler(console=err_console, show_path=False))
    logger.setLevel(level)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        count=True,
        help=Messages.HELP_VERBOSE,
    ),
    config_dir: Path | None = typer.Option(
        None,
        "--config-dir",
        help=Messages.HELP_CONFIG_DIR,
    ),
) -> None:
    """Global Typer callback for shared options."""
    _configure_logging(verbose)
    if config_dir is not None:
        ctx.with_resource(config_dir_context(config_dir))


class _IndexProgress:
    """Adapts index phase callbacks onto a Rich progress bar."""

    _LABELS = {
        IndexPhase.DISCOVER: Messages.INFO_PROGRESS_DISCOVER,
        IndexPhase.PROCESS: Messages.INFO_PROGRESS_PROCESS,
        IndexPhase.PRUNE: Messages.INFO_PROGRESS_PRUNE,
    }

    def __init__(self, progress: Progress) -> None:
        self.progress = progress
        self.task: TaskID | None = None

    def __call__(self, phase: IndexPhase, done: int, total: int) -> None:
        label = self._LABELS.get(phase)
        if label is None:
            return
        if self.task is None:
            self.task = self.progress.add_task(label, total=total or None)
        self.progress.update(
            self.task,
            description=label,
            completed=done,
            total=total or None,
        )


@app.command()
def index(
    path: Path = typer.Argument(
        ...,
        help=Messages.HELP_INDEX_PATH,
    ),
    database: Path | None = typer.Option(
        None,
        "--database",
        "-d",
        help=Messages.HELP_DATABASE,
    ),
    include_hidden: bool = typer.Option(
        False,
        "--include-hidden",
        "-i",
        help=Messages.HELP_INCLUDE_HIDDEN,
    ),
    extensions: list[str] | None = typer.Option(
        None,
        "--ext",
        "-e",
        help=Messages.HELP_EXTENSIONS,
    ),
    skip_unreadable: bool = typer.Option(
        False,
        "--skip-unreadable",
        help=Messages.HELP_SKIP_UNREADABLE,
    ),
) -> None:
    """Add all media files in a folder to the index."""
    config = load_config()
    db_path = resolve_database_path(database, config)
    try:
        directory = resolve_directory(path)
    except (FileNotFoundError, NotADirectoryError) as exc:
        raise typer.BadParameter(str(exc)) from exc
    normalized_exts = normalize_extensions(extensions)

    console.print(_styled(Messages.INFO_INDEX_RUNNING.format(path=directory), Styles.INFO))
    try:
        with CacheDatabase.open(db_path) as db:
            with AniDBClient.from_config(config) as service:
                facade = CacheFacade(
                    service,
                    EntityCacheStore(db),
                    PathIndexStore(db),
                    hash_workers=config.hash_workers,
                )
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    MofNCompleteColumn(),
                    console=console,
                    transient=True,
                ) as progress:
                    result = build_index(
                        directory,
                        facade=facade,
                        path_index=facade.path_index,
                        include_hidden=include_hidden,
                        extensions=normalized_exts,
                        skip_unreadable=skip_unreadable,
                        on_progress=_IndexProgress(progress),
                    )
    except (TetsuError, OSError) as exc:
        console.print(_styled(str(exc), Styles.ERROR))
        raise typer.Exit(code=1)

    if result.status == IndexStatus.EMPTY:
        console.print(_styled(Messages.INFO_NO_FILES, Styles.WARNING))
    else:
        _render_index_results(result, directory)
    console.print(_styled(_format_summary(result), Styles.SUCCESS))
    console.print(_styled(Messages.INFO_INDEX_DATABASE.format(path=db_path), Styles.INFO))


@app.command()
def query(
    path: Path = typer.Argument(
        ...,
        help=Messages.HELP_QUERY_PATH,
    ),
    database: Path | None = typer.Option(
        None,
        "--database",
        "-d",
        help=Messages.HELP_DATABASE,
    ),
    output_format: QueryOutputFormat = typer.Option(
        QueryOutputFormat.rich,
        "--format",
        help=Messages.HELP_QUERY_FORMAT,
    ),
) -> None:
    """Get information about a file that was previously indexed."""
    config = load_config()
    db_path = resolve_database_path(database, config)
    file_path = resolve_file(path)
    if not db_path.exists():
        console.print(
            _styled(Messages.INFO_QUERY_NOT_INDEXED.format(path=file_path), Styles.WARNING)
        )
        raise typer.Exit(code=1)

    try:
        with CacheDatabase.open(db_path) as db:
            result = query_file(
                file_path,
                entities=EntityCacheStore(db),
                path_index=PathIndexStore(db),
            )
    except (TetsuError, OSError) as exc:
        console.print(_styled(str(exc), Styles.ERROR))
        raise typer.Exit(code=1)

    if not result.indexed:
        console.print(
            _styled(Messages.INFO_QUERY_NOT_INDEXED.format(path=file_path), Styles.WARNING)
        )
        raise typer.Exit(code=1)
    if result.file is None:
        console.print(
            _styled(Messages.INFO_QUERY_NO_RECORD.format(path=file_path), Styles.WARNING)
        )
        raise typer.Exit(code=1)

    if output_format == QueryOutputFormat.porcelain:
        _render_query_porcelain(result)
    else:
        _render_query(result)


@app.command()
def cache(
    show: bool = typer.Option(
        False,
        "--show",
        help=Messages.HELP_CACHE_SHOW,
    ),
    clear: bool = typer.Option(
        False,
        "--clear",
        help=Messages.HELP_CACHE_CLEAR,
    ),
    database: Path | None = typer.Option(
        None,
        "--database",
        "-d",
        help=Messages.HELP_DATABASE,
    ),
) -> None:
    """Inspect or remove the index database."""
    if show and clear:
        raise typer.BadParameter("--show and --clear cannot be used together.")
    db_path = resolve_database_path(database, load_config())

    try:
        if clear:
            if not db_path.exists():
                console.print(_styled(Messages.INFO_CACHE_MISSING.format(path=db_path), Styles.INFO))
                return
            removed = clear_index_database(db_path)
            plural = "" if removed == 1 else "s"
            console.print(
                _styled(
                    Messages.INFO_CACHE_CLEARED.format(path=db_path, count=removed, plural=plural),
                    Styles.SUCCESS,
                )
            )
            return

        summary = load_cache_summary(db_path)
    except (TetsuError, OSError) as exc:
        console.print(_styled(str(exc), Styles.ERROR))
        raise typer.Exit(code=1)

    if summary is None:
        console.print(_styled(Messages.INFO_CACHE_MISSING.format(path=db_path), Styles.INFO))
        return
    console.print(
        _styled(
            Messages.INFO_CACHE_SUMMARY.format(
                path=db_path,
                indexed_files=summary.get("indexed_files", 0),
                files=summary.get("files", 0),
                anime=summary.get("anime", 0),
                episodes=summary.get("episodes", 0),
                groups=summary.get("groups", 0),
            ),
            Styles.INFO,
        )
    )


@app.command()
def config(
    set_username_option: str | None = typer.Option(
        None,
        "--set-username",
        help=Messages.HELP_SET_USERNAME,
    ),
    set_password_option: str | None = typer.Option(
        None,
        "--set-password",
        help=Messages.HELP_SET_PASSWORD,
    ),
    clear_password: bool = typer.Option(
        False,
        "--clear-password",
        help=Messages.HELP_CLEAR_PASSWORD,
    ),
    set_database_option: str | None = typer.Option(
        None,
        "--set-database",
        help=Messages.HELP_SET_DATABASE,
    ),
    set_hash_workers_option: int | None = typer.Option(
        None,
        "--set-hash-workers",
        help=Messages.HELP_SET_HASH_WORKERS,
    ),
    set_client_option: str | None = typer.Option(
        None,
        "--set-client",
        help=Messages.HELP_SET_CLIENT,
    ),
    show: bool = typer.Option(
        False,
        "--show",
        help=Messages.HELP_SHOW_CONFIG,
    ),
) -> None:
    """Manage Tetsu configuration."""
    if set_hash_workers_option is not None and set_hash_workers_option < 1:
        raise typer.BadParameter(Messages.ERROR_HASH_WORKERS_INVALID)

    updates = apply_config_updates(
        username=set_username_option,
        password=set_password_option,
        clear_password=clear_password,
        database=set_database_option,
        hash_workers=set_hash_workers_option,
        client=set_client_option,
    )

    if updates.username_set:
        console.print(
            _styled(Messages.INFO_USERNAME_SET.format(value=set_username_option), Styles.SUCCESS)
        )
    if updates.password_set:
        console.print(_styled(Messages.INFO_PASSWORD_SAVED, Styles.SUCCESS))
    if updates.password_cleared:
        console.print(_styled(Messages.INFO_PASSWORD_CLEARED, Styles.SUCCESS))
    if updates.database_set:
        console.print(
            _styled(Messages.INFO_DATABASE_SET.format(value=set_database_option), Styles.SUCCESS)
        )
    if updates.hash_workers_set:
        console.print(
            _styled(
                Messages.INFO_HASH_WORKERS_SET.format(value=set_hash_workers_option),
                Styles.SUCCESS,
            )
        )
    if updates.client_set:
        console.print(
            _styled(Messages.INFO_CLIENT_SET.format(value=set_client_option), Styles.SUCCESS)
        )

    if show or not updates.changed:
        cfg = get_config_snapshot()
        console.print(
            _styled(
                Messages.INFO_CONFIG_SUMMARY.format(
                    username=cfg.username or "-",
                    password="yes" if cfg.password else "no",
                    client=cfg.client,
                    client_version=cfg.client_version,
                    server=f"{cfg.server_host}:{cfg.server_port}",
                    database=resolve_database_path(None, cfg),
                    hash_workers=cfg.hash_workers,
                    interval=cfg.request_interval,
                ),
                Styles.INFO,
            )
        )


def _format_summary(result: IndexResult) -> str:
    pruned = len(result.pruned)
    return Messages.INFO_INDEX_SUMMARY.format(
        total=result.files_total,
        plural="" if result.files_total == 1 else "s",
        resolved=result.files_resolved,
        unknown=result.files_unknown,
        failed=result.files_failed,
        pruned=pruned,
        pruned_plural="y" if pruned == 1 else "ies",
    )


def _render_index_results(result: IndexResult, base: Path) -> None:
    console.print(_styled(Messages.TABLE_TITLE, Styles.TITLE))
    table = Table(show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_INDEX, justify="right")
    table.add_column(Messages.TABLE_HEADER_STATUS, justify="center")
    table.add_column(Messages.TABLE_HEADER_PATH, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_ANIME, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_EPISODE, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_GROUP, overflow="fold")
    for idx, entry in enumerate(result.entries, start=1):
        anime = episode = group = Messages.LABEL_UNKNOWN
        if entry.status == EntryStatus.RESOLVED:
            icon = format_status_icon(True, console)
            if entry.anime:
                anime = entry.anime.display_name
            if entry.episode:
                episode = entry.episode.display_name
            if entry.group:
                group = entry.group.display_name
        elif entry.status == EntryStatus.FAILED:
            icon = format_status_icon(False, console)
        else:
            icon = format_status_icon(None, console)
        table.add_row(
            str(idx),
            icon,
            format_path(entry.path, base),
            anime,
            episode,
            group,
        )
    console.print(table)


def _render_query(result: QueryResult) -> None:
    console.print(_styled(Messages.TABLE_QUERY_TITLE, Styles.TITLE))
    table = Table(show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_FIELD)
    table.add_column(Messages.TABLE_HEADER_VALUE, overflow="fold")
    for key, value in result.as_pairs():
        table.add_row(key, value)
    console.print(table)


def _escape_porcelain_field(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace("\t", "\\t")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def _render_query_porcelain(result: QueryResult) -> None:
    for key, value in result.as_pairs():
        typer.echo(f"{key}\t{_escape_porcelain_field(value)}")


def _styled(text: str, style: str) -> str:
    return f"[{style}]{text}[/{style}]"


def run(argv: Sequence[str] | None = None) -> None:
    """Entry point wrapper allowing optional argument override."""
    args = list(argv) if argv is not None else sys.argv[1:]
    if argv is None:
        app()
    else:
        app(args=args)
