"""Centralized user-facing text for Tetsu CLI."""

from __future__ import annotations

class Styles:
    ERROR = "red"
    WARNING = "yellow"
    SUCCESS = "green"
    INFO = "dim"
    TITLE = "bold cyan"
    TABLE_HEADER = "bold magenta"


class Messages:
    APP_HELP = "Tetsu – a content-hash index of your anime library backed by AniDB."
    HELP_INDEX_PATH = "Root directory to scan recursively for media files."
    HELP_QUERY_PATH = "File whose cached catalog information should be shown."
    HELP_DATABASE = "Path to the SQLite index database."
    HELP_INCLUDE_HIDDEN = "Include hidden files and directories while scanning."
    HELP_EXTENSIONS = "Only index files with these extensions (repeatable, e.g. --ext mkv)."
    HELP_SKIP_UNREADABLE = "Log and skip files that cannot be read instead of aborting the run."
    HELP_VERBOSE = "Increase log verbosity (repeat for debug output)."
    HELP_CONFIG_DIR = "Read and write config.json in this directory instead of ~/.tetsu."
    HELP_QUERY_FORMAT = "Output format (rich=table, porcelain=tab-separated key/value lines)."
    HELP_CACHE_SHOW = "Show row counts stored in the index database."
    HELP_CACHE_CLEAR = "Delete the index database entirely."
    HELP_SET_USERNAME = "Persist the AniDB username in ~/.tetsu/config.json."
    HELP_SET_PASSWORD = "Persist the AniDB password in ~/.tetsu/config.json."
    HELP_CLEAR_PASSWORD = "Remove the stored AniDB password."
    HELP_SET_DATABASE = "Set the default index database path."
    HELP_SET_HASH_WORKERS = "Set the number of threads used for chunk hashing."
    HELP_SET_CLIENT = "Set the registered AniDB client name."
    HELP_SHOW_CONFIG = "Show current configuration."

    ERROR_CREDENTIALS_MISSING = (
        "AniDB credentials are missing. Configure them via "
        "`tetsu config --set-username <name> --set-password <password>` "
        "or the TETSU_USERNAME / TETSU_PASSWORD environment variables."
    )
    ERROR_LOGIN_FAILED = "AniDB login failed ({code} {text})."
    ERROR_ANIDB_PREFIX = "AniDB request failed: "
    ERROR_ANIDB_TIMEOUT = "AniDB did not answer after {attempts} attempts."
    ERROR_ANIDB_MALFORMED = "AniDB returned a malformed reply: {reply!r}"
    ERROR_KEY_MISMATCH = "AniDB returned {kind} {returned} when asked for {kind} {requested}."
    ERROR_STORE_OPEN = "Unable to open index database {path}: {reason}"
    ERROR_STORE_WRITE = "Unable to write index database {path}: {reason}"
    ERROR_HASH_WORKERS_INVALID = "Hash worker count must be >= 1."

    INFO_INDEX_RUNNING = "Indexing files under {path}..."
    INFO_NO_FILES = "No files found in the selected directory."
    INFO_INDEX_SUMMARY = (
        "{total} file{plural} scanned: {resolved} resolved, {unknown} unknown, "
        "{failed} unreadable; {pruned} stale entr{pruned_plural} pruned."
    )
    INFO_INDEX_DATABASE = "Index saved to {path}."
    INFO_PROGRESS_DISCOVER = "Discovering files"
    INFO_PROGRESS_PROCESS = "Resolving files"
    INFO_PROGRESS_PRUNE = "Pruning index"
    INFO_QUERY_NOT_INDEXED = "{path} has not been indexed yet. Run `tetsu index` on its folder first."
    INFO_QUERY_NO_RECORD = "{path} is indexed but its file record is missing from the cache."
    INFO_CACHE_SUMMARY = (
        "Database: {path}\n"
        "Indexed paths: {indexed_files}\n"
        "Files: {files}\n"
        "Anime: {anime}\n"
        "Episodes: {episodes}\n"
        "Groups: {groups}"
    )
    INFO_CACHE_MISSING = "No index database found at {path}."
    INFO_CACHE_CLEARED = "Removed index database {path} ({count} indexed path{plural})."
    INFO_USERNAME_SET = "AniDB username set to {value}."
    INFO_PASSWORD_SAVED = "AniDB password saved."
    INFO_PASSWORD_CLEARED = "AniDB password cleared."
    INFO_DATABASE_SET = "Default database set to {value}."
    INFO_HASH_WORKERS_SET = "Hash workers set to {value}."
    INFO_CLIENT_SET = "AniDB client set to {value}."
    INFO_CONFIG_SUMMARY = (
        "Username: {username}\n"
        "Password set: {password}\n"
        "Client: {client} v{client_version}\n"
        "Server: {server}\n"
        "Database: {database}\n"
        "Hash workers: {hash_workers}\n"
        "Request interval: {interval}s"
    )

    TABLE_TITLE = "Tetsu index results"
    TABLE_QUERY_TITLE = "Cached catalog entry"
    TABLE_HEADER_INDEX = "#"
    TABLE_HEADER_STATUS = "Status"
    TABLE_HEADER_PATH = "File path"
    TABLE_HEADER_ANIME = "Anime"
    TABLE_HEADER_EPISODE = "Episode"
    TABLE_HEADER_GROUP = "Group"
    TABLE_HEADER_FIELD = "Field"
    TABLE_HEADER_VALUE = "Value"
    LABEL_UNKNOWN = "unknown"
