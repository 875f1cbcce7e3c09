"""Global configuration management for Tetsu."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

DEFAULT_CONFIG_DIR = Path(os.path.expanduser("~")) / ".tetsu"
CONFIG_DIR = DEFAULT_CONFIG_DIR
CONFIG_FILE = CONFIG_DIR / "config.json"
_CONFIG_DIR_OVERRIDE: ContextVar[Path | None] = ContextVar(
    "tetsu_config_dir_override",
    default=None,
)
DEFAULT_DATABASE = Path(os.path.expanduser("~")) / ".tetsu-index.db"
DEFAULT_CLIENT = "tetsu"
DEFAULT_CLIENT_VERSION = 1
DEFAULT_SERVER_HOST = "api.anidb.net"
DEFAULT_SERVER_PORT = 9000
DEFAULT_LOCAL_PORT = 0
DEFAULT_HASH_WORKERS = max(1, os.cpu_count() or 1)
DEFAULT_REQUEST_INTERVAL = 2.0
DEFAULT_TIMEOUT = 20.0
ENV_USERNAME = "TETSU_USERNAME"
ENV_PASSWORD = "TETSU_PASSWORD"
ENV_DATABASE = "TETSU_DATABASE"
LEGACY_PASSWORD_ENV = "PASS"


@dataclass
class Config:
    username: str | None = None
    password: str | None = None
    client: str = DEFAULT_CLIENT
    client_version: int = DEFAULT_CLIENT_VERSION
    server_host: str = DEFAULT_SERVER_HOST
    server_port: int = DEFAULT_SERVER_PORT
    local_port: int = DEFAULT_LOCAL_PORT
    database: str | None = None
    hash_workers: int = DEFAULT_HASH_WORKERS
    request_interval: float = DEFAULT_REQUEST_INTERVAL
    timeout: float = DEFAULT_TIMEOUT


def _resolve_config_dir() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    return override if override is not None else CONFIG_DIR


def _resolve_config_file() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    if override is not None:
        return override / "config.json"
    return CONFIG_FILE


@contextmanager
def config_dir_context(path: Path | str | None):
    """Temporarily override the config directory for the current context."""

    if path is None:
        yield
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    token = _CONFIG_DIR_OVERRIDE.set(dir_path)
    try:
        yield
    finally:
        _CONFIG_DIR_OVERRIDE.reset(token)


def _coerce_int(value: object, default: int, *, minimum: int = 0) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number >= minimum else default


def _coerce_float(value: object, default: float) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number >= 0 else default


def load_config() -> Config:
    config_file = _resolve_config_file()
    if not config_file.exists():
        return Config()
    raw = json.loads(config_file.read_text(encoding="utf-8"))
    return Config(
        username=raw.get("username") or None,
        password=raw.get("password") or None,
        client=raw.get("client") or DEFAULT_CLIENT,
        client_version=_coerce_int(
            raw.get("client_version"), DEFAULT_CLIENT_VERSION, minimum=1
        ),
        server_host=raw.get("server_host") or DEFAULT_SERVER_HOST,
        server_port=_coerce_int(raw.get("server_port"), DEFAULT_SERVER_PORT, minimum=1),
        local_port=_coerce_int(raw.get("local_port"), DEFAULT_LOCAL_PORT),
        database=raw.get("database") or None,
        hash_workers=_coerce_int(raw.get("hash_workers"), DEFAULT_HASH_WORKERS, minimum=1),
        request_interval=_coerce_float(
            raw.get("request_interval"), DEFAULT_REQUEST_INTERVAL
        ),
        timeout=_coerce_float(raw.get("timeout"), DEFAULT_TIMEOUT),
    )


def save_config(config: Config) -> None:
    config_dir = _resolve_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = {}
    if config.username:
        data["username"] = config.username
    if config.password:
        data["password"] = config.password
    data["client"] = config.client or DEFAULT_CLIENT
    data["client_version"] = config.client_version
    data["server_host"] = config.server_host or DEFAULT_SERVER_HOST
    data["server_port"] = config.server_port
    data["local_port"] = config.local_port
    if config.database:
        data["database"] = config.database
    data["hash_workers"] = config.hash_workers
    data["request_interval"] = config.request_interval
    data["timeout"] = config.timeout
    config_file = _resolve_config_file()
    config_file.write_text(
        json.dumps(data, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def set_username(value: str | None) -> None:
    config = load_config()
    config.username = value
    save_config(config)


def set_password(value: str | None) -> None:
    config = load_config()
    config.password = value
    save_config(config)


def set_database(value: str | None) -> None:
    config = load_config()
    config.database = value
    save_config(config)


def set_hash_workers(value: int) -> None:
    config = load_config()
    config.hash_workers = value
    save_config(config)


def set_client(value: str) -> None:
    config = load_config()
    config.client = value
    save_config(config)


def resolve_credentials(config: Config) -> tuple[str | None, str | None]:
    """Return (username, password), preferring environment variables over stored values."""

    load_dotenv()
    username = (os.getenv(ENV_USERNAME) or "").strip() or config.username
    password = (
        os.getenv(ENV_PASSWORD)
        or os.getenv(LEGACY_PASSWORD_ENV)
        or config.password
    )
    return username, password or None


def resolve_database_path(override: Path | str | None, config: Config | None = None) -> Path:
    """Pick the database path from the CLI flag, environment, config, then default."""

    if override:
        return Path(override).expanduser().resolve()
    env_value = (os.getenv(ENV_DATABASE) or "").strip()
    if env_value:
        return Path(env_value).expanduser().resolve()
    if config is not None and config.database:
        return Path(config.database).expanduser().resolve()
    return DEFAULT_DATABASE
