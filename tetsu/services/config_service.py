"""Logic helpers for the `tetsu config` command."""

from __future__ import annotations

from dataclasses import dataclass

from ..config import (
    Config,
    load_config,
    set_client,
    set_database,
    set_hash_workers,
    set_password,
    set_username,
)
from ..utils import ensure_positive


@dataclass(slots=True)
class ConfigUpdateResult:
    username_set: bool = False
    password_set: bool = False
    password_cleared: bool = False
    database_set: bool = False
    hash_workers_set: bool = False
    client_set: bool = False

    @property
    def changed(self) -> bool:
        return any(
            (
                self.username_set,
                self.password_set,
                self.password_cleared,
                self.database_set,
                self.hash_workers_set,
                self.client_set,
            )
        )


def apply_config_updates(
    *,
    username: str | None = None,
    password: str | None = None,
    clear_password: bool = False,
    database: str | None = None,
    hash_workers: int | None = None,
    client: str | None = None,
) -> ConfigUpdateResult:
    """Apply config mutations and report which fields were updated."""

    result = ConfigUpdateResult()
    if username is not None:
        set_username(username.strip() or None)
        result.username_set = True
    if password is not None:
        set_password(password)
        result.password_set = True
    if clear_password:
        set_password(None)
        result.password_cleared = True
    if database is not None:
        set_database(database.strip() or None)
        result.database_set = True
    if hash_workers is not None:
        set_hash_workers(ensure_positive(hash_workers, "hash_workers"))
        result.hash_workers_set = True
    if client is not None:
        set_client(client.strip())
        result.client_set = True
    return result


def get_config_snapshot() -> Config:
    return load_config()
