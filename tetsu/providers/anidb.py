"""AniDB UDP API backend for Tetsu."""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass, field
from typing import Mapping

from ..config import (
    DEFAULT_CLIENT,
    DEFAULT_CLIENT_VERSION,
    DEFAULT_LOCAL_PORT,
    DEFAULT_REQUEST_INTERVAL,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    DEFAULT_TIMEOUT,
    Config,
    resolve_credentials,
)
from ..errors import MetadataServiceError
from ..models import AniFile, EntityKind, entity_from_fields
from ..text import Messages
from .base import LookupResult, LookupStatus

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = 3
# fid first, then aid eid gid state | size ed2k colour-depth | quality source
# audio-codecs audio-bitrates video-codec video-bitrate resolution | dub sub
# length description aired-date
FILE_FMASK = "71C2FEF800"
FILE_AMASK = "00000000"
# aid dateflags year type related-list related-type | romaji kanji english
# short-names | episodes specials air end picname | 18+ | - | characters |
# specials credits other trailer parody counts
ANIME_AMASK = "FCE8BA010080F8"

_COMMANDS: dict[EntityKind, tuple[str, str, int]] = {
    EntityKind.ANIME: ("ANIME", "aid", 230),
    EntityKind.EPISODE: ("EPISODE", "eid", 240),
    EntityKind.GROUP: ("GROUP", "gid", 250),
    EntityKind.FILE: ("FILE", "fid", 220),
}
_EXTRA_PARAMS: dict[EntityKind, dict[str, str]] = {
    EntityKind.ANIME: {"amask": ANIME_AMASK},
    EntityKind.FILE: {"fmask": FILE_FMASK, "amask": FILE_AMASK},
}
_LOGIN_ACCEPTED = {200, 201}
_LOGGED_OUT = {203, 403}
_NOT_FOUND_CODES = {320, 330, 340, 350}
_RETRYABLE_CODES = {602, 604}
_MAX_RETRIES = 2
_RETRY_BASE_DELAY = 4.0
_RETRY_MAX_DELAY = 30.0
_RECV_BUFFER = 65535


@dataclass(slots=True)
class Reply:
    code: int
    text: str
    lines: list[str] = field(default_factory=list)

    @property
    def fields(self) -> list[str]:
        if not self.lines:
            return []
        return [unescape_field(value) for value in self.lines[0].split("|")]


class _RetryableReply(MetadataServiceError):
    def __init__(self, reply: Reply) -> None:
        super().__init__(f"{reply.code} {reply.text}", code=reply.code)
        self.reply = reply


class _RequestTimeout(MetadataServiceError):
    pass


def escape_value(value: object) -> str:
    text = str(value)
    return text.replace("&", "&amp;").replace("\r\n", "<br />").replace("\n", "<br />")


def unescape_field(value: str) -> str:
    return value.replace("<br />", "\n").replace("`", "'")


def build_command(command: str, params: Mapping[str, object]) -> str:
    if not params:
        return command
    encoded = "&".join(f"{key}={escape_value(value)}" for key, value in params.items())
    return f"{command} {encoded}"


def parse_reply(payload: bytes) -> tuple[str | None, Reply]:
    """Split a raw datagram into (tag, Reply). Raises ValueError when malformed."""
    text = payload.decode("utf-8", errors="replace").rstrip("\n")
    header, *lines = text.split("\n")
    parts = header.split(" ", 1)
    reply_tag: str | None = None
    if len(parts) > 1 and parts[0] and not parts[0].isdigit():
        reply_tag = parts[0]
        parts = parts[1].split(" ", 1) if len(parts) > 1 else []
    if not parts or not parts[0].isdigit():
        raise ValueError(header)
    code = int(parts[0])
    message = parts[1] if len(parts) > 1 else ""
    return reply_tag, Reply(code=code, text=message, lines=[line for line in lines if line])


def _sleep(seconds: float) -> None:
    time.sleep(seconds)


def _clock() -> float:
    return time.monotonic()


def _backoff_delay(attempt: int) -> float:
    return min(_RETRY_MAX_DELAY, _RETRY_BASE_DELAY * (2**attempt))


class AniDBClient:
    """Catalog service that speaks the AniDB UDP API.

    Requests are strictly sequential and paced at ``request_interval`` seconds
    apart, as the API bans clients that flood it. Every request carries a tag
    so late replies to a timed-out request are discarded.
    """

    def __init__(
        self,
        *,
        username: str | None,
        password: str | None,
        client: str = DEFAULT_CLIENT,
        client_version: int = DEFAULT_CLIENT_VERSION,
        host: str = DEFAULT_SERVER_HOST,
        port: int = DEFAULT_SERVER_PORT,
        local_port: int = DEFAULT_LOCAL_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        request_interval: float = DEFAULT_REQUEST_INTERVAL,
        sock: socket.socket | None = None,
    ) -> None:
        if not username or not password:
            raise MetadataServiceError(Messages.ERROR_CREDENTIALS_MISSING)
        self.username = username
        self._password = password
        self.client = client
        self.client_version = client_version
        self.address = (host, port)
        self.local_port = local_port
        self.timeout = timeout
        self.request_interval = max(float(request_interval), 0.0)
        self._sock = sock
        self._session: str | None = None
        self._last_sent: float | None = None
        self._tag_counter = 0

    @classmethod
    def from_config(cls, config: Config) -> "AniDBClient":
        username, password = resolve_credentials(config)
        return cls(
            username=username,
            password=password,
            client=config.client,
            client_version=config.client_version,
            host=config.server_host,
            port=config.server_port,
            local_port=config.local_port,
            timeout=config.timeout,
            request_interval=config.request_interval,
        )

    @property
    def session_key(self) -> str | None:
        return self._session

    def __enter__(self) -> "AniDBClient":
        self.login()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def login(self) -> str:
        try:
            reply = self._request(
                "AUTH",
                {
                    "user": self.username,
                    "pass": self._password,
                    "protover": PROTOCOL_VERSION,
                    "client": self.client,
                    "clientver": self.client_version,
                    "enc": "UTF-8",
                },
                authenticated=False,
            )
        except (OSError, ValueError) as exc:
            raise MetadataServiceError(f"{Messages.ERROR_ANIDB_PREFIX}{exc}") from exc
        if reply.code not in _LOGIN_ACCEPTED:
            raise MetadataServiceError(
                Messages.ERROR_LOGIN_FAILED.format(code=reply.code, text=reply.text),
                code=reply.code,
            )
        session = reply.text.split(" ", 1)[0]
        if not session:
            raise MetadataServiceError(
                Messages.ERROR_ANIDB_MALFORMED.format(reply=reply.text), code=reply.code
            )
        self._session = session
        logger.info("session key: %s", session)
        return session

    def logout(self) -> None:
        if self._session is None:
            return
        try:
            reply = self._request("LOGOUT", {})
            if reply.code not in _LOGGED_OUT:
                logger.warning("unexpected logout reply: %s %s", reply.code, reply.text)
        finally:
            self._session = None

    def close(self) -> None:
        """Log out (best effort) and release the socket."""
        try:
            self.logout()
        except (MetadataServiceError, OSError, ValueError) as exc:
            logger.warning("failed to log out of AniDB: %s", exc)
        finally:
            if self._sock is not None:
                self._sock.close()
                self._sock = None

    def fetch_by_id(self, kind: EntityKind, entity_id: int) -> LookupResult:
        command, key, expected = _COMMANDS[kind]
        params: dict[str, object] = {key: entity_id}
        params.update(_EXTRA_PARAMS.get(kind, {}))
        return self._lookup(command, params, expected, kind)

    def fetch_by_content_hash(self, size: int, ed2k: str) -> LookupResult:
        params: dict[str, object] = {
            "size": size,
            "ed2k": ed2k,
            "fmask": FILE_FMASK,
            "amask": FILE_AMASK,
        }
        return self._lookup("FILE", params, 220, EntityKind.FILE)

    def _lookup(
        self,
        command: str,
        params: dict[str, object],
        expected: int,
        kind: EntityKind,
    ) -> LookupResult:
        try:
            reply = self._request(command, params)
        except (_RetryableReply, _RequestTimeout) as exc:
            return LookupResult(
                LookupStatus.TRANSIENT,
                message=f"{Messages.ERROR_ANIDB_PREFIX}{exc}",
                code=exc.code,
            )
        except (OSError, ValueError) as exc:
            return LookupResult(
                LookupStatus.FATAL, message=f"{Messages.ERROR_ANIDB_PREFIX}{exc}"
            )

        if reply.code in _NOT_FOUND_CODES:
            return LookupResult.missing(reply.text, reply.code)
        if reply.code != expected:
            return LookupResult(
                LookupStatus.FATAL,
                message=f"{Messages.ERROR_ANIDB_PREFIX}{reply.code} {reply.text}",
                code=reply.code,
            )
        try:
            entity = entity_from_fields(kind.entity_type, reply.fields)
        except ValueError:
            return LookupResult(
                LookupStatus.FATAL,
                message=Messages.ERROR_ANIDB_MALFORMED.format(reply="\n".join(reply.lines)),
                code=reply.code,
            )
        if isinstance(entity, AniFile) and entity.ed2k:
            entity.ed2k = entity.ed2k.lower()
        return LookupResult.found(entity)

    def _socket(self) -> socket.socket:
        if self._sock is None:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.bind(("", self.local_port))
            self._sock = sock
        self._sock.settimeout(self.timeout)
        return self._sock

    def _pace(self) -> None:
        if self._last_sent is None:
            return
        wait = self.request_interval - (_clock() - self._last_sent)
        if wait > 0:
            _sleep(wait)

    def _next_tag(self) -> str:
        self._tag_counter += 1
        return f"t{self._tag_counter}"

    def _request(
        self,
        command: str,
        params: Mapping[str, object],
        *,
        authenticated: bool = True,
    ) -> Reply:
        """Send one command and wait for its reply, retrying busy/timeout answers.

        Raises _RetryableReply or _RequestTimeout once retries are exhausted.
        """
        attempt = 0
        while True:
            payload = dict(params)
            if authenticated:
                if self._session is None:
                    raise MetadataServiceError(Messages.ERROR_CREDENTIALS_MISSING)
                payload["s"] = self._session
            tag = self._next_tag()
            payload["tag"] = tag
            line = build_command(command, payload)
            try:
                reply = self._exchange(line, tag)
            except (socket.timeout, TimeoutError):
                if attempt < _MAX_RETRIES:
                    logger.debug("%s timed out; retrying", command)
                    _sleep(_backoff_delay(attempt))
                    attempt += 1
                    continue
                raise _RequestTimeout(
                    Messages.ERROR_ANIDB_TIMEOUT.format(attempts=attempt + 1)
                ) from None
            if reply.code in _RETRYABLE_CODES:
                if attempt < _MAX_RETRIES:
                    logger.debug("%s answered %s; retrying", command, reply.code)
                    _sleep(_backoff_delay(attempt))
                    attempt += 1
                    continue
                raise _RetryableReply(reply)
            return reply

    def _exchange(self, line: str, tag: str) -> Reply:
        sock = self._socket()
        self._pace()
        logger.debug("-> %s", line.split(" ", 1)[0])
        sock.sendto(line.encode("utf-8"), self.address)
        self._last_sent = _clock()
        while True:
            data, _addr = sock.recvfrom(_RECV_BUFFER)
            reply_tag, reply = parse_reply(data)
            if reply_tag is not None and reply_tag != tag:
                logger.debug("discarding stale reply %s %s", reply.code, reply.text)
                continue
            logger.debug("<- %s %s", reply.code, reply.text)
            return reply
