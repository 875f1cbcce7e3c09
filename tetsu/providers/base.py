"""Contract between the cache core and a remote catalog service."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from ..errors import MetadataServiceError
from ..models import EntityKind


class LookupStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    FATAL = "fatal"


@dataclass(frozen=True, slots=True)
class LookupResult:
    """Tagged outcome of a catalog request.

    ``NOT_FOUND`` is a normal answer ("the catalog does not know this"), the
    caller decides whether to skip. ``TRANSIENT`` and ``FATAL`` both mean the
    session could not produce an answer.
    """

    status: LookupStatus
    value: Any = None
    message: str = ""
    code: int | None = None

    @property
    def ok(self) -> bool:
        return self.status == LookupStatus.OK

    @property
    def not_found(self) -> bool:
        return self.status == LookupStatus.NOT_FOUND

    def raise_for_status(self) -> None:
        if self.status in (LookupStatus.TRANSIENT, LookupStatus.FATAL):
            raise MetadataServiceError(self.message or self.status.value, code=self.code)

    @classmethod
    def found(cls, value: Any) -> "LookupResult":
        return cls(LookupStatus.OK, value=value)

    @classmethod
    def missing(cls, message: str = "", code: int | None = None) -> "LookupResult":
        return cls(LookupStatus.NOT_FOUND, message=message, code=code)


class MetadataService(Protocol):
    """Minimal protocol for components that can look up catalog entities."""

    def fetch_by_id(self, kind: EntityKind, entity_id: int) -> LookupResult:
        """Return the entity of *kind* with *entity_id*."""
        raise NotImplementedError  # pragma: no cover

    def fetch_by_content_hash(self, size: int, ed2k: str) -> LookupResult:
        """Return the file record matching *size* and *ed2k*."""
        raise NotImplementedError  # pragma: no cover

    def close(self) -> None:
        """Tear down the remote session."""
        raise NotImplementedError  # pragma: no cover
