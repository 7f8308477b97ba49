"""The archive contract consumed by the indexer.

Archives are implemented elsewhere (replication, storage and version
numbering are theirs).  The indexer only relies on the members below.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


class UpdateType(str, Enum):
    """Kind of change recorded in an archive's history."""

    PUT = "put"
    DELETE = "del"

    @classmethod
    def parse(cls, value: str) -> UpdateType:
        """Accept both ``"del"`` and ``"delete"`` spellings."""
        if value in ("del", "delete"):
            return cls.DELETE
        return cls(value)


@dataclass(frozen=True)
class ArchiveInfo:
    """Live state reported by ``Archive.get_info()``."""

    version: int
    is_owner: bool = False


@dataclass(frozen=True)
class HistoryEntry:
    """One versioned change to a path."""

    path: str
    type: str
    version: int


@dataclass(frozen=True)
class FileActivity:
    """An event delivered by a file activity stream."""

    type: str  # "invalidated" | "changed"
    path: str


@runtime_checkable
class FileActivityStream(Protocol):
    """Subscription to an archive's live file events."""

    def add_listener(self, event_type: str, listener: Callable[[FileActivity], None]) -> None:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Archive(Protocol):
    """A versioned, append-only file tree identified by ``url``."""

    url: str
    local_path: str | None

    async def get_info(self) -> ArchiveInfo:
        ...

    async def history(self, *, start: int, end: int) -> Sequence[HistoryEntry]:
        """Ordered changes with ``start <= version < end``."""
        ...

    async def read_file(self, path: str) -> str | bytes:
        ...

    async def download(self, path: str) -> None:
        ...

    def create_file_activity_stream(self, patterns: Sequence[str]) -> FileActivityStream:
        ...
