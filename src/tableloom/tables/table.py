"""Table definitions and first-match-wins path dispatch."""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from tableloom.errors import ConfigError
from tableloom.indexing.signals import SignalHub

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from tableloom.infrastructure.store import TableStore

Record = dict[str, Any]


@dataclass(frozen=True)
class TableSchema:
    """Optional record hooks.

    ``validator`` returns False to reject a record; ``preprocess`` may
    return a replacement record (a falsy result keeps the original).
    """

    validator: Callable[[Any], bool] | None = None
    preprocess: Callable[[Any], Any] | None = None


@dataclass(frozen=True)
class RecordFile:
    """A stored record and the table that owns it."""

    table: Table
    record_url: str


@dataclass(eq=False)
class Table:
    """A named destination index with its own store and path patterns.

    ``version`` is bumped by the application whenever the shape of the
    stored records changes; a changed version triggers a rebuild on open.

    Patterns are ``fnmatch`` globs matched against the whole path, so ``*``
    also matches ``/``: ``/tables/foo/*.json`` owns ``/tables/foo/sub/x.json``.
    Put more specific tables first when that matters.
    """

    name: str
    patterns: tuple[str, ...]
    schema: TableSchema = field(default_factory=TableSchema)
    version: int = 1
    signals: SignalHub = field(default_factory=SignalHub)
    _store: TableStore | None = field(default=None, repr=False)

    @property
    def store(self) -> TableStore:
        if self._store is None:
            raise RuntimeError(f"Table '{self.name}' is not attached to an open database")
        return self._store

    def attach(self, store: TableStore | None) -> None:
        self._store = store

    def is_record_file(self, path: str) -> bool:
        """Return True if *path* belongs to this table."""
        return any(fnmatch.fnmatchcase(path, pattern) for pattern in self.patterns)

    async def list_record_files(self, archive_url: str) -> list[RecordFile]:
        """Records currently stored in this table that came from *archive_url*."""
        keys = await self.store.keys(origin=archive_url)
        return [RecordFile(table=self, record_url=key) for key in keys]


class TableRegistry:
    """Tables in registration order.

    Registration order is the dispatch contract: a path matching several
    tables belongs to the one registered first.
    """

    def __init__(self) -> None:
        self._tables: list[Table] = []

    def register(self, table: Table) -> Table:
        if not table.patterns:
            raise ConfigError(f"Table '{table.name}' declares no path patterns")
        if any(existing.name == table.name for existing in self._tables):
            raise ConfigError(f"Table '{table.name}' is already defined")
        self._tables.append(table)
        return table

    def match(self, path: str) -> Table | None:
        """Return the first registered table owning *path*, if any."""
        for table in self._tables:
            if table.is_record_file(path):
                return table
        return None

    def get(self, name: str) -> Table:
        for table in self._tables:
            if table.name == name:
                return table
        raise KeyError(name)

    @property
    def file_patterns(self) -> list[str]:
        """Union of every table's patterns, de-duplicated, in registration order."""
        seen: dict[str, None] = {}
        for table in self._tables:
            for pattern in table.patterns:
                seen.setdefault(pattern, None)
        return list(seen)

    def matches_any(self, path: str, patterns: Sequence[str] | None = None) -> bool:
        """Cheap pre-filter used while scanning history."""
        candidates = self.file_patterns if patterns is None else patterns
        return any(fnmatch.fnmatchcase(path, pattern) for pattern in candidates)

    def __iter__(self) -> Iterator[Table]:
        return iter(self._tables)

    def __len__(self) -> int:
        return len(self._tables)
