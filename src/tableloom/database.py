"""IndexDB: the set of tables, their SQLite store, and the managed archives."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from tableloom import __version__
from tableloom.config import IndexerConfig, load_config
from tableloom.errors import ConfigError
from tableloom.indexing.lifecycle import (
    add_archive,
    load_archives,
    remove_archive,
    reset_outdated_indexes,
)
from tableloom.indexing.signals import SignalHub
from tableloom.indexing.watcher import unwatch_archive
from tableloom.infrastructure.db import SCHEMA_VERSION, create_schema, get_meta, open_db, set_meta
from tableloom.infrastructure.locks import KeyedLock
from tableloom.infrastructure.store import IndexMetaStore, TableStore
from tableloom.tables.table import Table, TableRegistry, TableSchema

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Callable, Coroutine, Iterable
    from pathlib import Path
    from types import TracebackType

    from tableloom.archives.contract import Archive
    from tableloom.archives.managed import ManagedArchive

    ArchiveFactory = Callable[[str, "str | None"], Archive]

logger = logging.getLogger(__name__)

_TABLE_VERSION_PREFIX = "table_version:"


class IndexDB:
    """Tables indexed from a set of managed archives.

    Define tables with :meth:`define_table` before :meth:`open`; their
    registration order decides which table owns a path matched by several.
    """

    def __init__(self, config: IndexerConfig, archive_factory: ArchiveFactory) -> None:
        self.config = config
        self.archive_factory = archive_factory
        self.tables = TableRegistry()
        self.signals = SignalHub()
        self.locks = KeyedLock()
        self.archives: dict[str, ManagedArchive] = {}
        self.retry_tasks: dict[str, asyncio.Task[None]] = {}
        self.conn: sqlite3.Connection | None = None
        self.is_open = False
        self.is_being_opened = False
        self._meta: IndexMetaStore | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @classmethod
    def from_project(cls, project_root: Path, archive_factory: ArchiveFactory) -> IndexDB:
        """Create an IndexDB configured from ``.tableloom/config.yml``."""
        return cls(load_config(project_root), archive_factory)

    # -- tables ------------------------------------------------------------

    def define_table(
        self,
        name: str,
        patterns: str | Iterable[str],
        *,
        schema: TableSchema | None = None,
        version: int = 1,
    ) -> Table:
        """Register a table.  Must be called before :meth:`open`."""
        if self.is_open or self.is_being_opened:
            raise ConfigError(f"Cannot define table '{name}' on an open database")
        pattern_tuple = (patterns,) if isinstance(patterns, str) else tuple(patterns)
        table = Table(
            name=name,
            patterns=pattern_tuple,
            schema=schema or TableSchema(),
            version=version,
        )
        return self.tables.register(table)

    def __getitem__(self, name: str) -> Table:
        return self.tables.get(name)

    @property
    def table_file_patterns(self) -> list[str]:
        return self.tables.file_patterns

    @property
    def meta(self) -> IndexMetaStore:
        if self._meta is None:
            raise RuntimeError("Database is not open")
        return self._meta

    # -- open / close -------------------------------------------------------

    def _tables_needing_rebuild(self, conn: sqlite3.Connection) -> list[str]:
        """Tables whose declared version differs from the one stored last time."""
        return [
            table.name
            for table in self.tables
            if get_meta(conn, _TABLE_VERSION_PREFIX + table.name) != str(table.version)
        ]

    async def open(self) -> None:
        """Open the store, rebuild outdated tables, and load persisted archives."""
        if self.is_open or self.is_being_opened:
            return
        self.is_being_opened = True
        try:
            db_path = self.config.db_path
            if str(db_path) != ":memory:":
                db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = open_db(db_path)
            create_schema(conn)
            self.conn = conn
            self._meta = IndexMetaStore(conn)
            for table in self.tables:
                table.attach(TableStore(conn, table.name))

            needed = self._tables_needing_rebuild(conn)
            needs_rebuild = await reset_outdated_indexes(self, needed)
            for table in self.tables:
                set_meta(conn, _TABLE_VERSION_PREFIX + table.name, str(table.version))
            set_meta(conn, "schema_version", SCHEMA_VERSION)
            set_meta(conn, "tableloom_version", __version__)
            self.is_open = True
        finally:
            self.is_being_opened = False

        await load_archives(self, needs_rebuild)

    async def close(self) -> None:
        """Stop watching, cancel background work, close the store."""
        if not self.is_open:
            return
        self.is_open = False
        for managed in self.archives.values():
            unwatch_archive(self, managed)

        pending = [*self.retry_tasks.values(), *self._tasks]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self.retry_tasks.clear()
        self._tasks.clear()
        self.archives.clear()

        for table in self.tables:
            table.attach(None)
        self._meta = None
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    async def __aenter__(self) -> IndexDB:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -- sources ------------------------------------------------------------

    async def add_source(self, archive: Archive) -> ManagedArchive:
        """Start indexing *archive*; a no-op if it is already managed."""
        existing = self.archives.get(archive.url)
        if existing is not None:
            return existing
        return await add_archive(self, archive)

    async def remove_source(self, source: Archive | str) -> None:
        """Stop indexing an archive (given as handle or URL) and drop its records."""
        if isinstance(source, str):
            managed = self.archives.get(source)
            archive = managed.archive if managed is not None else self.archive_factory(source, None)
        else:
            archive = source
        await remove_archive(self, archive)

    def list_sources(self) -> list[str]:
        return sorted(self.archives)

    def is_source(self, url: str) -> bool:
        return url in self.archives

    # -- background work ----------------------------------------------------

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
        """Run *coro* as a task owned by this database (cancelled on close)."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait until background reindex tasks started so far have finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
