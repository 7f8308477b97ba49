"""Shared test fixtures for tableloom."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import pytest

from tableloom.archives.contract import ArchiveInfo, FileActivity, HistoryEntry
from tableloom.config import IndexerConfig
from tableloom.database import IndexDB
from tableloom.tables.table import TableSchema

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path


class FakeActivityStream:
    """In-memory file activity stream; tests call :meth:`fire`."""

    def __init__(self, patterns: Sequence[str]) -> None:
        self.patterns = list(patterns)
        self.listeners: dict[str, list[Callable[[FileActivity], None]]] = {}
        self.closed = False

    def add_listener(self, event_type: str, listener: Callable[[FileActivity], None]) -> None:
        self.listeners.setdefault(event_type, []).append(listener)

    def close(self) -> None:
        self.closed = True

    def fire(self, event_type: str, path: str) -> None:
        for listener in self.listeners.get(event_type, []):
            listener(FileActivity(type=event_type, path=path))


class FakeArchive:
    """Versioned in-memory archive: every write or delete bumps the version."""

    def __init__(
        self,
        url: str = "dat://alice",
        *,
        local_path: str | None = None,
        is_owner: bool = False,
    ) -> None:
        self.url = url
        self.local_path = local_path
        self.is_owner = is_owner
        self.version = 0
        self.files: dict[str, str] = {}
        self.log: list[HistoryEntry] = []
        self.info_error: BaseException | None = None
        self.history_error: BaseException | None = None
        self.download_error: BaseException | None = None
        self.read_delay = 0.0
        self.downloads: list[str] = []
        self.streams: list[FakeActivityStream] = []
        self.info_calls = 0
        self.history_calls: list[tuple[int, int]] = []

    def write(self, path: str, data: Any) -> int:
        self.version += 1
        self.files[path] = data if isinstance(data, str) else json.dumps(data)
        self.log.append(HistoryEntry(path=path, type="put", version=self.version))
        return self.version

    def delete(self, path: str) -> int:
        self.version += 1
        self.files.pop(path, None)
        self.log.append(HistoryEntry(path=path, type="del", version=self.version))
        return self.version

    async def get_info(self) -> ArchiveInfo:
        self.info_calls += 1
        await asyncio.sleep(0)
        if self.info_error is not None:
            raise self.info_error
        return ArchiveInfo(version=self.version, is_owner=self.is_owner)

    async def history(self, *, start: int, end: int) -> list[HistoryEntry]:
        self.history_calls.append((start, end))
        await asyncio.sleep(0)
        if self.history_error is not None:
            raise self.history_error
        return [entry for entry in self.log if start <= entry.version < end]

    async def read_file(self, path: str) -> str:
        await asyncio.sleep(self.read_delay)
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    async def download(self, path: str) -> None:
        self.downloads.append(path)
        await asyncio.sleep(0)
        if self.download_error is not None:
            raise self.download_error

    def create_file_activity_stream(self, patterns: Sequence[str]) -> FakeActivityStream:
        stream = FakeActivityStream(patterns)
        self.streams.append(stream)
        return stream

    @property
    def stream(self) -> FakeActivityStream:
        return self.streams[-1]


@pytest.fixture()
def config(tmp_path: Path) -> IndexerConfig:
    """Config with short timers so retry and debounce tests run fast."""
    return IndexerConfig.for_path(
        tmp_path / ".tableloom" / "tableloom.db",
        retry_interval=0.02,
        download_debounce=0.05,
    )


@pytest.fixture()
def archives() -> dict[str, FakeArchive]:
    """Registry consulted by the archive factory when archives are reloaded."""
    return {}


@pytest.fixture()
def make_archive(archives: dict[str, FakeArchive]) -> Callable[..., FakeArchive]:
    def _make(url: str = "dat://alice", **kwargs: Any) -> FakeArchive:
        archive = FakeArchive(url, **kwargs)
        archives[url] = archive
        return archive

    return _make


@pytest.fixture()
def make_db(
    config: IndexerConfig,
    archives: dict[str, FakeArchive],
) -> Callable[..., IndexDB]:
    """Build an IndexDB with tables ``foo`` and ``bar`` (not yet opened)."""

    def _factory(url: str, local_path: str | None) -> FakeArchive:
        archive = archives.get(url)
        if archive is None:
            archive = archives[url] = FakeArchive(url, local_path=local_path)
        return archive

    def _make(
        *,
        foo_schema: TableSchema | None = None,
        foo_version: int = 1,
        with_bar: bool = True,
    ) -> IndexDB:
        db = IndexDB(config, _factory)
        db.define_table("foo", "/tables/foo/*.json", schema=foo_schema, version=foo_version)
        if with_bar:
            db.define_table("bar", ["/tables/bar/*.json", "/tables/*/shared.json"])
        return db

    return _make
