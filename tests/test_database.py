"""Tests for tableloom.database: IndexDB open/close, tables, and sources."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from tableloom import __version__
from tableloom.database import IndexDB
from tableloom.errors import ConfigError
from tableloom.infrastructure.db import get_meta

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


class TestDefineTable:
    def test_registration_order_is_kept(self, make_db: Callable[..., IndexDB]) -> None:
        db = make_db()
        db.define_table("baz", ("/baz/*.json",))
        assert [t.name for t in db.tables] == ["foo", "bar", "baz"]
        assert db["baz"].patterns == ("/baz/*.json",)

    def test_duplicate_name(self, make_db: Callable[..., IndexDB]) -> None:
        db = make_db()
        with pytest.raises(ConfigError):
            db.define_table("foo", "/foo/*.json")

    @pytest.mark.asyncio()
    async def test_cannot_define_on_open_db(self, make_db: Callable[..., IndexDB]) -> None:
        async with make_db() as db:
            with pytest.raises(ConfigError, match="open database"):
                db.define_table("late", "/late/*.json")


class TestOpenClose:
    @pytest.mark.asyncio()
    async def test_open_creates_db_and_meta(
        self, make_db: Callable[..., IndexDB], tmp_path: Path
    ) -> None:
        async with make_db() as db:
            assert db.is_open
            assert db.conn is not None
            assert get_meta(db.conn, "tableloom_version") == __version__
            assert get_meta(db.conn, "table_version:foo") == "1"
        assert (tmp_path / ".tableloom" / "tableloom.db").exists()

    @pytest.mark.asyncio()
    async def test_close_releases_everything(
        self, make_db: Callable[..., IndexDB], make_archive: Callable[..., Any]
    ) -> None:
        archive = make_archive()
        db = make_db()
        await db.open()
        await db.add_source(archive)
        stream = archive.stream

        await db.close()
        await db.close()

        assert not db.is_open
        assert db.conn is None
        assert db.archives == {}
        assert stream.closed
        with pytest.raises(RuntimeError):
            _ = db.meta
        with pytest.raises(RuntimeError):
            _ = db["foo"].store

    @pytest.mark.asyncio()
    async def test_open_twice_is_noop(self, make_db: Callable[..., IndexDB]) -> None:
        db = make_db()
        await db.open()
        conn = db.conn
        await db.open()
        assert db.conn is conn
        await db.close()

    @pytest.mark.asyncio()
    async def test_from_project_reads_config(
        self, tmp_path: Path, make_archive: Callable[..., Any]
    ) -> None:
        config_dir = tmp_path / ".tableloom"
        config_dir.mkdir()
        (config_dir / "config.yml").write_text("db_path: index/data.db\nretry_interval: 2\n")

        db = IndexDB.from_project(tmp_path, lambda url, local_path: make_archive(url))
        db.define_table("foo", "/tables/foo/*.json")
        async with db:
            assert db.config.retry_interval == 2.0
        assert (tmp_path / "index" / "data.db").exists()


class TestSources:
    @pytest.mark.asyncio()
    async def test_add_twice_returns_same_managed_archive(
        self, make_db: Callable[..., IndexDB], make_archive: Callable[..., Any]
    ) -> None:
        archive = make_archive()
        async with make_db() as db:
            first = await db.add_source(archive)
            second = await db.add_source(archive)
            assert first is second
            assert len(archive.streams) == 1
            assert db.list_sources() == [archive.url]
            assert db.is_source(archive.url)

    @pytest.mark.asyncio()
    async def test_table_file_patterns(self, make_db: Callable[..., IndexDB]) -> None:
        db = make_db(with_bar=False)
        assert db.table_file_patterns == ["/tables/foo/*.json"]
