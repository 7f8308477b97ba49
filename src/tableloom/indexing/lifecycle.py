"""Archive lifecycle: bring archives under management and release them."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tableloom.archives.managed import ManagedArchive
from tableloom.indexing.indexer import index_archive, unindex_archive
from tableloom.indexing.resilience import on_fail_initial_index
from tableloom.indexing.watcher import unwatch_archive, watch_archive
from tableloom.infrastructure.store import IndexMeta

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tableloom.archives.contract import Archive
    from tableloom.database import IndexDB

logger = logging.getLogger(__name__)


async def _initial_index(db: IndexDB, managed: ManagedArchive, needs_rebuild: bool) -> None:
    try:
        await index_archive(db, managed.archive, needs_rebuild)
        watch_archive(db, managed)
    except Exception as exc:
        on_fail_initial_index(db, managed, exc)


async def load_archives(db: IndexDB, needs_rebuild: bool = False) -> None:
    """Register every persisted archive and run their initial passes concurrently.

    A failing archive is handed to the retry loop and never affects the
    others.  Returns once every initial pass has settled.
    """
    logger.debug("load_archives needs_rebuild=%s", needs_rebuild)
    passes = []
    for index_meta in await db.meta.all():
        logger.debug("Loading archive %s (%s)", index_meta.url, index_meta.local_path)
        archive = db.archive_factory(index_meta.url, index_meta.local_path)
        managed = ManagedArchive(
            archive=archive,
            is_writable=index_meta.is_writable,
            local_path=index_meta.local_path,
        )
        db.archives[archive.url] = managed
        passes.append(_initial_index(db, managed, needs_rebuild))
    await asyncio.gather(*passes)
    logger.debug("load_archives done (%d archives)", len(passes))


async def add_archive(db: IndexDB, archive: Archive) -> ManagedArchive:
    """Start managing *archive*: persist its meta with watermark 0, index, watch."""
    logger.debug("add_archive %s", archive.url)
    info = await archive.get_info()
    managed = ManagedArchive(
        archive=archive,
        is_writable=info.is_owner,
        local_path=archive.local_path,
    )
    await db.meta.put(
        IndexMeta(
            url=archive.url,
            version=0,
            is_writable=managed.is_writable,
            local_path=managed.local_path,
        )
    )
    db.archives[archive.url] = managed
    await _initial_index(db, managed, False)
    return managed


async def remove_archive(db: IndexDB, archive: Archive) -> None:
    """Stop managing *archive*, deleting its records and meta entry.

    Safe for archives that were never (fully) indexed.
    """
    logger.debug("remove_archive %s", archive.url)
    managed = db.archives.pop(archive.url, None)
    await unindex_archive(db, archive)
    if managed is not None:
        unwatch_archive(db, managed)


async def reset_outdated_indexes(db: IndexDB, needed_rebuilds: Sequence[str]) -> bool:
    """Clear every table and reset every watermark when any table needs a rebuild.

    The reset is global even if only some tables changed.  Returns whether
    a reset happened.
    """
    if not needed_rebuilds:
        return False
    logger.debug("reset_outdated_indexes: %d tables need a rebuild", len(needed_rebuilds))
    logger.debug("Tables to rebuild: %s", ", ".join(needed_rebuilds))

    # TODO clear per table once watermarks are tracked per (archive, table).
    for table in db.tables:
        logger.debug("Clearing %s", table.name)
        await table.store.clear()

    for index_meta in await db.meta.all():
        await db.meta.set_version(index_meta.url, 0)
    return True
