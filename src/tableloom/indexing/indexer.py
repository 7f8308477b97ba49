"""Versioned incremental indexer: turn a version range into table mutations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tableloom.archives.contract import UpdateType
from tableloom.indexing.dispatcher import read_and_index_file, unindex_file
from tableloom.indexing.signals import IndexesUpdated, IndexUpdated

if TYPE_CHECKING:
    from tableloom.archives.contract import Archive, ArchiveInfo
    from tableloom.database import IndexDB
    from tableloom.tables.table import RecordFile


logger = logging.getLogger(__name__)


def lock_key(archive_url: str) -> str:
    return f"index:{archive_url}"


@dataclass(frozen=True)
class Update:
    """The latest change to one path within a scanned version range."""

    path: str
    type: UpdateType
    version: int


@dataclass
class IndexPassResult:
    """Summary of one indexing pass over an archive."""

    archive_url: str
    start_version: int
    end_version: int
    updates_applied: int = 0
    tables_updated: list[str] = field(default_factory=list)
    nothing_changed: bool = False


async def index_archive(
    db: IndexDB,
    archive: Archive,
    needs_rebuild: bool = False,
) -> IndexPassResult | None:
    """Apply every change in ``(watermark, current version]`` and advance the watermark.

    At most one pass (or unindex) runs per archive at a time.  Returns
    ``None`` when the database is not usable or *archive* is no longer a
    source, otherwise a summary of the pass.  Archive errors propagate to the caller.
    """
    logger.debug("index_archive %s needs_rebuild=%s", archive.url, needs_rebuild)
    async with db.locks.hold(lock_key(archive.url)):
        if not db.is_open and not db.is_being_opened:
            return None
        if db.conn is None:
            logger.warning("index_archive called on corrupted db (%s)", archive.url)
            return None
        if archive.url not in db.archives:
            logger.debug("index_archive skipped, %s is not a source", archive.url)
            return None

        index_meta, archive_info = await asyncio.gather(
            db.meta.get(archive.url),
            archive.get_info(),
        )
        watermark = index_meta.version if index_meta is not None else 0

        if watermark >= archive_info.version:
            logger.debug("No index needed for %s (version %d)", archive.url, watermark)
            return IndexPassResult(
                archive_url=archive.url,
                start_version=watermark,
                end_version=watermark,
                nothing_changed=True,
            )
        logger.debug(
            "Indexing %s from version %d to %d", archive.url, watermark, archive_info.version
        )

        updates = await scan_archive_history_for_updates(
            db,
            archive,
            start=watermark + 1,
            end=archive_info.version + 1,
        )
        results = await apply_updates(db, archive, archive_info, updates)
        logger.debug("Applied %d updates from %s", len(results), archive.url)

        # One watermark write per pass, after every record write resolved.
        await db.meta.set_version(archive.url, archive_info.version)

        updated_tables = list(dict.fromkeys(name for name in results if name))
        for table_name in updated_tables:
            db.tables.get(table_name).signals.emit(
                IndexUpdated(
                    table=table_name,
                    archive_url=archive.url,
                    version=archive_info.version,
                )
            )
        db.signals.emit(IndexesUpdated(archive_url=archive.url, version=archive_info.version))

        return IndexPassResult(
            archive_url=archive.url,
            start_version=watermark,
            end_version=archive_info.version,
            updates_applied=len(results),
            tables_updated=updated_tables,
        )


async def unindex_archive(db: IndexDB, archive: Archive) -> int:
    """Delete every record generated from *archive* and its meta entry.

    Returns the number of records deleted.
    """
    async with db.locks.hold(lock_key(archive.url)):
        record_files = await scan_archive_for_records(db, archive)
        await asyncio.gather(
            *(match.table.store.delete(match.record_url) for match in record_files)
        )
        await db.meta.delete(archive.url)
        return len(record_files)


async def scan_archive_history_for_updates(
    db: IndexDB,
    archive: Archive,
    *,
    start: int,
    end: int,
) -> dict[str, Update]:
    """Return the latest change to each table-matching path in ``[start, end)``."""
    history = await archive.history(start=start, end=end)
    patterns = db.tables.file_patterns
    updates: dict[str, Update] = {}
    for entry in history:
        if not db.tables.matches_any(entry.path, patterns):
            continue
        try:
            update_type = UpdateType.parse(entry.type)
        except ValueError:
            logger.warning(
                "Skipping %s%s at version %d: unknown change type %r",
                archive.url,
                entry.path,
                entry.version,
                entry.type,
            )
            continue
        # Later entries supersede earlier ones for the same path.
        updates[entry.path] = Update(path=entry.path, type=update_type, version=entry.version)
    return updates


async def scan_archive_for_records(db: IndexDB, archive: Archive) -> list[RecordFile]:
    """List the stored records of every table that originate from *archive*."""
    per_table = await asyncio.gather(
        *(table.list_record_files(archive.url) for table in db.tables)
    )
    return [record_file for record_files in per_table for record_file in record_files]


async def apply_updates(
    db: IndexDB,
    archive: Archive,
    archive_info: ArchiveInfo,
    updates: dict[str, Update],
) -> list[str | None]:
    """Apply *updates* concurrently; returns the table touched by each."""

    async def _apply(update: Update) -> str | None:
        if update.type is UpdateType.DELETE:
            return await unindex_file(db, archive, update.path)
        return await read_and_index_file(db, archive, archive_info, update.path)

    return list(await asyncio.gather(*(_apply(update) for update in updates.values())))
