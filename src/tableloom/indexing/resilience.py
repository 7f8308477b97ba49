"""Retry loop for archives whose first indexing pass failed."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tableloom.errors import is_unreachable
from tableloom.indexing.indexer import index_archive
from tableloom.indexing.signals import SourceError, SourceFound, SourceMissing
from tableloom.indexing.watcher import watch_archive

if TYPE_CHECKING:
    from tableloom.archives.managed import ManagedArchive
    from tableloom.database import IndexDB

logger = logging.getLogger(__name__)


def on_fail_initial_index(db: IndexDB, managed: ManagedArchive, exc: BaseException) -> None:
    """Report a failed initial pass; keep looking for unreachable archives.

    Unreachable archives get ``source-missing`` and a background retry task
    (one per archive URL, kept in ``db.retry_tasks``).  Any other error is
    reported once as ``source-error``.
    """
    if not is_unreachable(exc):
        db.signals.emit(SourceError(url=managed.url, error=exc))
        return

    logger.debug("Starting retry loop for %s", managed.url)
    db.signals.emit(SourceMissing(url=managed.url))

    previous = db.retry_tasks.pop(managed.url, None)
    if previous is not None:
        previous.cancel()
    task = asyncio.get_running_loop().create_task(
        _retry_until_found(db, managed), name=f"retry:{managed.url}"
    )
    db.retry_tasks[managed.url] = task
    task.add_done_callback(lambda done: _forget(db, managed.url, done))


def _forget(db: IndexDB, url: str, task: asyncio.Task[None]) -> None:
    if db.retry_tasks.get(url) is task:
        del db.retry_tasks[url]


def is_still_wanted(db: IndexDB, managed: ManagedArchive) -> bool:
    """True while the database is open and *managed* is still registered."""
    return db.is_open and db.archives.get(managed.url) is managed


async def _retry_until_found(db: IndexDB, managed: ManagedArchive) -> None:
    while True:
        await asyncio.sleep(db.config.retry_interval)
        if not is_still_wanted(db, managed):
            logger.debug("Retry loop for %s stopped: source no longer wanted", managed.url)
            return
        logger.debug("Retrying %s", managed.url)
        try:
            await index_archive(db, managed.archive)
            break
        except Exception as exc:
            if not is_unreachable(exc):
                logger.debug("Retry of %s failed, giving up: %s", managed.url, exc)
                return

    if not is_still_wanted(db, managed):
        logger.debug("Source %s was removed during its retry pass", managed.url)
        return
    logger.debug("Source %s found", managed.url)
    db.signals.emit(SourceFound(url=managed.url))
    watch_archive(db, managed)
