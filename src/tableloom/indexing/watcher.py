"""Change watcher: keep indexes live as archives change.

Two reactions per watched archive:

* ``invalidated``: data exists remotely but not locally; the path is
  downloaded, debounced per path.
* ``changed``: a full incremental :func:`index_archive` pass is run.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tableloom.config import DEFAULT_DOWNLOAD_DEBOUNCE
from tableloom.indexing.indexer import index_archive
from tableloom.indexing.signals import SourceError

if TYPE_CHECKING:
    from tableloom.archives.contract import Archive, FileActivity
    from tableloom.archives.managed import ManagedArchive
    from tableloom.database import IndexDB
    from tableloom.indexing.signals import SignalHub

logger = logging.getLogger(__name__)


class DownloadScheduler:
    """Debounced, de-duplicated downloads for one archive.

    The first invalidation of a path arms a timer; repeats within the
    cooldown re-arm it, so a burst collapses into a single download.  While
    a download of a path is in flight, further invalidations of that path
    are ignored.
    """

    def __init__(
        self,
        archive: Archive,
        signals: SignalHub,
        *,
        delay: float = DEFAULT_DOWNLOAD_DEBOUNCE,
    ) -> None:
        self._archive = archive
        self._signals = signals
        self._delay = delay
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._in_flight: set[str] = set()
        self._tasks: set[asyncio.Task[None]] = set()

    def request(self, path: str) -> None:
        """Schedule a download of *path* (must be called from the event loop)."""
        if path in self._in_flight:
            return
        timer = self._timers.pop(path, None)
        if timer is not None:
            timer.cancel()
        loop = asyncio.get_running_loop()
        self._timers[path] = loop.call_later(self._delay, self._fire, path)

    def _fire(self, path: str) -> None:
        self._timers.pop(path, None)
        self._in_flight.add(path)
        task = asyncio.get_running_loop().create_task(self._download(path))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _download(self, path: str) -> None:
        logger.debug("Downloading %s%s", self._archive.url, path)
        try:
            await self._archive.download(path)
        except Exception as exc:
            logger.debug("Download of %s%s failed: %s", self._archive.url, path, exc)
            self._signals.emit(SourceError(url=self._archive.url, error=exc))
        finally:
            self._in_flight.discard(path)

    def is_pending(self, path: str) -> bool:
        return path in self._timers or path in self._in_flight

    async def drain(self) -> None:
        """Wait for downloads already started to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel(self) -> None:
        """Drop pending timers and cancel running downloads."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        for task in self._tasks:
            task.cancel()


def watch_archive(db: IndexDB, managed: ManagedArchive) -> None:
    """Subscribe to *managed*'s activity stream, filtered to the tables' patterns."""
    archive = managed.archive
    if managed.file_events is not None:
        logger.warning(
            "watch_archive() called on archive that is already watched: %s", archive.url
        )
        return
    logger.debug("Watching %s", archive.url)

    downloads = DownloadScheduler(archive, db.signals, delay=db.config.download_debounce)

    def _on_invalidated(activity: FileActivity) -> None:
        downloads.request(activity.path)

    def _on_changed(activity: FileActivity) -> None:
        logger.debug("Change in %s%s, reindexing", archive.url, activity.path)
        db.spawn(_reindex(db, archive), name=f"reindex:{archive.url}")

    file_events = archive.create_file_activity_stream(db.table_file_patterns)
    file_events.add_listener("invalidated", _on_invalidated)
    file_events.add_listener("changed", _on_changed)
    managed.file_events = file_events
    managed.downloads = downloads


async def _reindex(db: IndexDB, archive: Archive) -> None:
    try:
        await index_archive(db, archive)
    except Exception as exc:
        db.signals.emit(SourceError(url=archive.url, error=exc))


def unwatch_archive(db: IndexDB, managed: ManagedArchive) -> None:
    """Detach the activity subscription, if any."""
    if managed.file_events is None:
        return
    logger.debug("Unwatching %s", managed.url)
    managed.file_events.close()
    managed.file_events = None
    if managed.downloads is not None:
        managed.downloads.cancel()
        managed.downloads = None
