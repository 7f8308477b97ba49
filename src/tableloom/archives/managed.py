"""Per-archive state held while an archive is under management."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tableloom.archives.contract import Archive, FileActivityStream
    from tableloom.indexing.watcher import DownloadScheduler


@dataclass(eq=False)
class ManagedArchive:
    """A live archive handle plus what the indexer tracks about it."""

    archive: Archive
    is_writable: bool = False
    local_path: str | None = None
    file_events: FileActivityStream | None = None
    downloads: DownloadScheduler | None = None

    @property
    def url(self) -> str:
        return self.archive.url

    @property
    def is_watched(self) -> bool:
        return self.file_events is not None
