"""Archives domain: the contract every indexed source implements."""

from tableloom.archives.contract import (
    Archive,
    ArchiveInfo,
    FileActivity,
    FileActivityStream,
    HistoryEntry,
    UpdateType,
)
from tableloom.archives.managed import ManagedArchive

__all__ = [
    "Archive",
    "ArchiveInfo",
    "FileActivity",
    "FileActivityStream",
    "HistoryEntry",
    "ManagedArchive",
    "UpdateType",
]
