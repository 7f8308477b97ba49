"""Indexing domain: dispatcher, incremental indexer, watcher, lifecycle, retry loop.

Note: only the signal types are re-exported here.  The orchestration
modules take an :class:`~tableloom.database.IndexDB` and are imported
directly::

    from tableloom.indexing.indexer import index_archive, unindex_archive
"""

from tableloom.indexing.signals import (
    IndexesUpdated,
    IndexFailed,
    IndexUpdated,
    Signal,
    SignalHub,
    SourceError,
    SourceFound,
    SourceMissing,
)

__all__ = [
    "IndexFailed",
    "IndexUpdated",
    "IndexesUpdated",
    "Signal",
    "SignalHub",
    "SourceError",
    "SourceFound",
    "SourceMissing",
]
