"""Exception taxonomy for the indexer."""

from __future__ import annotations

import asyncio


class TableloomError(Exception):
    """Base class for all tableloom errors."""


class ArchiveUnreachableError(TableloomError, TimeoutError):
    """The archive could not be reached (network timeout, peer offline)."""


class ConfigError(TableloomError, ValueError):
    """Invalid configuration or table definition."""


class RecordParseError(TableloomError, ValueError):
    """A record file could not be decoded as JSON."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


def is_unreachable(exc: BaseException) -> bool:
    """Return True if *exc* means the archive is temporarily unavailable."""
    # asyncio.TimeoutError is only an alias of the builtin from 3.11 on.
    return isinstance(exc, (TimeoutError, asyncio.TimeoutError))
