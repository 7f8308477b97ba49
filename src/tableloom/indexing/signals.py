"""Typed signals emitted by the indexer, and the hub that delivers them.

Consumers subscribe per event type::

    unsubscribe = db.signals.subscribe(SourceMissing, lambda ev: print(ev.url))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Signal:
    kind: ClassVar[str] = "signal"


@dataclass(frozen=True)
class IndexUpdated(Signal):
    """A table received writes from an indexing pass."""

    kind: ClassVar[str] = "index-updated"

    table: str
    archive_url: str
    version: int


@dataclass(frozen=True)
class IndexesUpdated(Signal):
    """An indexing pass over an archive completed."""

    kind: ClassVar[str] = "indexes-updated"

    archive_url: str
    version: int


@dataclass(frozen=True)
class SourceMissing(Signal):
    kind: ClassVar[str] = "source-missing"

    url: str


@dataclass(frozen=True)
class SourceFound(Signal):
    kind: ClassVar[str] = "source-found"

    url: str


@dataclass(frozen=True)
class SourceError(Signal):
    kind: ClassVar[str] = "source-error"

    url: str
    error: BaseException


@dataclass(frozen=True)
class IndexFailed(Signal):
    """A single record file could not be indexed; siblings are unaffected."""

    kind: ClassVar[str] = "index-error"

    file_url: str
    error: BaseException


S = TypeVar("S", bound=Signal)


class SignalHub:
    """Synchronous observer registry keyed by signal type."""

    def __init__(self) -> None:
        self._handlers: dict[type[Signal], list[Callable[[Any], None]]] = {}

    def subscribe(self, signal_type: type[S], handler: Callable[[S], None]) -> Callable[[], None]:
        """Register *handler* for *signal_type*; returns an unsubscribe callable."""
        handlers = self._handlers.setdefault(signal_type, [])
        handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def emit(self, signal: Signal) -> None:
        """Deliver *signal* to its subscribers in subscription order.

        A failing handler is logged and does not prevent delivery to the rest.
        """
        for handler in list(self._handlers.get(type(signal), ())):
            try:
                handler(signal)
            except Exception:
                logger.exception("Handler for %s signal failed", signal.kind)
