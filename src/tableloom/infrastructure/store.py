"""Key/value stores backed by the SQLite ``records`` and ``index_meta`` tables.

The indexer treats both stores as asynchronous collaborators.  The SQLite
implementation completes synchronously; the coroutine signatures keep the
calling code independent of the backend.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import sqlite3


@dataclass
class IndexMeta:
    """Durable bookkeeping for one managed archive.

    ``version`` is the watermark: the highest archive version whose
    changes are fully reflected in every table.
    """

    url: str
    version: int = 0
    is_writable: bool = False
    local_path: str | None = None


class TableStore:
    """Per-table key -> JSON value store."""

    def __init__(self, conn: sqlite3.Connection, table_name: str) -> None:
        self._conn = conn
        self.table_name = table_name

    async def get(self, key: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT value FROM records WHERE table_name = ? AND key = ?",
            (self.table_name, key),
        ).fetchone()
        if row is None:
            return None
        value: dict[str, Any] = json.loads(row["value"])
        return value

    async def put(self, key: str, value: dict[str, Any]) -> None:
        """Insert or overwrite *key*.  ``value["origin"]`` is indexed separately."""
        self._conn.execute(
            "INSERT INTO records (table_name, key, origin, value) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(table_name, key) DO UPDATE SET "
            "origin = excluded.origin, value = excluded.value",
            (self.table_name, key, str(value.get("origin", "")), json.dumps(value)),
        )
        self._conn.commit()

    async def delete(self, key: str) -> None:
        """Delete *key*; deleting an absent key is not an error."""
        self._conn.execute(
            "DELETE FROM records WHERE table_name = ? AND key = ?",
            (self.table_name, key),
        )
        self._conn.commit()

    async def clear(self) -> None:
        self._conn.execute("DELETE FROM records WHERE table_name = ?", (self.table_name,))
        self._conn.commit()

    async def keys(self, *, origin: str | None = None) -> list[str]:
        """Return stored keys, optionally only those produced by *origin*."""
        if origin is None:
            rows = self._conn.execute(
                "SELECT key FROM records WHERE table_name = ? ORDER BY key",
                (self.table_name,),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT key FROM records WHERE table_name = ? AND origin = ? ORDER BY key",
                (self.table_name, origin),
            ).fetchall()
        return [row["key"] for row in rows]

    async def count(self) -> int:
        row = self._conn.execute(
            "SELECT count(*) FROM records WHERE table_name = ?", (self.table_name,)
        ).fetchone()
        return int(row[0])


class IndexMetaStore:
    """Store of :class:`IndexMeta` rows keyed by archive URL."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @staticmethod
    def _from_row(row: sqlite3.Row) -> IndexMeta:
        return IndexMeta(
            url=row["url"],
            version=int(row["version"]),
            is_writable=bool(row["is_writable"]),
            local_path=row["local_path"],
        )

    async def get(self, url: str) -> IndexMeta | None:
        row = self._conn.execute("SELECT * FROM index_meta WHERE url = ?", (url,)).fetchone()
        return self._from_row(row) if row is not None else None

    async def put(self, meta: IndexMeta) -> None:
        self._conn.execute(
            "INSERT INTO index_meta (url, version, is_writable, local_path) "
            "VALUES (?, ?, ?, ?) "
            "ON CONFLICT(url) DO UPDATE SET version = excluded.version, "
            "is_writable = excluded.is_writable, local_path = excluded.local_path",
            (meta.url, meta.version, int(meta.is_writable), meta.local_path),
        )
        self._conn.commit()

    async def set_version(self, url: str, version: int) -> None:
        """Record *version* for *url*.  Does nothing if *url* has no row."""
        self._conn.execute("UPDATE index_meta SET version = ? WHERE url = ?", (version, url))
        self._conn.commit()

    async def delete(self, url: str) -> None:
        self._conn.execute("DELETE FROM index_meta WHERE url = ?", (url,))
        self._conn.commit()

    async def all(self) -> list[IndexMeta]:
        rows = self._conn.execute("SELECT * FROM index_meta ORDER BY url").fetchall()
        return [self._from_row(row) for row in rows]
