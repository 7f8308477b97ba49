"""Infrastructure domain: SQLite layer, key/value stores, and named locks."""

from tableloom.infrastructure.db import (
    SCHEMA_VERSION,
    create_schema,
    get_meta,
    open_db,
    set_meta,
)
from tableloom.infrastructure.locks import KeyedLock
from tableloom.infrastructure.store import IndexMeta, IndexMetaStore, TableStore

__all__ = [
    "SCHEMA_VERSION",
    "IndexMeta",
    "IndexMetaStore",
    "KeyedLock",
    "TableStore",
    "create_schema",
    "get_meta",
    "open_db",
    "set_meta",
]
