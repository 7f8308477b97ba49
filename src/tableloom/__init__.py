"""Tableloom - incremental table indexes over versioned archives."""

__version__ = "0.3.0"

from tableloom.config import IndexerConfig, load_config  # noqa: E402
from tableloom.database import IndexDB  # noqa: E402
from tableloom.errors import (  # noqa: E402
    ArchiveUnreachableError,
    ConfigError,
    RecordParseError,
    TableloomError,
)
from tableloom.tables.table import Table, TableSchema  # noqa: E402

__all__ = [
    "ArchiveUnreachableError",
    "ConfigError",
    "IndexDB",
    "IndexerConfig",
    "RecordParseError",
    "Table",
    "TableSchema",
    "TableloomError",
    "__version__",
    "load_config",
]
