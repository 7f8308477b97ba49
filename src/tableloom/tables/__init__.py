"""Tables domain: table definitions and path ownership."""

from tableloom.tables.table import Record, RecordFile, Table, TableRegistry, TableSchema

__all__ = [
    "Record",
    "RecordFile",
    "Table",
    "TableRegistry",
    "TableSchema",
]
