"""Record dispatcher: route one changed file to the table that owns it."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from tableloom.errors import RecordParseError
from tableloom.indexing.signals import IndexFailed

if TYPE_CHECKING:
    from tableloom.archives.contract import Archive, ArchiveInfo
    from tableloom.database import IndexDB

logger = logging.getLogger(__name__)


def _parse_record(path: str, raw: str | bytes) -> Any:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RecordParseError(path, f"not UTF-8: {exc}") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RecordParseError(path, f"invalid JSON: {exc}") from exc


async def read_and_index_file(
    db: IndexDB,
    archive: Archive,
    archive_info: ArchiveInfo,
    path: str,
) -> str | None:
    """Read *path*, validate/preprocess it and store it in the owning table.

    Returns the name of the table touched, or ``None`` when no table owns the
    path or the file could not be indexed.  Failures are reported through an
    :class:`IndexFailed` signal and never raised.
    """
    file_url = archive.url + path
    try:
        record = _parse_record(path, await archive.read_file(path))

        table = db.tables.match(path)
        if table is None:
            return None

        schema = table.schema
        if schema.validator is not None and not schema.validator(record):
            # A record that stops validating is retracted.
            logger.debug("Record %s rejected by %s validator", file_url, table.name)
            await table.store.delete(file_url)
            return table.name

        if schema.preprocess is not None:
            processed = schema.preprocess(record)
            if processed:
                record = processed

        await table.store.put(
            file_url,
            {
                "url": file_url,
                "origin": archive.url,
                "indexedAt": datetime.now(tz=timezone.utc).isoformat(),
                "record": record,
            },
        )
        return table.name
    except Exception as exc:
        logger.debug("Failed to index %s: %s", file_url, exc)
        db.signals.emit(IndexFailed(file_url=file_url, error=exc))
        return None


async def unindex_file(db: IndexDB, archive: Archive, path: str) -> str | None:
    """Delete the stored record for *path* from its owning table."""
    file_url = archive.url + path
    try:
        table = db.tables.match(path)
        if table is None:
            return None
        await table.store.delete(file_url)
        return table.name
    except Exception:
        logger.exception("Failed to unindex %s", file_url)
        return None
