"""Indexer configuration read from ``.tableloom/config.yml``."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tableloom.errors import ConfigError

CONFIG_DIR = ".tableloom"
CONFIG_FILE = "config.yml"

DEFAULT_DB_NAME = "tableloom.db"
DEFAULT_RETRY_INTERVAL = 30.0
DEFAULT_DOWNLOAD_DEBOUNCE = 1.0


@dataclass(frozen=True)
class IndexerConfig:
    """Runtime settings for an :class:`~tableloom.database.IndexDB`."""

    db_path: Path
    retry_interval: float = DEFAULT_RETRY_INTERVAL
    download_debounce: float = DEFAULT_DOWNLOAD_DEBOUNCE

    @classmethod
    def for_path(cls, db_path: Path | str, **overrides: Any) -> IndexerConfig:
        """Build a config for an explicit database path (no YAML lookup)."""
        return cls(db_path=Path(db_path), **overrides)


def _positive_float(config: dict[str, Any], key: str, default: float) -> float:
    value = config.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{key}' must be a number, got {value!r}")
    if value <= 0:
        raise ConfigError(f"'{key}' must be positive, got {value!r}")
    return float(value)


def load_config(project_root: Path) -> IndexerConfig:
    """Load ``.tableloom/config.yml`` under *project_root*.

    Missing file or empty document yields the defaults.  Relative
    ``db_path`` values are resolved against *project_root*.

    Raises
    ------
    ConfigError
        If the file is not a YAML mapping or a value has the wrong type.
    """
    import yaml

    config_dir = project_root / CONFIG_DIR
    config_path = config_dir / CONFIG_FILE

    raw: Any = {}
    if config_path.exists():
        try:
            raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"{config_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path}: expected a mapping at top level")

    db_value = raw.get("db_path")
    if db_value is None:
        db_path = config_dir / DEFAULT_DB_NAME
    elif isinstance(db_value, str) and db_value:
        db_path = Path(db_value)
        if not db_path.is_absolute():
            db_path = project_root / db_path
    else:
        raise ConfigError(f"'db_path' must be a non-empty string, got {db_value!r}")

    return IndexerConfig(
        db_path=db_path,
        retry_interval=_positive_float(raw, "retry_interval", DEFAULT_RETRY_INTERVAL),
        download_debounce=_positive_float(raw, "download_debounce", DEFAULT_DOWNLOAD_DEBOUNCE),
    )
