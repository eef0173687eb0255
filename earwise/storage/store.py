"""
Snapshot Stores.

Persist JSON-compatible payloads under string keys:

    domain:<name>   one DomainSnapshot per practice domain
    preferences     PreferencesRecord
    stats           StatsRecord

Backends:
- MemoryStore: process-local dictionary (tests, dry runs)
- JsonFileStore: one JSON file per key under the data directory
- SqlSnapshotStore: a single ``snapshots`` table through SQLAlchemy Core

Reads return None for missing keys; undecodable payloads are logged and
treated as missing. Write failures are raised as StorageError.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from loguru import logger
from sqlalchemy import Column, DateTime, MetaData, String, Table, Text, create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError

from ..config import Settings
from ..errors import StorageError

PREFERENCES_KEY = "preferences"
STATS_KEY = "stats"


def domain_key(name: str) -> str:
    return f"domain:{name}"


class SnapshotStore(Protocol):
    """Key/value persistence for JSON-compatible dictionaries."""

    def save(self, key: str, payload: dict[str, Any]) -> None: ...

    def load(self, key: str) -> dict[str, Any] | None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


# =============================================================================
# Memory
# =============================================================================


class MemoryStore:
    """In-process store. Payloads are copied through JSON so callers can't alias them."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def save(self, key: str, payload: dict[str, Any]) -> None:
        self._data[key] = json.dumps(payload)

    def load(self, key: str) -> dict[str, Any] | None:
        text = self._data.get(key)
        return None if text is None else json.loads(text)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return list(self._data)


# =============================================================================
# JSON Files
# =============================================================================


class JsonFileStore:
    """
    One ``<key>.json`` file per snapshot.

    Files are written to a temporary sibling and renamed into place, so a
    crash mid-write leaves the previous snapshot intact.
    """

    DEFAULT_DIR = Path.home() / ".earwise"

    def __init__(self, data_dir: Path | None = None):
        """
        Initialize the store.

        Args:
            data_dir: Directory for snapshot files (defaults to ~/.earwise)
        """
        self.data_dir = data_dir or self.DEFAULT_DIR
        self.data_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"JsonFileStore initialized at {self.data_dir}")

    def _path(self, key: str) -> Path:
        # domain:intervals -> domain-intervals.json
        safe = re.sub(r"[^A-Za-z0-9_.-]", "-", key)
        return self.data_dir / f"{safe}.json"

    def save(self, key: str, payload: dict[str, Any]) -> None:
        path = self._path(key)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{path.stem}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"Could not write {path}: {exc}") from exc

    def load(self, key: str) -> dict[str, Any] | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Unreadable snapshot {path}: {exc}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Snapshot {path} is not an object; ignoring")
            return None
        return data

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Could not delete {key}: {exc}") from exc

    def clear(self) -> None:
        for path in self.data_dir.glob("*.json"):
            try:
                path.unlink()
            except OSError as exc:
                raise StorageError(f"Could not delete {path}: {exc}") from exc


# =============================================================================
# SQL
# =============================================================================

metadata = MetaData()

snapshots = Table(
    "snapshots",
    metadata,
    Column("key", String(64), primary_key=True),
    Column("payload", Text, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)


class SqlSnapshotStore:
    """Snapshots as rows of a ``snapshots(key, payload, updated_at)`` table."""

    def __init__(self, url: str, echo: bool = False):
        """
        Initialize the store and create the table if needed.

        Args:
            url: Any SQLAlchemy database URL
            echo: Log emitted SQL
        """
        self.engine = create_engine(url, echo=echo, pool_pre_ping=True)
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not initialize snapshot table: {exc}") from exc
        logger.debug(f"SqlSnapshotStore initialized at {self.engine.url}")

    def save(self, key: str, payload: dict[str, Any]) -> None:
        try:
            text = json.dumps(payload)
            with self.engine.begin() as conn:
                conn.execute(delete(snapshots).where(snapshots.c.key == key))
                conn.execute(snapshots.insert().values(key=key, payload=text, updated_at=datetime.now()))
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            raise StorageError(f"Could not write snapshot '{key}': {exc}") from exc

    def load(self, key: str) -> dict[str, Any] | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(select(snapshots.c.payload).where(snapshots.c.key == key)).first()
        except SQLAlchemyError as exc:
            logger.warning(f"Could not read snapshot '{key}': {exc}")
            return None
        if row is None:
            return None
        try:
            data = json.loads(row.payload)
        except json.JSONDecodeError as exc:
            logger.warning(f"Corrupt snapshot '{key}': {exc}")
            return None
        return data if isinstance(data, dict) else None

    def delete(self, key: str) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(snapshots).where(snapshots.c.key == key))
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not delete snapshot '{key}': {exc}") from exc

    def clear(self) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(snapshots))
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not clear snapshots: {exc}") from exc


def build_store(settings: Settings) -> SnapshotStore:
    """Create the configured snapshot store."""
    if settings.storage_backend == "sqlite":
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        return SqlSnapshotStore(settings.sqlalchemy_url, echo=settings.log_level == "DEBUG")
    return JsonFileStore(settings.data_dir)
