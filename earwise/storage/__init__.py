"""
Persistence for earwise.

- schema: versioned pydantic records and legacy migrations
- store: snapshot stores (memory, JSON files, SQL)
- bundle: export/import of all learner state
"""

from .bundle import BUNDLE_VERSION, ImportedState, export_bundle, parse_bundle
from .schema import SCHEMA_VERSION, DomainSnapshot, PreferencesRecord, StatsRecord
from .store import (
    PREFERENCES_KEY,
    STATS_KEY,
    JsonFileStore,
    MemoryStore,
    SnapshotStore,
    SqlSnapshotStore,
    build_store,
    domain_key,
)

__all__ = [
    "BUNDLE_VERSION",
    "SCHEMA_VERSION",
    "DomainSnapshot",
    "PreferencesRecord",
    "StatsRecord",
    "ImportedState",
    "export_bundle",
    "parse_bundle",
    "SnapshotStore",
    "MemoryStore",
    "JsonFileStore",
    "SqlSnapshotStore",
    "build_store",
    "domain_key",
    "PREFERENCES_KEY",
    "STATS_KEY",
]
