"""
Export/Import Bundle.

A bundle is a single pretty-printed JSON document holding every domain,
the preferences and the lifetime stats:

    {"version": 4, "exported_at": ..., "domains": {...}, "preferences": {...}, "stats": {...}}

Version 3 bundles (the legacy browser export with ``deck``/``chordDeck``/
``progDeck`` top-level keys) are still accepted.

Parsing is all-or-nothing: callers receive an ImportedState only when the
whole bundle validated, so a rejected import never touches current state.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from ..engine.domain import DomainConfig
from ..engine.preferences import Preferences
from ..engine.state import DomainState
from ..engine.stats import LifetimeStats
from ..errors import InvalidBundleError
from .schema import (
    DomainSnapshot,
    PreferencesRecord,
    StatsRecord,
    load_domain_snapshot,
    load_preferences,
    load_stats,
)

BUNDLE_VERSION = 4
LEGACY_BUNDLE_VERSION = 3

# v3 top-level keys: domain -> (deck key, progression key)
LEGACY_DOMAIN_KEYS = {
    "intervals": ("deck", "progression"),
    "chords": ("chordDeck", "chordProgression"),
    "progressions": ("progDeck", "progUnlock"),
}


class Bundle(BaseModel):
    """Current bundle layout."""

    version: int = BUNDLE_VERSION
    exported_at: datetime
    domains: dict[str, DomainSnapshot] = Field(default_factory=dict)
    preferences: PreferencesRecord = Field(default_factory=PreferencesRecord)
    stats: StatsRecord = Field(default_factory=StatsRecord)


@dataclass
class ImportedState:
    """Validated bundle contents, ready to be applied."""

    version: int
    domains: dict[str, DomainSnapshot] = field(default_factory=dict)
    preferences: PreferencesRecord = field(default_factory=PreferencesRecord)
    stats: StatsRecord = field(default_factory=StatsRecord)


# =============================================================================
# Export
# =============================================================================


def export_bundle(
    domains: Iterable[DomainState],
    preferences: Preferences,
    stats: LifetimeStats,
    now: datetime | None = None,
) -> str:
    """
    Serialize all learner state.

    Args:
        domains: Domain states to include
        preferences: Current preferences
        stats: Lifetime statistics
        now: Export timestamp

    Returns:
        Pretty-printed JSON text
    """
    bundle = Bundle(
        exported_at=now or datetime.now(),
        domains={state.name: DomainSnapshot.model_validate(state.to_dict()) for state in domains},
        preferences=PreferencesRecord.model_validate(preferences.to_dict()),
        stats=StatsRecord.model_validate(stats.to_dict()),
    )
    return bundle.model_dump_json(indent=2)


# =============================================================================
# Import
# =============================================================================


def parse_bundle(text: str, domains: Mapping[str, DomainConfig]) -> ImportedState:
    """
    Parse and validate an export bundle.

    Args:
        text: Bundle JSON
        domains: Known domain configurations; other domains are skipped

    Returns:
        ImportedState with every known domain present in the bundle

    Raises:
        InvalidBundleError: Not JSON, no recognized version, or no deck data
    """
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise InvalidBundleError(f"Invalid earwise export file: not JSON ({exc})") from exc
    if not isinstance(raw, dict):
        raise InvalidBundleError("Invalid earwise export file: expected a JSON object")

    version = raw.get("version")
    if version == BUNDLE_VERSION:
        imported = _parse_current(raw, domains)
    elif version == LEGACY_BUNDLE_VERSION:
        imported = _parse_legacy(raw, domains)
    elif version is None:
        raise InvalidBundleError("Invalid earwise export file: missing version")
    else:
        raise InvalidBundleError(f"Invalid earwise export file: unsupported version {version!r}")

    logger.info(f"Parsed v{version} bundle with domains {sorted(imported.domains)}")
    return imported


def _parse_current(raw: dict[str, Any], domains: Mapping[str, DomainConfig]) -> ImportedState:
    payloads = raw.get("domains")
    if not isinstance(payloads, dict):
        raise InvalidBundleError("Invalid earwise export file: missing domains")

    snapshots = {}
    for name, payload in payloads.items():
        if name not in domains:
            logger.debug(f"Skipping unknown domain '{name}' in bundle")
            continue
        snapshots[name] = _domain_snapshot(payload, name)
    if not snapshots:
        raise InvalidBundleError("Invalid earwise export file: no known domains")

    return ImportedState(
        version=BUNDLE_VERSION,
        domains=snapshots,
        preferences=_preferences(raw.get("preferences")),
        stats=_stats(raw.get("stats")),
    )


def _parse_legacy(raw: dict[str, Any], domains: Mapping[str, DomainConfig]) -> ImportedState:
    if not isinstance(raw.get("deck"), dict):
        raise InvalidBundleError("Invalid earwise export file: missing deck")

    snapshots = {}
    for name, (deck_key, progression_key) in LEGACY_DOMAIN_KEYS.items():
        if name not in domains or not isinstance(raw.get(deck_key), dict):
            continue
        legacy = {"deck": raw[deck_key], "progression": raw.get(progression_key) or {}}
        snapshots[name] = _domain_snapshot(legacy, name)

    return ImportedState(
        version=LEGACY_BUNDLE_VERSION,
        domains=snapshots,
        preferences=_preferences(raw.get("settings")),
        stats=_stats(raw.get("stats")),
    )


def _domain_snapshot(payload: Any, name: str) -> DomainSnapshot:
    if not isinstance(payload, dict):
        raise InvalidBundleError(f"Invalid earwise export file: domain '{name}' is not an object")
    try:
        return load_domain_snapshot(payload, name)
    except ValueError as exc:
        raise InvalidBundleError(f"Invalid earwise export file: domain '{name}': {exc}") from exc


def _preferences(payload: Any) -> PreferencesRecord:
    if not isinstance(payload, dict):
        return PreferencesRecord()
    try:
        return load_preferences(payload)
    except (ValidationError, ValueError) as exc:
        logger.warning(f"Bundle preferences invalid, using defaults: {exc}")
        return PreferencesRecord()


def _stats(payload: Any) -> StatsRecord:
    if not isinstance(payload, dict):
        return StatsRecord()
    try:
        return load_stats(payload)
    except (ValidationError, ValueError) as exc:
        logger.warning(f"Bundle stats invalid, using defaults: {exc}")
        return StatsRecord()
