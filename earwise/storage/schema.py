"""
Persisted Schema and Migrations.

Every stored entity is a versioned pydantic model. Payloads are migrated
forward one version at a time before validation:

- v1: legacy browser layout (camelCase keys, epoch-millisecond timestamps,
  progression stored as ``{"unlockedGroupIndex": n}``)
- v2: current layout (snake_case keys, ISO timestamps)

Payloads newer than SCHEMA_VERSION are rejected so an old install never
silently truncates state written by a newer one.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..engine.card import DEFAULT_EASE_FACTOR, HISTORY_SIZE, MIN_EASE_FACTOR
from ..engine.stats import SESSION_LOG_SIZE

SCHEMA_VERSION = 2
LEGACY_VERSION = 1


def _naive(value: datetime | None) -> datetime | None:
    """Store and compare local naive datetimes only."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _from_epoch_ms(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000)
    return value


# =============================================================================
# Records
# =============================================================================


class AnswerRecordModel(BaseModel):
    """One entry of a card's recent answer history."""

    correct: bool
    response_ms: float = Field(ge=0)
    answered_at: datetime

    @field_validator("answered_at")
    @classmethod
    def naive_time(cls, value: datetime) -> datetime | None:
        return _naive(value)


class CardRecord(BaseModel):
    """Persisted ReviewCard fields."""

    model_config = ConfigDict(extra="ignore")

    item_id: str
    variant: str
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval_days: int = Field(default=0, ge=0)
    repetitions: int = Field(default=0, ge=0)
    mastery: float = 0.0
    due_date: datetime
    introduced_at: datetime | None = None
    is_locked: bool = True
    history: list[AnswerRecordModel] = Field(default_factory=list)
    total_answers: int = Field(default=0, ge=0)

    @field_validator("due_date", "introduced_at")
    @classmethod
    def naive_times(cls, value: datetime | None) -> datetime | None:
        return _naive(value)

    @field_validator("mastery")
    @classmethod
    def clamp_mastery(cls, value: float) -> float:
        return min(1.0, max(0.0, value))

    @field_validator("ease_factor")
    @classmethod
    def floor_ease(cls, value: float) -> float:
        return max(MIN_EASE_FACTOR, value)

    @field_validator("history")
    @classmethod
    def bound_history(cls, value: list[AnswerRecordModel]) -> list[AnswerRecordModel]:
        return value[-HISTORY_SIZE:]

    @property
    def key(self) -> str:
        return f"{self.item_id}:{self.variant}"


class ProgressionRecord(BaseModel):
    """Unlock engine state."""

    unlocked_tier_index: int = Field(default=-1, ge=-1)


class DomainSnapshot(BaseModel):
    """Everything persisted for one practice domain."""

    schema_version: int = SCHEMA_VERSION
    domain: str
    cards: dict[str, CardRecord] = Field(default_factory=dict)
    progression: ProgressionRecord = Field(default_factory=ProgressionRecord)
    unlock_prompt_pending: bool = False


class PreferencesRecord(BaseModel):
    """Persisted learner preferences."""

    model_config = ConfigDict(extra="ignore")

    schema_version: int = SCHEMA_VERSION
    session_size: int = Field(default=20, ge=1, le=200)
    auto_play: bool = True
    auto_advance: bool = False
    show_reference_on: Literal["always", "wrong", "never"] = "wrong"
    variant_filter: str = "all"


class SessionLogRecord(BaseModel):
    finished_at: datetime
    domain: str
    correct: int = Field(ge=0)
    total: int = Field(ge=0)
    pending_unlocks: int = Field(default=0, ge=0)

    @field_validator("finished_at")
    @classmethod
    def naive_time(cls, value: datetime) -> datetime | None:
        return _naive(value)


class StatsRecord(BaseModel):
    """Persisted lifetime statistics."""

    model_config = ConfigDict(extra="ignore")

    schema_version: int = SCHEMA_VERSION
    total_sessions: int = Field(default=0, ge=0)
    total_questions: int = Field(default=0, ge=0)
    total_correct: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_session_date: date | None = None
    session_history: list[SessionLogRecord] = Field(default_factory=list)

    @field_validator("session_history")
    @classmethod
    def bound_log(cls, value: list[SessionLogRecord]) -> list[SessionLogRecord]:
        return value[-SESSION_LOG_SIZE:]


# =============================================================================
# Migrations
# =============================================================================


def _check_version(raw: dict[str, Any]) -> int:
    version = raw.get("schema_version", LEGACY_VERSION)
    if not isinstance(version, int) or version < LEGACY_VERSION:
        raise ValueError(f"Unrecognized schema version: {version!r}")
    if version > SCHEMA_VERSION:
        raise ValueError(f"Schema version {version} is newer than supported {SCHEMA_VERSION}.")
    return version


def _migrate_card_v1(raw: dict[str, Any]) -> dict[str, Any]:
    history = [
        {
            "correct": entry.get("correct", False),
            "response_ms": entry.get("responseMs", 0),
            "answered_at": _from_epoch_ms(entry.get("ts", 0)),
        }
        for entry in raw.get("history") or []
    ]
    return {
        "item_id": raw.get("intervalId"),
        "variant": raw.get("direction"),
        "ease_factor": raw.get("easeFactor", DEFAULT_EASE_FACTOR),
        "interval_days": raw.get("intervalDays", 0),
        "repetitions": raw.get("repetitions", 0),
        "mastery": raw.get("mastery", 0.0),
        "due_date": _from_epoch_ms(raw.get("dueDate", 0)),
        "introduced_at": _from_epoch_ms(raw.get("introducedAt")),
        "is_locked": raw.get("isLocked", True),
        "history": history,
        "total_answers": raw.get("totalAnswers", len(history)),
    }


def migrate_domain_v1(raw: dict[str, Any], domain: str) -> dict[str, Any]:
    """
    Convert a legacy ``{"deck": ..., "progression": ...}`` payload to v2.

    Args:
        raw: Legacy payload
        domain: Domain name the payload belongs to

    Returns:
        v2 payload dictionary
    """
    deck = raw.get("deck") or {}
    progression = raw.get("progression") or {}
    cards = {}
    for card_id, card in deck.items():
        cards[card_id] = _migrate_card_v1(card)
    return {
        "schema_version": 2,
        "domain": domain,
        "cards": cards,
        "progression": {"unlocked_tier_index": progression.get("unlockedGroupIndex", -1)},
        "unlock_prompt_pending": False,
    }


def migrate_preferences_v1(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "schema_version": 2,
        "session_size": raw.get("sessionSize", 20),
        "auto_play": raw.get("autoPlay", True),
        "auto_advance": raw.get("autoAdvance", False),
        "show_reference_on": raw.get("showSongsOn", "wrong"),
        "variant_filter": raw.get("directionFilter", "all"),
    }


def _parse_legacy_day(value: Any) -> date | None:
    """Legacy stats stored ``Date.toDateString()`` values, e.g. 'Mon Oct 19 2026'."""
    if not value:
        return None
    try:
        return datetime.strptime(str(value), "%a %b %d %Y").date()
    except ValueError:
        return None


def migrate_stats_v1(raw: dict[str, Any]) -> dict[str, Any]:
    history = [
        {
            "finished_at": entry.get("date"),
            "domain": entry.get("module", "intervals"),
            "correct": entry.get("correct", 0),
            "total": entry.get("total", 0),
            "pending_unlocks": entry.get("newUnlocks", 0),
        }
        for entry in raw.get("sessionHistory") or []
    ]
    return {
        "schema_version": 2,
        "total_sessions": raw.get("totalSessions", 0),
        "total_questions": raw.get("totalQuestions", 0),
        "total_correct": raw.get("totalCorrect", 0),
        "current_streak": raw.get("currentStreak", 0),
        "longest_streak": raw.get("longestStreak", 0),
        "last_session_date": _parse_legacy_day(raw.get("lastSessionDate")),
        "session_history": history,
    }


# =============================================================================
# Loaders
# =============================================================================


def load_domain_snapshot(raw: dict[str, Any], domain: str) -> DomainSnapshot:
    """
    Migrate and validate a stored domain payload.

    Raises:
        ValueError: Unsupported version (pydantic.ValidationError is a ValueError)
    """
    if _check_version(raw) == LEGACY_VERSION:
        raw = migrate_domain_v1(raw, domain)
    snapshot = DomainSnapshot.model_validate(raw)
    if snapshot.domain != domain:
        raise ValueError(f"Snapshot belongs to domain '{snapshot.domain}', expected '{domain}'.")
    return snapshot


def load_preferences(raw: dict[str, Any]) -> PreferencesRecord:
    if _check_version(raw) == LEGACY_VERSION:
        raw = migrate_preferences_v1(raw)
    return PreferencesRecord.model_validate(raw)


def load_stats(raw: dict[str, Any]) -> StatsRecord:
    if _check_version(raw) == LEGACY_VERSION:
        raw = migrate_stats_v1(raw)
    return StatsRecord.model_validate(raw)
