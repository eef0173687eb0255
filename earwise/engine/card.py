"""
Review Card: SM-2 Scheduling with Continuous Mastery.

Each card tracks one (item, variant) pair, e.g. the perfect fifth played
descending. Two independent models are updated on every answer:

- SM-2 interval state (ease factor, interval, repetitions) decides *when*
  the card is due again.
- Mastery (0.0-1.0) is a smoothed skill estimate used by the unlock engine
  and to order not-yet-due cards weakest first.

Grade Scale (derived from correctness + response latency):
0 - Incorrect
1 - Correct, but slow (5s or more)
2 - Correct (2.5s-5s)
3 - Correct and fast (under 2.5s)
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, NamedTuple

# =============================================================================
# Constants
# =============================================================================

HISTORY_SIZE = 20
MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5
MASTERY_RATE = 0.12
MASTERY_FAIL_PENALTY = 0.06
FAST_RESPONSE_MS = 2500
NORMAL_RESPONSE_MS = 5000
RELEARN_DELAY = timedelta(minutes=10)
NEW_CARD_WINDOW = timedelta(seconds=120)


def grade_response(correct: bool, response_ms: float) -> int:
    """
    Convert an answer to a 0-3 grade.

    Args:
        correct: Whether the answer was correct
        response_ms: Time between playback end and the answer

    Returns:
        Grade 0-3
    """
    if not correct:
        return 0
    if response_ms < FAST_RESPONSE_MS:
        return 3
    if response_ms < NORMAL_RESPONSE_MS:
        return 2
    return 1


def _round_half_up(value: float) -> int:
    """Round .5 upward; intervals are always positive."""
    return int(math.floor(value + 0.5))


# =============================================================================
# Card Data Classes
# =============================================================================


class CardKey(NamedTuple):
    """Stable identifier of a card within a deck."""

    item_id: str
    variant: str

    def __str__(self) -> str:
        return f"{self.item_id}:{self.variant}"

    @classmethod
    def parse(cls, text: str) -> CardKey:
        """Parse the ``item:variant`` string form."""
        item_id, sep, variant = text.partition(":")
        if not sep or not item_id or not variant:
            raise ValueError(f"Invalid card key: {text!r}")
        return cls(item_id, variant)


@dataclass(frozen=True)
class AnswerRecord:
    """A single answer event kept in the card's recent history."""

    correct: bool
    response_ms: float
    answered_at: datetime


@dataclass
class ReviewCard:
    """Scheduling and mastery state for one (item, variant) pair."""

    key: CardKey
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval_days: int = 0
    repetitions: int = 0
    mastery: float = 0.0
    due_date: datetime = field(default_factory=datetime.now)
    introduced_at: datetime | None = None
    is_locked: bool = True
    history: deque[AnswerRecord] = field(default_factory=lambda: deque(maxlen=HISTORY_SIZE))
    total_answers: int = 0

    @property
    def item_id(self) -> str:
        return self.key.item_id

    @property
    def variant(self) -> str:
        return self.key.variant

    # =========================================================================
    # Answer Processing
    # =========================================================================

    def update(self, correct: bool, response_ms: float, now: datetime | None = None) -> int:
        """
        Apply one answer to the mastery estimate and the SM-2 schedule.

        Args:
            correct: Whether the learner identified the item
            response_ms: Answer latency in milliseconds
            now: Reference time (defaults to the current time)

        Returns:
            The grade used for the update
        """
        now = now or datetime.now()
        grade = grade_response(correct, response_ms)

        # Successes approach 1 asymptotically; failures add a fixed penalty
        if correct:
            self.mastery = min(1.0, self.mastery + MASTERY_RATE * (1 - self.mastery))
        else:
            self.mastery = max(0.0, self.mastery - MASTERY_RATE * self.mastery - MASTERY_FAIL_PENALTY)

        if grade >= 2:
            if self.repetitions == 0:
                self.interval_days = 1
            elif self.repetitions == 1:
                self.interval_days = 4
            else:
                self.interval_days = _round_half_up(self.interval_days * self.ease_factor)
            self.repetitions += 1
        else:
            # Incorrect or slow: relearn
            self.repetitions = 0
            self.interval_days = 0

        # EF' = EF + (0.1 - (3 - q) * (0.08 + (3 - q) * 0.02))
        miss = 3 - grade
        self.ease_factor = max(MIN_EASE_FACTOR, self.ease_factor + 0.1 - miss * (0.08 + miss * 0.02))

        if self.interval_days == 0:
            self.due_date = now + RELEARN_DELAY
        else:
            self.due_date = now + timedelta(days=self.interval_days)

        self.history.append(AnswerRecord(correct=correct, response_ms=response_ms, answered_at=now))
        self.total_answers += 1
        return grade

    # =========================================================================
    # Queries
    # =========================================================================

    def is_due(self, now: datetime | None = None) -> bool:
        """Check if this card is unlocked and past its due date."""
        if self.is_locked:
            return False
        return (now or datetime.now()) >= self.due_date

    def recent_accuracy(self, n: int = 5) -> float:
        """Fraction of correct answers among the last ``n`` history entries."""
        if n <= 0 or not self.history:
            return 0.0
        recent = list(self.history)[-n:]
        return sum(1 for record in recent if record.correct) / len(recent)

    def is_new(self, now: datetime | None = None, window: timedelta = NEW_CARD_WINDOW) -> bool:
        """Whether the card was introduced within ``window``."""
        if self.introduced_at is None:
            return False
        return (now or datetime.now()) - self.introduced_at < window

    # =========================================================================
    # Lock State
    # =========================================================================

    def unlock(self, now: datetime | None = None) -> bool:
        """Make the card practiceable and due immediately. No-op if unlocked."""
        if not self.is_locked:
            return False
        now = now or datetime.now()
        self.is_locked = False
        self.introduced_at = now
        self.due_date = now
        return True

    def relock(self) -> bool:
        """Remove the card from practice, keeping all learned state."""
        if self.is_locked:
            return False
        self.is_locked = True
        return True

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form with card fields verbatim."""
        return {
            "key": str(self.key),
            "item_id": self.key.item_id,
            "variant": self.key.variant,
            "ease_factor": self.ease_factor,
            "interval_days": self.interval_days,
            "repetitions": self.repetitions,
            "mastery": self.mastery,
            "due_date": self.due_date,
            "introduced_at": self.introduced_at,
            "is_locked": self.is_locked,
            "history": [
                {
                    "correct": record.correct,
                    "response_ms": record.response_ms,
                    "answered_at": record.answered_at,
                }
                for record in self.history
            ],
            "total_answers": self.total_answers,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewCard:
        """
        Create a card from validated plain data.

        Args:
            data: Dictionary as produced by ``to_dict`` (datetimes already parsed)

        Returns:
            ReviewCard instance
        """
        history: deque[AnswerRecord] = deque(
            (
                AnswerRecord(
                    correct=bool(entry["correct"]),
                    response_ms=float(entry["response_ms"]),
                    answered_at=entry["answered_at"],
                )
                for entry in data.get("history", [])
            ),
            maxlen=HISTORY_SIZE,
        )
        return cls(
            key=CardKey(data["item_id"], data["variant"]),
            ease_factor=max(MIN_EASE_FACTOR, float(data.get("ease_factor", DEFAULT_EASE_FACTOR))),
            interval_days=max(0, int(data.get("interval_days", 0))),
            repetitions=max(0, int(data.get("repetitions", 0))),
            mastery=min(1.0, max(0.0, float(data.get("mastery", 0.0)))),
            due_date=data.get("due_date") or datetime.now(),
            introduced_at=data.get("introduced_at"),
            is_locked=bool(data.get("is_locked", True)),
            history=history,
            total_answers=max(len(history), int(data.get("total_answers", 0))),
        )
