"""
Lifetime Statistics.

Tracks aggregate practice history across all domains:
- Question and accuracy counters
- Daily practice streak (calendar days)
- A bounded log of recent sessions
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

SESSION_LOG_SIZE = 30


@dataclass(frozen=True)
class SessionLogEntry:
    """Summary of one completed session."""

    finished_at: datetime
    domain: str
    correct: int
    total: int
    pending_unlocks: int = 0

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total else 0.0


@dataclass
class LifetimeStats:
    """Aggregate counters persisted alongside the decks."""

    total_sessions: int = 0
    total_questions: int = 0
    total_correct: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_session_date: date | None = None
    session_history: deque[SessionLogEntry] = field(default_factory=lambda: deque(maxlen=SESSION_LOG_SIZE))

    @property
    def accuracy(self) -> float:
        """Lifetime fraction of correct answers."""
        if self.total_questions == 0:
            return 0.0
        return self.total_correct / self.total_questions

    def record_answer(self, correct: bool) -> None:
        self.total_questions += 1
        if correct:
            self.total_correct += 1

    def record_session(
        self,
        domain: str,
        correct: int,
        total: int,
        pending_unlocks: int = 0,
        now: datetime | None = None,
    ) -> SessionLogEntry:
        """
        Count a finished session and update the daily streak.

        Args:
            domain: Domain the session practiced
            correct: Correct answers in the session
            total: Questions in the session
            pending_unlocks: Unlocks offered at the end of the session
            now: Completion time

        Returns:
            The logged entry
        """
        now = now or datetime.now()
        today = now.date()

        self.total_sessions += 1
        if self.last_session_date != today:
            if self.last_session_date == today - timedelta(days=1):
                self.current_streak += 1
            else:
                self.current_streak = 1
            self.last_session_date = today
        self.longest_streak = max(self.longest_streak, self.current_streak)

        entry = SessionLogEntry(
            finished_at=now,
            domain=domain,
            correct=correct,
            total=total,
            pending_unlocks=pending_unlocks,
        )
        self.session_history.append(entry)
        return entry

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_sessions": self.total_sessions,
            "total_questions": self.total_questions,
            "total_correct": self.total_correct,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_session_date": self.last_session_date,
            "session_history": [
                {
                    "finished_at": entry.finished_at,
                    "domain": entry.domain,
                    "correct": entry.correct,
                    "total": entry.total,
                    "pending_unlocks": entry.pending_unlocks,
                }
                for entry in self.session_history
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LifetimeStats:
        history = deque(
            (SessionLogEntry(**entry) for entry in data.get("session_history", [])),
            maxlen=SESSION_LOG_SIZE,
        )
        return cls(
            total_sessions=data.get("total_sessions", 0),
            total_questions=data.get("total_questions", 0),
            total_correct=data.get("total_correct", 0),
            current_streak=data.get("current_streak", 0),
            longest_streak=data.get("longest_streak", 0),
            last_session_date=data.get("last_session_date"),
            session_history=history,
        )
