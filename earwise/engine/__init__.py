"""
Practice Engine.

Generic over DomainConfig: one engine drives intervals, chords and
progressions.

Components:
- ReviewCard: SM-2 scheduling plus a continuous mastery estimate
- Deck: fixed set of cards for one domain
- Progression: tiered unlock engine with a per-item variant ladder
- build_session: due-first, weakest-next session queue
- SessionRunner: gated question flow and end-of-session summary
- LifetimeStats: counters, streaks and the recent session log
"""

from .card import AnswerRecord, CardKey, ReviewCard, grade_response
from .deck import Deck
from .domain import CatalogItem, DomainConfig, LadderStep, UnlockTier
from .preferences import Preferences
from .progression import Progression, TierProgress
from .runner import (
    AnswerFeedback,
    MasteryChange,
    NullSink,
    PresentationSink,
    SessionPhase,
    SessionProgress,
    SessionRunner,
    SessionSummary,
)
from .scheduler import build_session
from .state import DomainState
from .stats import LifetimeStats, SessionLogEntry

__all__ = [
    # Cards
    "ReviewCard",
    "CardKey",
    "AnswerRecord",
    "grade_response",
    "Deck",
    # Domains
    "CatalogItem",
    "DomainConfig",
    "UnlockTier",
    "LadderStep",
    "DomainState",
    # Unlocking
    "Progression",
    "TierProgress",
    # Sessions
    "build_session",
    "SessionRunner",
    "SessionPhase",
    "SessionProgress",
    "AnswerFeedback",
    "SessionSummary",
    "MasteryChange",
    "PresentationSink",
    "NullSink",
    # Learner
    "Preferences",
    "LifetimeStats",
    "SessionLogEntry",
]
