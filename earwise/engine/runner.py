"""
Session Runner.

Drives one practice session over a prepared queue. Cards are presented
strictly one at a time and every question passes through an explicit gate:

    AWAITING_PLAYBACK -> AWAITING_ANSWER -> SHOWING_FEEDBACK -> (next card)

Answers are only accepted in AWAITING_ANSWER, i.e. after the audio player
has finished. Out-of-protocol answers are ignored, not raised.

At the end of the queue the runner asks the progression what *could*
unlock (without committing), reports per-card mastery changes and updates
lifetime statistics. Abandoning a session keeps every answer already made.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from ..errors import AudioError
from .card import CardKey, ReviewCard
from .domain import CatalogItem
from .preferences import Preferences
from .state import DomainState
from .stats import LifetimeStats

if TYPE_CHECKING:
    from ..audio import AudioPlayer

MASTERY_DELTA_EPSILON = 0.001

# =============================================================================
# Events
# =============================================================================


class SessionPhase(Enum):
    """Lifecycle of a session and of the current question."""

    NOT_STARTED = "not_started"
    AWAITING_PLAYBACK = "awaiting_playback"
    AWAITING_ANSWER = "awaiting_answer"
    SHOWING_FEEDBACK = "showing_feedback"
    ENDED = "ended"


@dataclass(frozen=True)
class SessionProgress:
    """A question is being presented."""

    domain: str
    index: int
    total: int
    card: ReviewCard
    item: CatalogItem
    is_new: bool


@dataclass(frozen=True)
class AnswerFeedback:
    """Outcome of one answer."""

    domain: str
    index: int
    total: int
    card: ReviewCard
    item: CatalogItem
    answered_item_id: str
    correct: bool
    grade: int
    response_ms: float
    show_reference: bool


@dataclass(frozen=True)
class MasteryChange:
    key: CardKey
    before: float
    after: float

    @property
    def delta(self) -> float:
        return self.after - self.before


@dataclass(frozen=True)
class SessionSummary:
    """End-of-session report."""

    domain: str
    correct: int
    total: int
    pending_unlocks: list[CardKey] = field(default_factory=list)
    mastery_changes: list[MasteryChange] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total else 0.0


class PresentationSink(Protocol):
    """Receives session events for rendering."""

    def session_progress(self, progress: SessionProgress) -> None: ...

    def answer_feedback(self, feedback: AnswerFeedback) -> None: ...

    def session_summary(self, summary: SessionSummary) -> None: ...

    def unlocks_applied(self, domain: str, keys: list[CardKey]) -> None: ...


class NullSink:
    """Discards all events."""

    def session_progress(self, progress: SessionProgress) -> None:
        pass

    def answer_feedback(self, feedback: AnswerFeedback) -> None:
        pass

    def session_summary(self, summary: SessionSummary) -> None:
        pass

    def unlocks_applied(self, domain: str, keys: list[CardKey]) -> None:
        pass


# =============================================================================
# Runner
# =============================================================================


class SessionRunner:
    """
    Presents a queue of cards and routes answers into card updates.

    Persistence is write-through: ``on_change`` is called after every
    answer and at the end of the session.
    """

    def __init__(
        self,
        domain: DomainState,
        queue: Sequence[ReviewCard],
        *,
        audio: AudioPlayer,
        sink: PresentationSink | None = None,
        stats: LifetimeStats | None = None,
        preferences: Preferences | None = None,
        clock: Callable[[], datetime] = datetime.now,
        on_change: Callable[[], None] | None = None,
    ):
        """
        Initialize the runner.

        Args:
            domain: Domain state the queue was built from
            queue: Cards in presentation order (may contain repeats)
            audio: AudioPlayer used to play each item
            sink: Presentation event sink
            stats: Lifetime statistics to update
            preferences: Playback and feedback preferences
            clock: Time source (answer latency, due dates)
            on_change: Called after each state change for persistence
        """
        self.domain = domain
        self.queue = list(queue)
        self.audio = audio
        self.sink = sink or NullSink()
        self.stats = stats or LifetimeStats()
        self.preferences = preferences or Preferences()
        self.clock = clock
        self._on_change = on_change or (lambda: None)

        self.index = 0
        self.correct = 0
        self.summary: SessionSummary | None = None
        self._phase = SessionPhase.NOT_STARTED
        self._snapshots: dict[CardKey, float] = {}
        self._answered: set[CardKey] = set()
        self._seen: set[CardKey] = set()
        self._answer_opened_at: datetime | None = None

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def total(self) -> int:
        return len(self.queue)

    @property
    def current_card(self) -> ReviewCard | None:
        if self._phase in (SessionPhase.NOT_STARTED, SessionPhase.ENDED):
            return None
        return self.queue[self.index]

    @property
    def answered_keys(self) -> frozenset[CardKey]:
        return frozenset(self._answered)

    def _item(self, card: ReviewCard) -> CatalogItem:
        item = self.domain.config.item(card.item_id)
        if item is None:
            raise KeyError(f"Card {card.key} has no catalog item")
        return item

    # =========================================================================
    # Flow
    # =========================================================================

    def start(self) -> None:
        """Snapshot mastery and present the first card. An empty queue ends immediately."""
        if self._phase is not SessionPhase.NOT_STARTED:
            return
        for card in self.queue:
            self._snapshots.setdefault(card.key, card.mastery)

        if not self.queue:
            logger.info(f"Nothing to practice in {self.domain.name}")
            self._phase = SessionPhase.ENDED
            return
        logger.info(f"Session started: {self.domain.name}, {self.total} questions")
        self._present()

    def _present(self) -> None:
        card = self.queue[self.index]
        now = self.clock()
        is_new = card.is_new(now) and card.key not in self._seen
        self._seen.add(card.key)

        self._phase = SessionPhase.AWAITING_PLAYBACK
        self._answer_opened_at = None
        self.sink.session_progress(
            SessionProgress(
                domain=self.domain.name,
                index=self.index,
                total=self.total,
                card=card,
                item=self._item(card),
                is_new=is_new,
            )
        )
        if self.preferences.auto_play:
            self.play_current()

    def play_current(self) -> bool:
        """
        Play the current card and open the answer window when playback ends.

        Replaying while an answer is pending closes the window until the
        replay finishes. Replays after answering do not change the phase.

        Returns:
            False if there is no question to play
        """
        if self._phase not in (
            SessionPhase.AWAITING_PLAYBACK,
            SessionPhase.AWAITING_ANSWER,
            SessionPhase.SHOWING_FEEDBACK,
        ):
            return False

        card = self.queue[self.index]
        gated = self._phase is not SessionPhase.SHOWING_FEEDBACK
        if gated:
            self._phase = SessionPhase.AWAITING_PLAYBACK
            self._answer_opened_at = None

        try:
            self.audio.play(self._item(card).pitch, card.variant)
        except AudioError as exc:
            logger.warning(f"Playback failed for {card.key}: {exc}")

        if gated:
            self._phase = SessionPhase.AWAITING_ANSWER
            self._answer_opened_at = self.clock()
        return True

    replay = play_current

    def submit_answer(self, item_id: str) -> AnswerFeedback | None:
        """
        Grade an answer for the current card.

        Args:
            item_id: Catalog id the learner picked

        Returns:
            Feedback, or None if no answer is expected right now
        """
        if self._phase is not SessionPhase.AWAITING_ANSWER or self._answer_opened_at is None:
            logger.debug(f"Ignoring answer '{item_id}' in phase {self._phase.value}")
            return None

        card = self.queue[self.index]
        now = self.clock()
        response_ms = max(0.0, (now - self._answer_opened_at).total_seconds() * 1000)
        correct = item_id == card.item_id

        grade = card.update(correct, response_ms, now)
        if correct:
            self.correct += 1
        self._answered.add(card.key)
        self.stats.record_answer(correct)
        self._phase = SessionPhase.SHOWING_FEEDBACK
        self._answer_opened_at = None
        self._on_change()

        logger.debug(
            f"Answer {card.key}: {'correct' if correct else 'wrong'} in {response_ms:.0f}ms, "
            f"grade={grade}, mastery={card.mastery:.2f}, next in {card.interval_days}d"
        )

        feedback = AnswerFeedback(
            domain=self.domain.name,
            index=self.index,
            total=self.total,
            card=card,
            item=self._item(card),
            answered_item_id=item_id,
            correct=correct,
            grade=grade,
            response_ms=response_ms,
            show_reference=self.preferences.show_reference(correct),
        )
        self.sink.answer_feedback(feedback)

        if correct and self.preferences.auto_advance:
            self.advance()
        return feedback

    def advance(self) -> bool:
        """Move past the feedback to the next card, ending the session after the last."""
        if self._phase is not SessionPhase.SHOWING_FEEDBACK:
            return False
        self.index += 1
        if self.index >= self.total:
            self._finish()
        else:
            self._present()
        return True

    def abandon(self) -> None:
        """End now. Answers already given stay committed; no summary is produced."""
        if self._phase is SessionPhase.ENDED:
            return
        logger.info(f"Session abandoned: {self.domain.name} after {len(self._answered)} cards")
        self.queue = []
        self.index = 0
        self._answer_opened_at = None
        self._phase = SessionPhase.ENDED

    # =========================================================================
    # Completion
    # =========================================================================

    def _finish(self) -> None:
        now = self.clock()
        pending = self.domain.progression.peek()

        changes = []
        for key, before in self._snapshots.items():
            if key not in self._answered:
                continue
            card = self.domain.deck.get(key)
            if card is None:
                continue
            change = MasteryChange(key=key, before=before, after=card.mastery)
            if abs(change.delta) > MASTERY_DELTA_EPSILON:
                changes.append(change)

        self.stats.record_session(
            self.domain.name,
            correct=self.correct,
            total=self.total,
            pending_unlocks=len(pending),
            now=now,
        )
        if pending:
            self.domain.unlock_prompt_pending = True

        self.summary = SessionSummary(
            domain=self.domain.name,
            correct=self.correct,
            total=self.total,
            pending_unlocks=pending,
            mastery_changes=changes,
        )
        self._phase = SessionPhase.ENDED
        self._on_change()

        logger.info(
            f"Session complete: {self.domain.name} {self.correct}/{self.total}, "
            f"{len(pending)} unlocks pending"
        )
        self.sink.session_summary(self.summary)
