"""
Unit tests for SessionRunner.

Tests:
- Playback gate (answers only after playback)
- Grading from answer latency
- Auto-play, auto-advance and reference policy
- End-of-session summary: pending unlocks, mastery deltas, stats
- Abandoning a session
"""

import pytest

from earwise.engine.card import CardKey
from earwise.engine.preferences import Preferences
from earwise.engine.runner import SessionPhase, SessionRunner
from earwise.engine.state import DomainState
from earwise.engine.stats import LifetimeStats
from earwise.errors import AudioError


@pytest.fixture
def state(tones_domain, now):
    return DomainState.fresh(tones_domain, now)


@pytest.fixture
def stats():
    return LifetimeStats()


@pytest.fixture
def make_runner(state, player, sink, stats, clock):
    def _make(queue=None, preferences=None, on_change=None, audio=None):
        if queue is None:
            queue = [state.deck.get(CardKey("a", "up")), state.deck.get(CardKey("b", "up"))]
        return SessionRunner(
            state,
            queue,
            audio=audio or player,
            sink=sink,
            stats=stats,
            preferences=preferences or Preferences(),
            clock=clock,
            on_change=on_change,
        )

    return _make


def _answer_all_correctly(runner, clock, ms=1000):
    while runner.phase is not SessionPhase.ENDED:
        clock.advance(milliseconds=ms)
        runner.submit_answer(runner.current_card.item_id)
        runner.advance()


class TestPlaybackGate:
    """Answers are accepted only after playback completes."""

    def test_audio_parameter_is_typed(self):
        assert SessionRunner.__init__.__annotations__["audio"] == "AudioPlayer"

    def test_not_started_rejects_answers(self, make_runner):
        runner = make_runner()
        assert runner.phase is SessionPhase.NOT_STARTED
        assert runner.submit_answer("a") is None

    def test_without_auto_play_waits_for_playback(self, make_runner, player):
        runner = make_runner(preferences=Preferences(auto_play=False))
        runner.start()

        assert runner.phase is SessionPhase.AWAITING_PLAYBACK
        assert player.played == []
        assert runner.submit_answer(runner.current_card.item_id) is None
        assert runner.current_card.total_answers == 0

        assert runner.play_current()
        assert runner.phase is SessionPhase.AWAITING_ANSWER
        assert player.played == [((1,), "up")]

    def test_auto_play_opens_answer_window(self, make_runner, player):
        runner = make_runner()
        runner.start()

        assert runner.phase is SessionPhase.AWAITING_ANSWER
        assert len(player.played) == 1

    def test_second_answer_is_ignored(self, make_runner):
        runner = make_runner()
        runner.start()
        card = runner.current_card

        assert runner.submit_answer(card.item_id) is not None
        assert runner.submit_answer(card.item_id) is None
        assert card.total_answers == 1

    def test_audio_failure_still_allows_answering(self, make_runner):
        class BrokenPlayer:
            def play(self, pitch, mode):
                raise AudioError("no output device")

        runner = make_runner(audio=BrokenPlayer())
        runner.start()

        assert runner.phase is SessionPhase.AWAITING_ANSWER
        assert runner.submit_answer(runner.current_card.item_id) is not None

    def test_replay_after_feedback_keeps_phase(self, make_runner, player):
        runner = make_runner()
        runner.start()
        runner.submit_answer(runner.current_card.item_id)

        assert runner.replay()
        assert runner.phase is SessionPhase.SHOWING_FEEDBACK
        assert len(player.played) == 2


class TestAnswers:
    """Tests for grading and feedback."""

    def test_latency_measured_from_playback_end(self, make_runner, clock, sink):
        runner = make_runner()
        runner.start()
        clock.advance(milliseconds=3200)

        feedback = runner.submit_answer(runner.current_card.item_id)

        assert feedback.correct
        assert feedback.response_ms == pytest.approx(3200)
        assert feedback.grade == 2
        assert sink.feedback == [feedback]

    def test_replay_restarts_latency(self, make_runner, clock):
        runner = make_runner()
        runner.start()
        clock.advance(seconds=10)
        runner.replay()
        clock.advance(milliseconds=500)

        feedback = runner.submit_answer(runner.current_card.item_id)

        assert feedback.grade == 3

    def test_wrong_answer(self, make_runner, state):
        runner = make_runner()
        runner.start()
        card = runner.current_card
        wrong = "b" if card.item_id == "a" else "a"

        feedback = runner.submit_answer(wrong)

        assert not feedback.correct
        assert feedback.grade == 0
        assert feedback.answered_item_id == wrong
        assert feedback.show_reference  # default policy: on wrong answers

    @pytest.mark.parametrize(
        "policy,correct,expected",
        [("always", True, True), ("wrong", True, False), ("never", False, False)],
    )
    def test_reference_policy(self, make_runner, policy, correct, expected):
        runner = make_runner(preferences=Preferences(show_reference_on=policy))
        runner.start()
        card = runner.current_card
        answer = card.item_id if correct else "zz"

        assert runner.submit_answer(answer).show_reference is expected

    def test_on_change_after_every_answer(self, make_runner, clock):
        calls = []
        runner = make_runner(on_change=lambda: calls.append(runner.phase))
        runner.start()

        runner.submit_answer(runner.current_card.item_id)

        assert calls == [SessionPhase.SHOWING_FEEDBACK]

    def test_auto_advance_on_correct_only(self, make_runner):
        runner = make_runner(preferences=Preferences(auto_advance=True))
        runner.start()

        runner.submit_answer(runner.current_card.item_id)
        assert runner.index == 1
        assert runner.phase is SessionPhase.AWAITING_ANSWER

        runner.submit_answer("zz")
        assert runner.phase is SessionPhase.SHOWING_FEEDBACK

    def test_new_card_flag_only_on_first_sight(self, make_runner, state, sink):
        card = state.deck.get(CardKey("a", "up"))
        runner = make_runner(queue=[card, card])
        runner.start()
        runner.submit_answer("a")
        runner.advance()

        assert [progress.is_new for progress in sink.progress] == [True, False]


class TestSessionEnd:
    """Tests for the end-of-session summary."""

    def test_summary_after_last_card(self, make_runner, clock, sink, stats):
        runner = make_runner()
        runner.start()
        _answer_all_correctly(runner, clock)

        summary = runner.summary
        assert summary is not None
        assert sink.summaries == [summary]
        assert (summary.correct, summary.total) == (2, 2)
        assert summary.accuracy == 1.0
        assert stats.total_sessions == 1
        assert stats.total_questions == 2
        assert stats.session_history[-1].domain == "tones"

    def test_mastery_changes_reported(self, make_runner, clock):
        runner = make_runner()
        runner.start()
        _answer_all_correctly(runner, clock)

        changes = {change.key: change for change in runner.summary.mastery_changes}
        assert set(changes) == {CardKey("a", "up"), CardKey("b", "up")}
        assert changes[CardKey("a", "up")].before == 0.0
        assert changes[CardKey("a", "up")].delta == pytest.approx(0.12)

    def test_repeated_card_delta_uses_first_snapshot(self, make_runner, state, clock):
        card = state.deck.get(CardKey("a", "up"))
        runner = make_runner(queue=[card, card])
        runner.start()
        _answer_all_correctly(runner, clock)

        (change,) = runner.summary.mastery_changes
        assert change.before == 0.0
        assert change.after == pytest.approx(0.12 + 0.12 * 0.88)

    def test_tiny_deltas_are_hidden(self, make_runner, state, clock):
        card = state.deck.get(CardKey("a", "up"))
        card.mastery = 0.9999
        runner = make_runner(queue=[card])
        runner.start()
        _answer_all_correctly(runner, clock)

        assert runner.summary.mastery_changes == []

    def test_pending_unlocks_are_peeked_not_applied(self, make_runner, state, clock, season):
        season(state.deck.get(CardKey("a", "up")), 0.60, 19)
        season(state.deck.get(CardKey("b", "up")), 0.60, 19)
        runner = make_runner()
        runner.start()
        _answer_all_correctly(runner, clock, ms=4000)

        assert runner.summary.pending_unlocks == [CardKey("c", "up")]
        assert state.deck.get(CardKey("c", "up")).is_locked
        assert state.unlock_prompt_pending
        assert runner.stats.session_history[-1].pending_unlocks == 1

    def test_empty_queue_ends_without_summary(self, make_runner, stats):
        runner = make_runner(queue=[])
        runner.start()

        assert runner.phase is SessionPhase.ENDED
        assert runner.summary is None
        assert stats.total_sessions == 0


class TestAbandon:
    """Tests for ending a session early."""

    def test_abandon_keeps_answers_without_summary(self, make_runner, sink, stats):
        runner = make_runner()
        runner.start()
        card = runner.current_card
        runner.submit_answer(card.item_id)

        runner.abandon()

        assert runner.phase is SessionPhase.ENDED
        assert runner.current_card is None
        assert card.total_answers == 1
        assert sink.summaries == []
        assert stats.total_sessions == 0
        assert stats.total_questions == 1

    def test_nothing_accepted_after_abandon(self, make_runner):
        runner = make_runner()
        runner.start()
        runner.abandon()

        assert runner.submit_answer("a") is None
        assert not runner.advance()
        assert not runner.play_current()
