"""
Unit tests for the Trainer application service.

Tests:
- Loading and write-through persistence
- Session lifecycle through the trainer
- Unlock prompt: confirm, defer and replay on the next session
- Manual overrides, preferences, export/import and reset
"""

import json

import pytest

from earwise.engine.card import CardKey
from earwise.engine.runner import SessionPhase
from earwise.errors import InvalidBundleError, StorageError, UnknownCardError, UnknownDomainError
from earwise.storage.store import PREFERENCES_KEY, STATS_KEY, MemoryStore, domain_key
from earwise.trainer import Trainer

A_UP = CardKey("a", "up")
B_UP = CardKey("b", "up")
C_UP = CardKey("c", "up")


@pytest.fixture
def make_trainer(store, player, sink, domains, clock, rng):
    def _make(store=store):
        return Trainer(store, audio=player, sink=sink, domains=domains, clock=clock, rng=rng)

    return _make


@pytest.fixture
def trainer(make_trainer):
    return make_trainer()


def _play_through(trainer, clock, correct=True):
    runner = trainer.runner
    while runner.phase is not SessionPhase.ENDED:
        clock.advance(seconds=1)
        card = runner.current_card
        trainer.submit_answer(card.item_id if correct else "zz")
        trainer.advance()
    return runner


def _ready_for_tier_one(trainer, season):
    tones = trainer.domain("tones")
    season(tones.deck.get(A_UP), 0.60, 19)
    season(tones.deck.get(B_UP), 0.60, 19)


class FailingStore(MemoryStore):
    def save(self, key, payload):
        raise StorageError("disk full")


class TestLoading:
    def test_fresh_state(self, trainer):
        assert set(trainer.domains) == {"tones", "blocks"}
        assert not trainer.domain("tones").deck.get(A_UP).is_locked
        assert trainer.preferences.session_size == 20
        assert trainer.stats.total_sessions == 0

    def test_unknown_domain(self, trainer):
        with pytest.raises(UnknownDomainError):
            trainer.domain("violins")

    def test_corrupt_state_starts_fresh(self, store, make_trainer):
        store.save(domain_key("tones"), {"schema_version": 2, "domain": "tones", "cards": "oops"})
        store.save(PREFERENCES_KEY, {"schema_version": 2, "session_size": -1})
        store.save(STATS_KEY, {"schema_version": 77})

        trainer = make_trainer()

        assert not trainer.domain("tones").deck.get(A_UP).is_locked
        assert trainer.preferences.session_size == 20
        assert trainer.stats.total_sessions == 0

    def test_state_survives_restart(self, trainer, make_trainer, clock):
        trainer.start_session("tones", size=4)
        _play_through(trainer, clock)

        restarted = make_trainer()

        assert restarted.domain("tones").deck.get(A_UP).total_answers == trainer.domain("tones").deck.get(A_UP).total_answers
        assert restarted.stats.total_sessions == 1
        assert restarted.stats.total_questions == 4


class TestSessions:
    def test_start_session_uses_preferred_size(self, trainer):
        trainer.update_preferences(session_size=3)
        runner = trainer.start_session("tones")

        assert runner.total == 3
        assert runner.phase is SessionPhase.AWAITING_ANSWER

    def test_answers_written_through(self, trainer, store):
        runner = trainer.start_session("tones", size=2)
        key = str(runner.current_card.key)

        trainer.submit_answer(runner.current_card.item_id)

        saved = store.load(domain_key("tones"))
        assert saved["cards"][key]["total_answers"] == 1
        assert store.load(STATS_KEY)["total_questions"] == 1

    def test_explicit_zero_size_is_not_replaced_by_preference(self, trainer):
        runner = trainer.start_session("tones", size=0)

        assert runner.total == 0
        assert runner.phase is SessionPhase.ENDED
        assert trainer.stats.total_sessions == 0

    def test_new_session_abandons_previous(self, trainer):
        first = trainer.start_session("tones", size=2)
        second = trainer.start_session("blocks", size=2)

        assert first.phase is SessionPhase.ENDED
        assert first.summary is None
        assert trainer.runner is second

    def test_calls_without_session_are_ignored(self, trainer):
        assert trainer.submit_answer("a") is None
        assert not trainer.advance()
        assert not trainer.play_current()

    def test_variant_filter(self, trainer, now):
        tones = trainer.domain("tones")
        tones.deck.unlock(CardKey("a", "down"), now)
        trainer.update_preferences(variant_filter="down")

        runner = trainer.start_session("tones", size=5)

        assert {card.variant for card in runner.queue} == {"down"}

    def test_variant_filter_ignored_for_other_domains(self, trainer):
        trainer.update_preferences(variant_filter="down")
        runner = trainer.start_session("blocks", size=2)
        assert runner.total == 2

    def test_storage_failure_does_not_interrupt(self, make_trainer, clock):
        trainer = make_trainer(store=FailingStore())
        trainer.start_session("tones", size=2)

        runner = _play_through(trainer, clock)

        assert runner.summary.total == 2
        assert trainer.stats.total_sessions == 1


class TestUnlockPrompt:
    """Pending unlocks are confirmed, deferred or replayed."""

    def test_summary_sets_prompt_flag(self, trainer, season, clock, store):
        _ready_for_tier_one(trainer, season)
        trainer.start_session("tones", size=2)
        runner = _play_through(trainer, clock)

        assert runner.summary.pending_unlocks == [C_UP]
        assert store.load(domain_key("tones"))["unlock_prompt_pending"]
        assert trainer.domain("tones").deck.get(C_UP).is_locked

    def test_confirm_applies(self, trainer, season, clock, sink, store):
        _ready_for_tier_one(trainer, season)
        trainer.start_session("tones", size=2)
        _play_through(trainer, clock)

        assert trainer.confirm_unlocks("tones") == [C_UP]

        tones = trainer.domain("tones")
        assert not tones.deck.get(C_UP).is_locked
        assert not tones.unlock_prompt_pending
        assert tones.progression.unlocked_tier_index == 1
        assert sink.unlocks == [("tones", [C_UP])]
        assert not store.load(domain_key("tones"))["unlock_prompt_pending"]

    def test_defer_keeps_cards_locked(self, trainer, season, clock):
        _ready_for_tier_one(trainer, season)
        trainer.start_session("tones", size=2)
        _play_through(trainer, clock)

        trainer.defer_unlocks("tones")

        tones = trainer.domain("tones")
        assert not tones.unlock_prompt_pending
        assert tones.deck.get(C_UP).is_locked
        assert trainer.pending_unlocks("tones") == [C_UP]

    def test_unanswered_prompt_applied_at_next_session(self, trainer, make_trainer, season, clock):
        _ready_for_tier_one(trainer, season)
        trainer.start_session("tones", size=2)
        _play_through(trainer, clock)

        # Prompt never answered; app restarted
        restarted = make_trainer()
        restarted.start_session("tones", size=2)

        tones = restarted.domain("tones")
        assert not tones.deck.get(C_UP).is_locked
        assert not tones.unlock_prompt_pending


class TestManualOverrides:
    def test_unlock_by_item_uses_entry_variant(self, trainer, store):
        assert trainer.manual_unlock("tones", "c")
        assert not trainer.domain("tones").deck.get(C_UP).is_locked
        assert not store.load(domain_key("tones"))["cards"]["c:up"]["is_locked"]

    def test_unlock_by_full_key(self, trainer):
        assert trainer.manual_unlock("tones", "d:down")
        assert not trainer.manual_unlock("tones", "d:down")

    def test_relock(self, trainer):
        assert trainer.manual_relock("tones", "a")
        assert trainer.domain("tones").deck.get(A_UP).is_locked

    @pytest.mark.parametrize("key", ["zz", "a:sideways", "a:"])
    def test_unknown_card(self, trainer, key):
        with pytest.raises(UnknownCardError):
            trainer.manual_unlock("tones", key)


class TestPreferences:
    def test_update_persists(self, trainer, store, make_trainer):
        trainer.update_preferences(session_size=7, show_reference_on="always")

        assert store.load(PREFERENCES_KEY)["session_size"] == 7
        assert make_trainer().preferences.show_reference_on == "always"

    def test_invalid_update_keeps_previous(self, trainer):
        with pytest.raises(ValueError):
            trainer.update_preferences(session_size=0)
        assert trainer.preferences.session_size == 20


class TestBundles:
    def test_export_import_round_trip(self, trainer, clock, domains, player, rng):
        trainer.start_session("tones", size=3)
        _play_through(trainer, clock)
        trainer.update_preferences(session_size=9)
        text = trainer.export_bundle()

        other = Trainer(MemoryStore(), audio=player, domains=domains, clock=clock, rng=rng)
        other.import_bundle(text)

        assert other.preferences.session_size == 9
        assert other.stats.total_sessions == 1
        for key in (A_UP, B_UP):
            assert other.domain("tones").deck.get(key) == trainer.domain("tones").deck.get(key)

    def test_import_without_version_leaves_state_untouched(self, trainer, store, clock):
        trainer.start_session("tones", size=2)
        _play_through(trainer, clock)
        before_export = trainer.export_bundle()
        before_store = store.load(domain_key("tones"))

        bundle = json.loads(before_export)
        del bundle["version"]
        bundle["preferences"]["session_size"] = 99
        with pytest.raises(InvalidBundleError):
            trainer.import_bundle(json.dumps(bundle))

        assert trainer.export_bundle() == before_export
        assert store.load(domain_key("tones")) == before_store

    def test_import_fills_missing_domains_with_defaults(self, trainer, clock):
        trainer.manual_unlock("blocks", "z")
        bundle = json.loads(trainer.export_bundle())
        del bundle["domains"]["blocks"]

        trainer.import_bundle(json.dumps(bundle))

        assert trainer.domain("blocks").deck.get(CardKey("z", "block")).is_locked
        assert not trainer.domain("blocks").deck.get(CardKey("x", "block")).is_locked


class TestReset:
    def test_reset_forgets_everything(self, trainer, store, clock):
        trainer.start_session("tones", size=2)
        _play_through(trainer, clock)
        trainer.update_preferences(session_size=5)

        trainer.reset()

        assert trainer.stats.total_sessions == 0
        assert trainer.preferences.session_size == 20
        assert trainer.domain("tones").deck.get(A_UP).total_answers == 0
        assert store.load(STATS_KEY)["total_sessions"] == 0
