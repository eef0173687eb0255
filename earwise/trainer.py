"""
Trainer: Application Service.

Owns the per-domain engine state, preferences and lifetime stats, and wires
them to the injected collaborators (store, audio player, presentation sink).

All state changes are written through to the store immediately. Store
failures are logged and never interrupt practice; the in-memory state stays
authoritative until the next successful write.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import ValidationError

from .audio import AudioPlayer, SilentPlayer
from .catalog import DEFAULT_DOMAINS
from .engine.card import CardKey
from .engine.domain import DomainConfig
from .engine.preferences import Preferences
from .engine.runner import AnswerFeedback, NullSink, PresentationSink, SessionPhase, SessionRunner
from .engine.scheduler import build_session
from .engine.state import DomainState
from .engine.stats import LifetimeStats
from .errors import StorageError, UnknownCardError, UnknownDomainError
from .storage.bundle import ImportedState, export_bundle, parse_bundle
from .storage.schema import (
    DomainSnapshot,
    PreferencesRecord,
    StatsRecord,
    load_domain_snapshot,
    load_preferences,
    load_stats,
)
from .storage.store import PREFERENCES_KEY, STATS_KEY, SnapshotStore, domain_key


class Trainer:
    """
    Entry point for every learner-facing operation.

    At most one session is active at a time; starting another abandons it.
    """

    def __init__(
        self,
        store: SnapshotStore,
        *,
        audio: AudioPlayer | None = None,
        sink: PresentationSink | None = None,
        domains: Mapping[str, DomainConfig] | None = None,
        clock: Callable[[], datetime] = datetime.now,
        rng: random.Random | None = None,
        default_session_size: int = 20,
    ):
        """
        Initialize the trainer and load saved state.

        Args:
            store: Snapshot store for write-through persistence
            audio: Audio player (silent if None)
            sink: Presentation sink (events discarded if None)
            domains: Domain configurations (bundled catalogs if None)
            clock: Time source
            rng: Random source for session shuffles
            default_session_size: Session size when no preferences are saved
        """
        self.store = store
        self.audio = audio or SilentPlayer()
        self.sink = sink or NullSink()
        self.configs = dict(domains or DEFAULT_DOMAINS)
        self.clock = clock
        self.rng = rng
        self.default_session_size = default_session_size

        self.runner: SessionRunner | None = None
        self.domains: dict[str, DomainState] = {
            name: self._load_domain(config) for name, config in self.configs.items()
        }
        self.preferences = self._load_preferences()
        self.stats = self._load_stats()

    # =========================================================================
    # Loading
    # =========================================================================

    def _load_domain(self, config: DomainConfig) -> DomainState:
        raw = self.store.load(domain_key(config.name))
        if raw is None:
            return DomainState.fresh(config, self.clock())
        try:
            snapshot = load_domain_snapshot(raw, config.name)
        except (ValidationError, ValueError) as exc:
            logger.warning(f"Saved {config.name} state unusable, starting fresh: {exc}")
            return DomainState.fresh(config, self.clock())
        return DomainState.restore(config, snapshot.model_dump(), self.clock())

    def _load_preferences(self) -> Preferences:
        raw = self.store.load(PREFERENCES_KEY)
        if raw is None:
            return Preferences(session_size=self.default_session_size)
        try:
            return _preferences_from_record(load_preferences(raw))
        except (ValidationError, ValueError) as exc:
            logger.warning(f"Saved preferences unusable, using defaults: {exc}")
            return Preferences(session_size=self.default_session_size)

    def _load_stats(self) -> LifetimeStats:
        raw = self.store.load(STATS_KEY)
        if raw is None:
            return LifetimeStats()
        try:
            return LifetimeStats.from_dict(load_stats(raw).model_dump())
        except (ValidationError, ValueError) as exc:
            logger.warning(f"Saved stats unusable, starting over: {exc}")
            return LifetimeStats()

    # =========================================================================
    # Persistence
    # =========================================================================

    def _write(self, key: str, payload: dict[str, Any]) -> None:
        try:
            self.store.save(key, payload)
        except StorageError:
            logger.exception(f"Failed to persist '{key}'")

    def _save_domain(self, state: DomainState) -> None:
        payload = DomainSnapshot.model_validate(state.to_dict()).model_dump(mode="json")
        self._write(domain_key(state.name), payload)

    def _save_preferences(self) -> None:
        payload = PreferencesRecord.model_validate(self.preferences.to_dict()).model_dump(mode="json")
        self._write(PREFERENCES_KEY, payload)

    def _save_stats(self) -> None:
        payload = StatsRecord.model_validate(self.stats.to_dict()).model_dump(mode="json")
        self._write(STATS_KEY, payload)

    def _save_all(self) -> None:
        for state in self.domains.values():
            self._save_domain(state)
        self._save_preferences()
        self._save_stats()

    # =========================================================================
    # Domains
    # =========================================================================

    def domain(self, name: str) -> DomainState:
        """
        Get the state of one domain.

        Raises:
            UnknownDomainError: If the domain is not configured
        """
        try:
            return self.domains[name]
        except KeyError:
            raise UnknownDomainError(f"Unknown domain '{name}'. Choose from: {', '.join(self.domains)}") from None

    def _card_key(self, state: DomainState, key: str | CardKey) -> CardKey:
        if isinstance(key, CardKey):
            return key
        try:
            return state.parse_key(key)
        except ValueError as exc:
            raise UnknownCardError(str(exc)) from exc

    # =========================================================================
    # Sessions
    # =========================================================================

    @property
    def session_active(self) -> bool:
        return self.runner is not None and self.runner.phase is not SessionPhase.ENDED

    def start_session(self, domain: str, size: int | None = None) -> SessionRunner:
        """
        Build a queue and start presenting it.

        Unlocks offered at the end of an earlier session but never confirmed
        or deferred are applied first.

        Args:
            domain: Domain name
            size: Session size (preferences if None)

        Returns:
            The started SessionRunner
        """
        state = self.domain(domain)
        self.end_session()

        if state.unlock_prompt_pending:
            logger.info(f"{state.name}: applying unanswered unlock prompt")
            self.confirm_unlocks(domain)

        variants = self.preferences.variants()
        if variants is not None and not set(variants) & set(state.config.variants):
            variants = None

        now = self.clock()
        queue = build_session(
            state.deck,
            self.preferences.session_size if size is None else size,
            now=now,
            rng=self.rng,
            variants=variants,
        )

        def on_change() -> None:
            self._save_domain(state)
            self._save_stats()

        self.runner = SessionRunner(
            state,
            queue,
            audio=self.audio,
            sink=self.sink,
            stats=self.stats,
            preferences=self.preferences,
            clock=self.clock,
            on_change=on_change,
        )
        self.runner.start()
        return self.runner

    def submit_answer(self, item_id: str) -> AnswerFeedback | None:
        if self.runner is None:
            logger.debug(f"Ignoring answer '{item_id}' with no session")
            return None
        return self.runner.submit_answer(item_id)

    def advance(self) -> bool:
        return self.runner is not None and self.runner.advance()

    def play_current(self) -> bool:
        return self.runner is not None and self.runner.play_current()

    def end_session(self) -> None:
        """Abandon the active session, keeping answers already given."""
        if self.session_active:
            self.runner.abandon()

    # =========================================================================
    # Unlocks
    # =========================================================================

    def pending_unlocks(self, domain: str) -> list[CardKey]:
        return self.domain(domain).progression.peek()

    def confirm_unlocks(self, domain: str) -> list[CardKey]:
        """
        Commit the unlocks the progression currently allows.

        Returns:
            Newly unlocked card keys
        """
        state = self.domain(domain)
        unlocked = state.progression.apply(self.clock())
        state.unlock_prompt_pending = False
        self._save_domain(state)
        if unlocked:
            self.sink.unlocks_applied(state.name, unlocked)
        return unlocked

    def defer_unlocks(self, domain: str) -> None:
        """Decline the unlock prompt; gates are re-evaluated after the next session."""
        state = self.domain(domain)
        state.unlock_prompt_pending = False
        self._save_domain(state)

    def manual_unlock(self, domain: str, key: str | CardKey) -> bool:
        """
        Unlock one card regardless of tier state.

        Raises:
            UnknownCardError: If the key is not in the domain
        """
        state = self.domain(domain)
        changed = state.progression.manual_unlock(self._card_key(state, key), self.clock())
        if changed:
            self._save_domain(state)
        return changed

    def manual_relock(self, domain: str, key: str | CardKey) -> bool:
        """
        Remove one card from practice, keeping its history.

        Raises:
            UnknownCardError: If the key is not in the domain
        """
        state = self.domain(domain)
        changed = state.progression.manual_relock(self._card_key(state, key))
        if changed:
            self._save_domain(state)
        return changed

    # =========================================================================
    # Preferences, Bundles, Reset
    # =========================================================================

    def update_preferences(self, **changes: Any) -> Preferences:
        """
        Change preferences.

        Raises:
            ValueError: If a value is out of range
        """
        self.preferences = self.preferences.with_changes(**changes)
        self._save_preferences()
        logger.info(f"Preferences updated: {changes}")
        return self.preferences

    def export_bundle(self) -> str:
        return export_bundle(self.domains.values(), self.preferences, self.stats, now=self.clock())

    def import_bundle(self, text: str) -> ImportedState:
        """
        Replace all state with a bundle's contents.

        Raises:
            InvalidBundleError: If the bundle is rejected (state is unchanged)
        """
        imported = parse_bundle(text, self.configs)

        self.end_session()
        now = self.clock()
        domains = {}
        for name, config in self.configs.items():
            snapshot = imported.domains.get(name)
            if snapshot is None:
                domains[name] = DomainState.fresh(config, now)
            else:
                domains[name] = DomainState.restore(config, snapshot.model_dump(), now)
        self.domains = domains
        self.preferences = _preferences_from_record(imported.preferences)
        self.stats = LifetimeStats.from_dict(imported.stats.model_dump())
        self._save_all()

        logger.info(f"Imported bundle v{imported.version}")
        return imported

    def reset(self) -> None:
        """Forget everything and start over."""
        self.end_session()
        try:
            self.store.clear()
        except StorageError:
            logger.exception("Failed to clear store")
        now = self.clock()
        self.domains = {name: DomainState.fresh(config, now) for name, config in self.configs.items()}
        self.preferences = Preferences(session_size=self.default_session_size)
        self.stats = LifetimeStats()
        self._save_all()
        logger.info("All progress reset")


def _preferences_from_record(record: PreferencesRecord) -> Preferences:
    return Preferences(**record.model_dump(exclude={"schema_version"}))
