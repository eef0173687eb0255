"""
Progression: Tiered Unlock Engine.

Decides which locked cards become practiceable. Two gates exist:

1. Variant ladder (per item): once an item's current variant is mastered
   and seasoned, its next variant opens (ascending -> descending -> harmonic).
2. Unlock tiers (per catalog stage): once every card of the current tier is
   seasoned and the tier's average mastery reaches its threshold, the next
   tier's items open in their entry variant.

Ladder unlocks always take precedence: tiers are only evaluated when no
item is ready for a harder variant.

Evaluation (peek) is side-effect free so pending unlocks can be offered to
the learner for confirmation; apply re-evaluates and commits.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from ..errors import UnknownCardError
from .card import CardKey, ReviewCard
from .deck import Deck
from .domain import SEASONING_MIN_ANSWERS, UnlockTier


@dataclass
class TierProgress:
    """Display summary of one unlock tier."""

    index: int
    tier: UnlockTier
    unlocked: bool
    cards: list[ReviewCard]
    average_mastery: float
    seasoned: int
    members: int


class Progression:
    """
    Gated state machine over a domain's unlock tiers.

    State is a single integer, the highest fully unlocked tier index.
    """

    def __init__(self, deck: Deck, unlocked_tier_index: int = -1, now: datetime | None = None):
        """
        Initialize the progression.

        Args:
            deck: Deck whose cards are unlocked
            unlocked_tier_index: Restored tier index (-1 for a fresh deck)
            now: Reference time for the bootstrap unlock
        """
        self.deck = deck
        self.config = deck.config
        self.unlocked_tier_index = min(unlocked_tier_index, len(self.config.tiers) - 1)

        # A fresh deck always starts with tier 0 practiceable
        if self.unlocked_tier_index < 0:
            for key in self._tier_keys(0):
                self.deck.unlock(key, now)
            self.unlocked_tier_index = 0

    # =========================================================================
    # Evaluation
    # =========================================================================

    def peek(self) -> list[CardKey]:
        """
        Compute the cards that would unlock right now, without changing anything.

        Returns:
            Pending card keys (empty if no gate is open)
        """
        pending, _ = self._evaluate()
        return pending

    def apply(self, now: datetime | None = None) -> list[CardKey]:
        """
        Re-evaluate and commit pending unlocks.

        Safe to call repeatedly; a second call with unchanged state unlocks nothing.

        Returns:
            Keys whose lock state actually changed
        """
        pending, tier_index = self._evaluate()
        unlocked = [key for key in pending if self.deck.unlock(key, now)]

        if tier_index != self.unlocked_tier_index:
            logger.info(
                f"{self.config.name}: tier {self.unlocked_tier_index} -> {tier_index} "
                f"({len(unlocked)} new cards)"
            )
            self.unlocked_tier_index = tier_index
        elif unlocked:
            logger.info(f"{self.config.name}: unlocked variants {[str(k) for k in unlocked]}")

        return unlocked

    def _evaluate(self) -> tuple[list[CardKey], int]:
        """Return (pending keys, tier index after committing them)."""
        pending = self._ladder_candidates()
        if pending:
            return pending, self.unlocked_tier_index

        index = self.unlocked_tier_index
        while index + 1 < len(self.config.tiers) and self._tier_gate_open(index):
            index += 1
            locked = [key for key in self._tier_keys(index) if self._is_locked(key)]
            if locked:
                return locked, index
            # Opened tier was fully unlocked by hand; evaluate its own gate
        return [], index

    def _ladder_candidates(self) -> list[CardKey]:
        """Items whose current variant qualifies them for the next one."""
        candidates: dict[CardKey, None] = {}
        for step in self.config.ladder:
            for item in self.config.items:
                source = self.deck.get(CardKey(item.id, step.from_variant))
                target = self.deck.get(CardKey(item.id, step.to_variant))
                if source is None or target is None:
                    continue
                if source.is_locked or not target.is_locked:
                    continue
                if source.mastery >= step.threshold and source.total_answers >= SEASONING_MIN_ANSWERS:
                    candidates[target.key] = None
        return list(candidates)

    def _tier_gate_open(self, index: int) -> bool:
        """Whether every active member of tier ``index`` is seasoned and the tier is mastered."""
        tier = self.config.tiers[index]
        members = [card for card in self._tier_cards(index) if not card.is_locked]
        all_seasoned = all(card.total_answers >= tier.min_answers for card in members)
        return all_seasoned and self.deck.average_mastery(members) >= tier.mastery_threshold

    def _tier_keys(self, index: int) -> list[CardKey]:
        return [card.key for card in self._tier_cards(index)]

    def _tier_cards(self, index: int) -> list[ReviewCard]:
        """Entry-variant cards of a tier's items that exist in the deck."""
        cards = []
        for item_id in self.config.tiers[index].items:
            card = self.deck.card(item_id)
            if card is not None:
                cards.append(card)
        return cards

    def _is_locked(self, key: CardKey) -> bool:
        card = self.deck.get(key)
        return card is not None and card.is_locked

    # =========================================================================
    # Manual Overrides
    # =========================================================================

    def manual_unlock(self, key: CardKey, now: datetime | None = None) -> bool:
        """Unlock any card regardless of tier state."""
        if key not in self.deck:
            raise UnknownCardError(f"{self.config.name} has no card {key}")
        return self.deck.unlock(key, now)

    def manual_relock(self, key: CardKey) -> bool:
        """Remove any card from practice regardless of tier state."""
        if key not in self.deck:
            raise UnknownCardError(f"{self.config.name} has no card {key}")
        return self.deck.relock(key)

    # =========================================================================
    # Summary
    # =========================================================================

    def tier_summary(self) -> list[TierProgress]:
        """Per-tier unlock status and aggregate mastery for display."""
        summary = []
        for index, tier in enumerate(self.config.tiers):
            members = self._tier_cards(index)
            cards = [card for card in self.deck if card.item_id in tier.items]
            summary.append(
                TierProgress(
                    index=index,
                    tier=tier,
                    unlocked=index <= self.unlocked_tier_index,
                    cards=cards,
                    average_mastery=self.deck.average_mastery(members),
                    seasoned=sum(1 for card in members if card.total_answers >= tier.min_answers),
                    members=len(members),
                )
            )
        return summary

    def to_dict(self) -> dict[str, int]:
        return {"unlocked_tier_index": self.unlocked_tier_index}
