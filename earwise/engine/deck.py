"""
Deck: Card Collection for One Practice Domain.

Creates every card up front (catalog items x applicable variants), all
locked. Membership never changes afterwards; cards are only locked and
unlocked.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import datetime

from loguru import logger

from .card import CardKey, ReviewCard
from .domain import DomainConfig


class Deck:
    """
    Owns all ReviewCards of one domain.

    Cards are keyed by CardKey and kept in catalog order, variants in
    domain order.
    """

    def __init__(self, config: DomainConfig):
        """
        Build the full locked deck.

        Args:
            config: Domain catalog, variants and tiers
        """
        self.config = config
        self._cards: dict[CardKey, ReviewCard] = {}
        for item in config.items:
            for variant in config.variants_for(item):
                key = CardKey(item.id, variant)
                self._cards[key] = ReviewCard(key=key)

    def __iter__(self) -> Iterator[ReviewCard]:
        return iter(self._cards.values())

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, key: object) -> bool:
        return key in self._cards

    def keys(self) -> list[CardKey]:
        return list(self._cards)

    def get(self, key: CardKey) -> ReviewCard | None:
        return self._cards.get(key)

    def card(self, item_id: str, variant: str | None = None) -> ReviewCard | None:
        """Look up a card, defaulting to the domain's entry variant."""
        return self._cards.get(CardKey(item_id, variant or self.config.entry_variant))

    def replace(self, card: ReviewCard) -> bool:
        """
        Swap in restored state for an existing key.

        Returns:
            False (and leaves the deck untouched) if the key is not in the catalog
        """
        if card.key not in self._cards:
            logger.debug(f"Dropping card outside catalog '{self.config.name}': {card.key}")
            return False
        self._cards[card.key] = card
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    def active_cards(self) -> list[ReviewCard]:
        """All unlocked cards."""
        return [card for card in self._cards.values() if not card.is_locked]

    def due_cards(self, now: datetime | None = None) -> list[ReviewCard]:
        """All unlocked cards past their due date."""
        now = now or datetime.now()
        return [card for card in self._cards.values() if card.is_due(now)]

    @staticmethod
    def average_mastery(cards: Iterable[ReviewCard]) -> float:
        """Mean mastery; an empty group never blocks progress, so it counts as 1.0."""
        values = [card.mastery for card in cards]
        if not values:
            return 1.0
        return sum(values) / len(values)

    # =========================================================================
    # Lock State
    # =========================================================================

    def unlock(self, key: CardKey, now: datetime | None = None) -> bool:
        """Unlock a card. Returns whether anything changed."""
        card = self._cards.get(key)
        if card is None:
            return False
        return card.unlock(now)

    def relock(self, key: CardKey) -> bool:
        """Relock a card, keeping its mastery. Returns whether anything changed."""
        card = self._cards.get(key)
        if card is None:
            return False
        return card.relock()
