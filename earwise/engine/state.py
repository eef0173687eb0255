"""Per-domain engine state: the deck, its progression and restore logic."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger

from .card import CardKey, ReviewCard
from .deck import Deck
from .domain import DomainConfig
from .progression import Progression


@dataclass
class DomainState:
    """Deck and Progression for one practice domain."""

    config: DomainConfig
    deck: Deck
    progression: Progression
    unlock_prompt_pending: bool = False

    @property
    def name(self) -> str:
        return self.config.name

    @classmethod
    def fresh(cls, config: DomainConfig, now: datetime | None = None) -> DomainState:
        """New deck with tier 0 unlocked."""
        deck = Deck(config)
        return cls(config=config, deck=deck, progression=Progression(deck, now=now))

    @classmethod
    def restore(cls, config: DomainConfig, data: dict[str, Any], now: datetime | None = None) -> DomainState:
        """
        Rebuild state from a validated snapshot dictionary.

        Cards whose keys are not in the current catalog are dropped.

        Args:
            config: Current domain configuration
            data: ``DomainSnapshot.model_dump()`` output
            now: Reference time for bootstrap unlocks

        Returns:
            Restored DomainState
        """
        deck = Deck(config)
        dropped = 0
        for raw_key, card_data in data.get("cards", {}).items():
            if not deck.replace(ReviewCard.from_dict(card_data)):
                dropped += 1
                logger.debug(f"Ignoring stored card '{raw_key}' not in {config.name} catalog")
        if dropped:
            logger.info(f"{config.name}: dropped {dropped} stored cards outside the catalog")

        tier_index = data.get("progression", {}).get("unlocked_tier_index", -1)
        progression = Progression(deck, unlocked_tier_index=tier_index, now=now)
        return cls(
            config=config,
            deck=deck,
            progression=progression,
            unlock_prompt_pending=bool(data.get("unlock_prompt_pending", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.config.name,
            "cards": {str(card.key): card.to_dict() for card in self.deck},
            "progression": self.progression.to_dict(),
            "unlock_prompt_pending": self.unlock_prompt_pending,
        }

    def parse_key(self, text: str) -> CardKey:
        """Resolve ``item`` or ``item:variant`` to a card key of this domain."""
        if ":" in text:
            return CardKey.parse(text)
        return CardKey(text, self.config.entry_variant)
