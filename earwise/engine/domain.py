"""
Domain Configuration.

A practice domain (intervals, chords, progressions, ...) is described
entirely by data:

- CatalogItem: one identifiable sound with its pitch pattern
- UnlockTier: an ordered stage of the catalog gated by aggregate mastery
- LadderStep: a per-item variant transition (e.g. ascending -> descending)
- DomainConfig: the catalog, its variants, tiers and ladder

The engine (Deck, Progression, build_session) is generic over DomainConfig.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

PitchSpec = tuple[Any, ...]

SEASONING_MIN_ANSWERS = 20


@dataclass(frozen=True)
class CatalogItem:
    """One practice item and the pattern handed to the audio player."""

    id: str
    name: str
    pitch: PitchSpec
    short: str = ""
    # Restricts the item to a subset of the domain variants when set
    variants: tuple[str, ...] | None = None

    @property
    def label(self) -> str:
        return self.short or self.id


@dataclass(frozen=True)
class UnlockTier:
    """A stage of the catalog; the next stage opens when this one is learned."""

    items: tuple[str, ...]
    mastery_threshold: float
    min_answers: int = SEASONING_MIN_ANSWERS


@dataclass(frozen=True)
class LadderStep:
    """Per-item transition to a harder variant."""

    from_variant: str
    to_variant: str
    threshold: float


@dataclass(frozen=True)
class DomainConfig:
    """Complete description of one practice domain."""

    name: str
    title: str
    items: tuple[CatalogItem, ...]
    variants: tuple[str, ...]
    tiers: tuple[UnlockTier, ...]
    ladder: tuple[LadderStep, ...] = ()
    _index: dict[str, CatalogItem] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.variants:
            raise ValueError(f"Domain '{self.name}' declares no variants.")
        if not self.tiers:
            raise ValueError(f"Domain '{self.name}' declares no unlock tiers.")

        index: dict[str, CatalogItem] = {}
        for item in self.items:
            if item.id in index:
                raise ValueError(f"Duplicate item id in domain '{self.name}': {item.id}")
            if item.variants is not None:
                unknown = set(item.variants) - set(self.variants)
                if unknown or not item.variants:
                    raise ValueError(f"Item '{item.id}' uses unknown variants: {sorted(unknown)}")
            index[item.id] = item

        for position, tier in enumerate(self.tiers):
            for item_id in tier.items:
                if item_id not in index:
                    raise ValueError(f"Tier {position} of '{self.name}' references unknown item '{item_id}'.")

        for step in self.ladder:
            if step.from_variant not in self.variants or step.to_variant not in self.variants:
                raise ValueError(
                    f"Ladder step {step.from_variant} -> {step.to_variant} uses unknown variants."
                )

        object.__setattr__(self, "_index", index)

    @property
    def entry_variant(self) -> str:
        """Variant that tiers unlock and gate on."""
        return self.variants[0]

    def item(self, item_id: str) -> CatalogItem | None:
        return self._index.get(item_id)

    def has_item(self, item_id: str) -> bool:
        return item_id in self._index

    def variants_for(self, item: CatalogItem) -> tuple[str, ...]:
        """Variants a card is created for, in domain order."""
        if item.variants is None:
            return self.variants
        return tuple(v for v in self.variants if v in item.variants)
