"""Chord-quality catalog: triads, sevenths and inversions played as block chords."""

from __future__ import annotations

from ..engine.domain import CatalogItem, DomainConfig, UnlockTier

BLOCK = "block"

CHORDS = (
    CatalogItem("major", "Major", (0, 4, 7), short="maj"),
    CatalogItem("minor", "Minor", (0, 3, 7), short="min"),
    CatalogItem("diminished", "Diminished", (0, 3, 6), short="dim"),
    CatalogItem("augmented", "Augmented", (0, 4, 8), short="aug"),
    CatalogItem("dom7", "Dominant 7th", (0, 4, 7, 10), short="dom7"),
    CatalogItem("maj7", "Major 7th", (0, 4, 7, 11), short="maj7"),
    CatalogItem("min7", "Minor 7th", (0, 3, 7, 10), short="min7"),
    # Inversions: lowest note first
    CatalogItem("major_inv1", "Major (1st inv)", (0, 3, 8), short="maj1"),
    CatalogItem("major_inv2", "Major (2nd inv)", (0, 5, 9), short="maj2"),
    CatalogItem("minor_inv1", "Minor (1st inv)", (0, 4, 9), short="min1"),
    CatalogItem("minor_inv2", "Minor (2nd inv)", (0, 5, 8), short="min2"),
)

TIERS = (
    UnlockTier(("major", "minor"), 0.60),
    UnlockTier(("diminished",), 0.62),
    UnlockTier(("augmented",), 0.65),
    UnlockTier(("dom7", "maj7"), 0.65),
    UnlockTier(("min7",), 0.68),
    UnlockTier(("major_inv1", "minor_inv1"), 0.68),
    UnlockTier(("major_inv2", "minor_inv2"), 0.70),
)

CHORDS_DOMAIN = DomainConfig(
    name="chords",
    title="Chord Qualities",
    items=CHORDS,
    variants=(BLOCK,),
    tiers=TIERS,
)
