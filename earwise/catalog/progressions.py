"""
Chord-progression catalog.

Each item's pitch is a sequence of (root_offset, quality) steps. Offsets are
semitones from a key root chosen at playback time and may be negative for a
descending bass.
"""

from __future__ import annotations

from ..engine.domain import CatalogItem, DomainConfig, UnlockTier

LISTEN = "listen"

PROGRESSIONS = (
    CatalogItem("pop", "Pop", ((0, "major"), (7, "major"), (9, "minor"), (5, "major")), short="I-V-vi-IV"),
    CatalogItem("jazz", "Jazz", ((2, "min7"), (7, "dom7"), (0, "maj7"), (9, "min7")), short="ii-V-I-vi"),
    CatalogItem("fifties", "50s", ((0, "major"), (9, "minor"), (5, "major"), (7, "major")), short="I-vi-IV-V"),
    CatalogItem("folk", "Folk", ((0, "major"), (5, "major"), (7, "major"), (0, "major")), short="I-IV-V-I"),
    CatalogItem(
        "minorpop", "Minor Pop", ((9, "minor"), (5, "major"), (0, "major"), (7, "major")), short="vi-IV-I-V"
    ),
    CatalogItem(
        "andalusian", "Andalusian", ((0, "minor"), (-2, "major"), (-4, "major"), (-5, "major")), short="i-VII-VI-V"
    ),
    CatalogItem("rock", "Rock", ((0, "major"), (10, "major"), (5, "major"), (0, "major")), short="I-bVII-IV-I"),
    CatalogItem("blues", "Blues", ((0, "dom7"), (5, "dom7"), (0, "dom7"), (7, "dom7")), short="I7-IV7-I7-V7"),
)

# Most aurally distinct pairs first
TIERS = (
    UnlockTier(("pop", "jazz"), 0.62),
    UnlockTier(("fifties", "folk"), 0.62),
    UnlockTier(("minorpop", "andalusian"), 0.65),
    UnlockTier(("rock", "blues"), 0.65),
)

PROGRESSIONS_DOMAIN = DomainConfig(
    name="progressions",
    title="Chord Progressions",
    items=PROGRESSIONS,
    variants=(LISTEN,),
    tiers=TIERS,
)
