"""Interval catalog: twelve intervals, three directions, seven tiers."""

from __future__ import annotations

from ..engine.domain import CatalogItem, DomainConfig, LadderStep, UnlockTier

ASCENDING = "ascending"
DESCENDING = "descending"
HARMONIC = "harmonic"

INTERVALS = (
    CatalogItem("m2", "Minor 2nd", (1,), short="m2"),
    CatalogItem("M2", "Major 2nd", (2,), short="M2"),
    CatalogItem("m3", "Minor 3rd", (3,), short="m3"),
    CatalogItem("M3", "Major 3rd", (4,), short="M3"),
    CatalogItem("P4", "Perfect 4th", (5,), short="P4"),
    CatalogItem("TT", "Tritone", (6,), short="TT"),
    CatalogItem("P5", "Perfect 5th", (7,), short="P5"),
    CatalogItem("m6", "Minor 6th", (8,), short="m6"),
    CatalogItem("M6", "Major 6th", (9,), short="M6"),
    CatalogItem("m7", "Minor 7th", (10,), short="m7"),
    CatalogItem("M7", "Major 7th", (11,), short="M7"),
    CatalogItem("P8", "Octave", (12,), short="P8"),
)

# Most distinct sounds first
TIERS = (
    UnlockTier(("P8", "P5"), 0.60),
    UnlockTier(("P4",), 0.60),
    UnlockTier(("M2", "m2"), 0.62),
    UnlockTier(("M3", "m3"), 0.62),
    UnlockTier(("TT",), 0.65),
    UnlockTier(("M6", "m6"), 0.65),
    UnlockTier(("M7", "m7"), 0.65),
)

LADDER = (
    LadderStep(ASCENDING, DESCENDING, 0.70),
    LadderStep(DESCENDING, HARMONIC, 0.75),
)

INTERVALS_DOMAIN = DomainConfig(
    name="intervals",
    title="Intervals",
    items=INTERVALS,
    variants=(ASCENDING, DESCENDING, HARMONIC),
    tiers=TIERS,
    ladder=LADDER,
)
