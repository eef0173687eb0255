"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from earwise.audio import SilentPlayer  # noqa: E402
from earwise.engine.domain import CatalogItem, DomainConfig, LadderStep, UnlockTier  # noqa: E402
from earwise.storage.store import MemoryStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# =============================================================================
# Time
# =============================================================================

START = datetime(2026, 3, 2, 9, 0, 0)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """Clock fixed at 2026-03-02 09:00 until advanced."""
    return FakeClock()


@pytest.fixture
def now(clock):
    return clock.now


@pytest.fixture
def rng():
    return random.Random(1234)


# =============================================================================
# Domains
# =============================================================================


@pytest.fixture
def tones_domain():
    """
    Four items, two variants, three tiers and a one-step ladder.

    Tier 0: a, b    Tier 1: c    Tier 2: d
    """
    return DomainConfig(
        name="tones",
        title="Tones",
        items=(
            CatalogItem("a", "Tone A", (1,)),
            CatalogItem("b", "Tone B", (2,)),
            CatalogItem("c", "Tone C", (3,)),
            CatalogItem("d", "Tone D", (4,)),
        ),
        variants=("up", "down"),
        tiers=(
            UnlockTier(("a", "b"), 0.60),
            UnlockTier(("c",), 0.60),
            UnlockTier(("d",), 0.65),
        ),
        ladder=(LadderStep("up", "down", 0.70),),
    )


@pytest.fixture
def blocks_domain():
    """Single-variant domain with no ladder: x | y | z."""
    return DomainConfig(
        name="blocks",
        title="Blocks",
        items=(
            CatalogItem("x", "Block X", (0, 4, 7)),
            CatalogItem("y", "Block Y", (0, 3, 7)),
            CatalogItem("z", "Block Z", (0, 3, 6)),
        ),
        variants=("block",),
        tiers=(
            UnlockTier(("x",), 0.60),
            UnlockTier(("y",), 0.60),
            UnlockTier(("z",), 0.60),
        ),
    )


@pytest.fixture
def domains(tones_domain, blocks_domain):
    return {tones_domain.name: tones_domain, blocks_domain.name: blocks_domain}


def _season(card, mastery: float, answers: int = 20) -> None:
    card.mastery = mastery
    card.total_answers = answers


@pytest.fixture
def season():
    """Put a card directly into a practiced state: season(card, mastery, answers=20)."""
    return _season


# =============================================================================
# Collaborators
# =============================================================================


class RecordingSink:
    """PresentationSink that keeps every event."""

    def __init__(self):
        self.progress = []
        self.feedback = []
        self.summaries = []
        self.unlocks = []

    def session_progress(self, progress):
        self.progress.append(progress)

    def answer_feedback(self, feedback):
        self.feedback.append(feedback)

    def session_summary(self, summary):
        self.summaries.append(summary)

    def unlocks_applied(self, domain, keys):
        self.unlocks.append((domain, list(keys)))


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def player():
    return SilentPlayer()


@pytest.fixture
def store():
    return MemoryStore()
