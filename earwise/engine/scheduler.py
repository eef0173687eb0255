"""
Session Builder.

Builds the queue for one practice session from a deck:

1. Due cards first, most overdue first (spaced repetition priority)
2. Remaining active cards, weakest mastery first
3. Small pools are cycled to pad the queue up to the session size
4. The whole queue is shuffled so position never reveals priority
"""

from __future__ import annotations

import random
from collections.abc import Collection
from datetime import datetime

from loguru import logger

from .card import ReviewCard
from .deck import Deck

PAD_LIMIT_FACTOR = 3


def build_session(
    deck: Deck,
    session_size: int,
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
    variants: Collection[str] | None = None,
) -> list[ReviewCard]:
    """
    Build a shuffled practice queue.

    Args:
        deck: Deck to draw active cards from
        session_size: Target number of questions
        now: Reference time for due checks
        rng: Random source for the shuffle (module-level random if None)
        variants: Restrict the session to these variants

    Returns:
        Cards in presentation order; empty when nothing is unlocked
    """
    now = now or datetime.now()
    active = deck.active_cards()
    if variants is not None:
        active = [card for card in active if card.variant in variants]
    if not active or session_size < 1:
        return []

    due = sorted((card for card in active if card.is_due(now)), key=lambda c: c.due_date)
    not_due = sorted((card for card in active if not card.is_due(now)), key=lambda c: c.mastery)
    pool = due + not_due

    queue = pool[:session_size]

    # Pad small pools by cycling, bounded so a pool of one still terminates
    padded = 0
    while len(queue) < session_size and padded < len(pool) * PAD_LIMIT_FACTOR:
        queue.append(pool[padded % len(pool)])
        padded += 1

    (rng or random).shuffle(queue)

    logger.debug(
        f"Session built for {deck.config.name}: {len(due)} due + {len(not_due)} practice "
        f"-> {len(queue)} questions"
    )
    return queue
