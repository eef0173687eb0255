"""
Bundled practice domains.

Each module defines one DomainConfig; the engine treats them identically.
"""

from __future__ import annotations

from ..engine.domain import DomainConfig
from ..errors import UnknownDomainError
from .chords import CHORDS_DOMAIN
from .intervals import INTERVALS_DOMAIN
from .progressions import PROGRESSIONS_DOMAIN

DEFAULT_DOMAINS: dict[str, DomainConfig] = {
    domain.name: domain for domain in (INTERVALS_DOMAIN, CHORDS_DOMAIN, PROGRESSIONS_DOMAIN)
}


def get_domain(name: str) -> DomainConfig:
    """Look up a bundled domain by name."""
    try:
        return DEFAULT_DOMAINS[name]
    except KeyError:
        raise UnknownDomainError(f"Unknown domain '{name}'. Choose from: {', '.join(DEFAULT_DOMAINS)}") from None


__all__ = [
    "DEFAULT_DOMAINS",
    "INTERVALS_DOMAIN",
    "CHORDS_DOMAIN",
    "PROGRESSIONS_DOMAIN",
    "get_domain",
]
