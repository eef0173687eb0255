"""
Exception hierarchy for earwise.

Recoverable conditions (missing or malformed saved state, answers outside the
question protocol) are handled where they occur and never raised to callers.
The exceptions here cover the failures a caller has to act on.
"""

from __future__ import annotations


class EarwiseError(Exception):
    """Base class for all earwise errors."""


class InvalidBundleError(EarwiseError):
    """An export bundle is missing its version or its core deck data."""


class UnknownDomainError(EarwiseError, KeyError):
    """A practice domain name is not registered with the trainer."""


class UnknownCardError(EarwiseError, KeyError):
    """A card key does not exist in the domain's deck."""


class StorageError(EarwiseError):
    """A snapshot store could not write or delete a payload."""


class AudioError(EarwiseError):
    """The audio collaborator failed to play an item."""
