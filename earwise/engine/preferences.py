"""Learner preferences that shape sessions and feedback."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Literal

ReferencePolicy = Literal["always", "wrong", "never"]

MIN_SESSION_SIZE = 1
MAX_SESSION_SIZE = 200


@dataclass(frozen=True)
class Preferences:
    """Persisted per-learner settings."""

    session_size: int = 20
    auto_play: bool = True
    auto_advance: bool = False
    show_reference_on: ReferencePolicy = "wrong"
    variant_filter: str = "all"

    def __post_init__(self) -> None:
        if not MIN_SESSION_SIZE <= self.session_size <= MAX_SESSION_SIZE:
            raise ValueError(
                f"session_size must be between {MIN_SESSION_SIZE} and {MAX_SESSION_SIZE}, "
                f"got {self.session_size}"
            )
        if self.show_reference_on not in ("always", "wrong", "never"):
            raise ValueError(f"Unknown reference policy: {self.show_reference_on!r}")

    def show_reference(self, correct: bool) -> bool:
        """Whether reference material accompanies feedback for this outcome."""
        if self.show_reference_on == "always":
            return True
        return self.show_reference_on == "wrong" and not correct

    def variants(self) -> tuple[str, ...] | None:
        """Variant filter for the session builder (None means every variant)."""
        if self.variant_filter == "all":
            return None
        return (self.variant_filter,)

    def with_changes(self, **changes: Any) -> Preferences:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
