"""
Validation Violations.

Violations are data. The validator returns every violation it finds and
never decides what the caller does with them.
"""

from dataclasses import dataclass, field
from enum import Enum


class ViolationKind(str, Enum):
    """Classification of deck rule violations."""

    MAIN_DECK_SIZE = "main_deck_size"
    EXTRA_DECK_SIZE = "extra_deck_size"
    COPY_LIMIT = "copy_limit"
    EDITION_OWNERSHIP = "edition_ownership"
    CARD_OWNERSHIP = "card_ownership"
    SECTION_MISMATCH = "section_mismatch"
    EDITION_MISMATCH = "edition_mismatch"
    FORBIDDEN_CARD = "forbidden_card"
    BANLIST_LIMIT = "banlist_limit"

    # Collaborator outages: the check could not run
    INVENTORY_UNAVAILABLE = "inventory_unavailable"
    BANLIST_UNAVAILABLE = "banlist_unavailable"


@dataclass(frozen=True, slots=True)
class ValidationViolation:
    """
    One broken deck rule.

    Attributes:
        kind: Which rule
        detail: Human-readable explanation
        card_name: Offending card name (card-level rules only)
        count: Offending count (section total or copy count)
    """

    kind: ViolationKind
    detail: str
    card_name: str | None = None
    count: int | None = None


@dataclass(frozen=True)
class ValidationReport:
    """Violations plus the section counts shown next to them."""

    violations: tuple[ValidationViolation, ...] = field(default_factory=tuple)
    main_count: int = 0
    extra_count: int = 0

    @property
    def valid(self) -> bool:
        """True only when no violation (including outages) was reported."""
        return len(self.violations) == 0

    def kinds(self) -> set[ViolationKind]:
        return {violation.kind for violation in self.violations}

    def messages(self) -> list[str]:
        return [violation.detail for violation in self.violations]
