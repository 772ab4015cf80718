"""
Mutation Results.

Rejection is an expected, frequent outcome of deck editing, so mutators
report it as a value instead of raising.
"""

from dataclasses import dataclass
from enum import Enum


class ClampReason(str, Enum):
    """Why a mutation applied less than was requested."""

    SECTION_CAPACITY = "section_capacity"
    COPY_LIMIT = "copy_limit"
    BANLIST_LIMIT = "banlist_limit"
    FORBIDDEN = "forbidden"
    EDITION_OWNERSHIP = "edition_ownership"
    CARD_OWNERSHIP = "card_ownership"
    SECTION_MISMATCH = "section_mismatch"
    EDITION_MISMATCH = "edition_mismatch"
    INVALID_QUANTITY = "invalid_quantity"


@dataclass(frozen=True, slots=True)
class MutationResult:
    """
    Outcome of one mutation.

    Attributes:
        requested: Quantity (or delta) the caller asked for
        applied: Quantity (or delta) actually applied
        reason: Binding constraint when applied != requested
        entry_id: Entry touched by the mutation, if any
    """

    requested: int
    applied: int
    reason: ClampReason | None = None
    entry_id: int | None = None

    @property
    def clamped(self) -> bool:
        """True when less than requested was applied."""
        return self.applied != self.requested

    @property
    def rejected(self) -> bool:
        """True when nothing at all was applied."""
        return self.applied == 0 and self.requested != 0

    @property
    def unfulfilled(self) -> int:
        """The part of the request that was not applied."""
        return self.requested - self.applied

    @classmethod
    def reject(
        cls,
        requested: int,
        reason: ClampReason,
        entry_id: int | None = None,
    ) -> "MutationResult":
        """A result that applied nothing."""
        return cls(requested=requested, applied=0, reason=reason, entry_id=entry_id)
