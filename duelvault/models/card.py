"""
Card Identity Models.

This module defines the three axes of card identity the deck engine works on:

- CardIdentity: the logical card, resolved from the catalog
- Edition: one specific printing of a card (set code + rarity + language)
- DeckSection: the deck zone a card must live in, derived from its type

INVARIANTS:
- CardIdentity and Edition are frozen (immutable after resolution)
- Section is derived from the card's type, never chosen freely
- Grouping and merging always use CardIdentity.key (name-derived),
  never the numeric card id
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


class DeckSection(str, Enum):
    """The two zones of a constructed deck."""

    MAIN = "main"
    EXTRA = "extra"


class Ruleset(str, Enum):
    """Banlist rulesets published by the metadata source."""

    TCG = "tcg"
    OCG = "ocg"
    GOAT = "goat"


class BanlistStatus(str, Enum):
    """Banlist tier of a card within one ruleset."""

    FORBIDDEN = "forbidden"
    LIMITED = "limited"
    SEMI_LIMITED = "semi_limited"
    UNRESTRICTED = "unrestricted"

    @property
    def copy_limit(self) -> int:
        """Maximum copies allowed in a deck under this status."""
        return _BANLIST_COPY_LIMITS[self]

    @classmethod
    def from_label(cls, label: str | None) -> "BanlistStatus":
        """
        Parse a banlist label as published by the metadata source.

        Accepts "Banned"/"Forbidden", "Limited", "Semi-Limited" in any case.
        Missing or unknown labels mean the card is unrestricted.
        """
        if not label:
            return cls.UNRESTRICTED
        normalized = label.strip().lower().replace("-", "_").replace(" ", "_")
        return _BANLIST_LABELS.get(normalized, cls.UNRESTRICTED)


_BANLIST_COPY_LIMITS: dict[BanlistStatus, int] = {
    BanlistStatus.FORBIDDEN: 0,
    BanlistStatus.LIMITED: 1,
    BanlistStatus.SEMI_LIMITED: 2,
    BanlistStatus.UNRESTRICTED: 3,
}

_BANLIST_LABELS: dict[str, BanlistStatus] = {
    "banned": BanlistStatus.FORBIDDEN,
    "forbidden": BanlistStatus.FORBIDDEN,
    "limited": BanlistStatus.LIMITED,
    "semi_limited": BanlistStatus.SEMI_LIMITED,
    "semilimited": BanlistStatus.SEMI_LIMITED,
    "unlimited": BanlistStatus.UNRESTRICTED,
    "unrestricted": BanlistStatus.UNRESTRICTED,
}

# Monster archetypes that are summoned from the extra deck
EXTRA_DECK_ARCHETYPES = ("fusion", "synchro", "xyz", "link")

_EXTRA_DECK_PATTERN = re.compile(r"\b(" + "|".join(EXTRA_DECK_ARCHETYPES) + r")\b", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def name_key(name: str) -> str:
    """
    Stable merge key for a card name.

    Upstream data sometimes resolves one logical card to several ids, and
    spelling of whitespace/case drifts between sources. The key folds both.
    """
    return _WHITESPACE.sub(" ", name).strip().casefold()


def is_extra_deck_type(type_line: str, frame_type: str = "") -> bool:
    """
    Check whether a card type belongs to the extra section.

    The frame type is authoritative when known ("fusion", "xyz", ...);
    otherwise the type line is searched ("Synchro Tuner Monster").
    """
    if frame_type:
        # Pendulum hybrids carry frames like "fusion_pendulum"
        return _EXTRA_DECK_PATTERN.search(frame_type.replace("_", " ")) is not None
    return _EXTRA_DECK_PATTERN.search(type_line) is not None


@dataclass(frozen=True, slots=True)
class CardIdentity:
    """
    A logical card as resolved by the catalog.

    Attributes:
        card_id: Catalog id (display and persistence only, never a merge key)
        name: Card name
        type_line: Human-readable type (e.g., "Effect Monster", "XYZ Monster")
        frame_type: Machine frame type from the metadata source (optional)
        banlist: Ruleset -> banlist status; missing rulesets are unrestricted
    """

    card_id: int
    name: str
    type_line: str
    frame_type: str = ""
    banlist: Mapping[Ruleset, BanlistStatus] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Name-derived merge key."""
        return name_key(self.name)

    @property
    def section(self) -> DeckSection:
        """The only section this card may live in."""
        if is_extra_deck_type(self.type_line, self.frame_type):
            return DeckSection.EXTRA
        return DeckSection.MAIN

    def banlist_status(self, ruleset: Ruleset) -> BanlistStatus:
        """Banlist status under a ruleset (unrestricted when not listed)."""
        return self.banlist.get(ruleset, BanlistStatus.UNRESTRICTED)


@dataclass(frozen=True, slots=True)
class Edition:
    """
    A specific printing of a card.

    Owned quantities are tracked per Edition. Two editions are equal when
    all four identifying fields match.

    Attributes:
        card_id: Catalog id of the printed card
        set_code: Set code as printed (e.g., "LOB-EN001")
        rarity: Rarity label (e.g., "Ultra Rare")
        language: Print language code (EN, FR, DE, IT, PT, SP, JP, KR)
    """

    card_id: int
    set_code: str
    rarity: str
    language: str = "EN"

    def label(self) -> str:
        """Short display label."""
        return f"{self.set_code} {self.rarity} ({self.language})"
