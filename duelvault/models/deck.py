"""
Deck Composition Models.

A Deck holds two ordered lists of DeckCardEntry: the main section and the
extra section. Totals are always computed from the entries, never cached.

INVARIANT: Entry ids are unique within a deck.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field, replace

from duelvault.models.card import CardIdentity, DeckSection, Edition, Ruleset

# Deck construction rules
MAIN_DECK_MIN = 40
MAIN_DECK_MAX = 60
EXTRA_DECK_MAX = 15
MAX_COPIES_PER_CARD = 3

SECTION_LIMITS: dict[DeckSection, tuple[int, int]] = {
    DeckSection.MAIN: (MAIN_DECK_MIN, MAIN_DECK_MAX),
    DeckSection.EXTRA: (0, EXTRA_DECK_MAX),
}


@dataclass
class DeckCardEntry:
    """
    One stack of cards in a deck section.

    Attributes:
        entry_id: Unique within the owning deck
        card: Snapshot of the resolved card identity
        quantity: Copies in this stack (1-3)
        section: Section this stack lives in
        edition: Printing this stack is tied to (None for card-level entries)
    """

    entry_id: int
    card: CardIdentity
    quantity: int
    section: DeckSection
    edition: Edition | None = None

    @property
    def card_id(self) -> int:
        return self.card.card_id

    @property
    def key(self) -> str:
        """Name-derived merge key of the card."""
        return self.card.key

    def holds(self, card: CardIdentity, edition: Edition | None, section: DeckSection) -> bool:
        """True if this entry is the stack for (card, edition) in section."""
        if self.section != section or self.edition != edition:
            return False
        return edition is not None or self.key == card.key


@dataclass
class Deck:
    """
    A constructed deck.

    Attributes:
        id: Persistence id (None until saved)
        owner_id: Id of the owning user
        name: Deck name
        is_public: Whether other users may view the deck
        respect_banlist: Banlist enforcement flag
        ruleset: Banlist ruleset used when enforcement is on
        main: Ordered main-section entries
        extra: Ordered extra-section entries
    """

    id: int | None
    owner_id: int
    name: str
    is_public: bool = True
    respect_banlist: bool = True
    ruleset: Ruleset = Ruleset.TCG
    main: list[DeckCardEntry] = field(default_factory=list)
    extra: list[DeckCardEntry] = field(default_factory=list)

    def section_entries(self, section: DeckSection) -> list[DeckCardEntry]:
        """The live entry list of one section."""
        return self.main if section == DeckSection.MAIN else self.extra

    def entries(self) -> Iterator[DeckCardEntry]:
        """Iterate over all entries, main section first."""
        yield from self.main
        yield from self.extra

    def total(self, section: DeckSection) -> int:
        """Total copies in a section."""
        return sum(entry.quantity for entry in self.section_entries(section))

    def quantity_for_key(self, key: str) -> int:
        """Copies of a card name across both sections."""
        return sum(entry.quantity for entry in self.entries() if entry.key == key)

    def quantity_for_edition(self, edition: Edition) -> int:
        """Copies assigned to a specific edition across all entries."""
        return sum(entry.quantity for entry in self.entries() if entry.edition == edition)

    def find_entry(self, entry_id: int) -> DeckCardEntry | None:
        for entry in self.entries():
            if entry.entry_id == entry_id:
                return entry
        return None

    def next_entry_id(self) -> int:
        """An entry id not used by any current entry."""
        return max((entry.entry_id for entry in self.entries()), default=0) + 1

    def merged_card_list(self) -> list[tuple[str, int]]:
        """
        Card names with combined quantity, in first-appearance order.

        This is the shape handed to the automated-proposal provider.
        """
        merged: dict[str, tuple[str, int]] = {}
        for entry in self.entries():
            name, qty = merged.get(entry.key, (entry.card.name, 0))
            merged[entry.key] = (name, qty + entry.quantity)
        return list(merged.values())

    def snapshot(self) -> "Deck":
        """Independent copy; mutating it never affects this deck."""
        return replace(
            self,
            main=[replace(entry) for entry in self.main],
            extra=[replace(entry) for entry in self.extra],
        )
