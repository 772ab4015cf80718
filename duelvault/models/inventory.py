"""
Collection Inventory Index - read-only view over a user's owned editions.

INVARIANT: Only editions with quantity > 0 appear in the index.
Zero and negative quantities are dropped at construction time.

INVARIANT: The index never mutates after construction. The surrounding
application refreshes it by building a new one.

An index may also be "unavailable" (the collection service did not answer).
Lookups then return 0 and `available` is False, so dependent checks can
degrade explicitly instead of treating the user as owning nothing.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from duelvault.models.card import CardIdentity, Edition, name_key


@dataclass(frozen=True, slots=True)
class OwnedEdition:
    """
    One owned printing of a card.

    Attributes:
        card: Resolved card identity of the printing
        edition: The printing
        quantity: Copies owned of this printing
    """

    card: CardIdentity
    edition: Edition
    quantity: int


@dataclass(frozen=True, slots=True)
class InventoryIndex:
    """
    Immutable per-user ownership index.

    Answers two questions:
        - how many copies of edition E are owned
        - how many copies of card name N are owned across all editions

    Usage:
        index = InventoryIndex.from_owned(owned_editions)
        index.owned_by_edition(edition)
        index.owned_by_card_name("Dark Magician")
    """

    _by_edition: dict[Edition, int] = field(default_factory=dict)
    _by_key: dict[str, int] = field(default_factory=dict)
    _editions_by_key: dict[str, tuple[Edition, ...]] = field(default_factory=dict)
    _cards_by_edition: dict[Edition, CardIdentity] = field(default_factory=dict)
    available: bool = True

    @classmethod
    def from_owned(cls, owned: Iterable[OwnedEdition]) -> "InventoryIndex":
        """
        Build the index from owned edition records.

        Duplicate records for one edition are summed. Records with
        quantity <= 0 are skipped.
        """
        by_edition: dict[Edition, int] = {}
        cards: dict[Edition, CardIdentity] = {}
        for record in owned:
            if record.quantity <= 0:
                continue
            by_edition[record.edition] = by_edition.get(record.edition, 0) + record.quantity
            cards.setdefault(record.edition, record.card)

        by_key: dict[str, int] = {}
        grouped: dict[str, list[Edition]] = {}
        for edition, quantity in by_edition.items():
            key = cards[edition].key
            by_key[key] = by_key.get(key, 0) + quantity
            grouped.setdefault(key, []).append(edition)

        # Largest holdings first; ties keep insertion order (sort is stable)
        editions_by_key = {
            key: tuple(sorted(editions, key=lambda e: -by_edition[e]))
            for key, editions in grouped.items()
        }

        return cls(
            _by_edition=by_edition,
            _by_key=by_key,
            _editions_by_key=editions_by_key,
            _cards_by_edition=cards,
        )

    @classmethod
    def unavailable(cls) -> "InventoryIndex":
        """Index standing in for a collection service that did not respond."""
        return cls(available=False)

    def __contains__(self, edition: Edition) -> bool:
        return edition in self._by_edition

    def __len__(self) -> int:
        """Number of distinct owned editions."""
        return len(self._by_edition)

    def __iter__(self) -> Iterator[Edition]:
        return iter(self._by_edition)

    def owned_by_edition(self, edition: Edition) -> int:
        """Copies owned of one edition (0 if not owned)."""
        return self._by_edition.get(edition, 0)

    def owned_by_card_name(self, name: str) -> int:
        """Copies owned of a card name, summed across all editions."""
        return self._by_key.get(name_key(name), 0)

    def owned_by_key(self, key: str) -> int:
        """Same as owned_by_card_name, for an already-normalized key."""
        return self._by_key.get(key, 0)

    def editions_for_key(self, key: str) -> list[tuple[Edition, int]]:
        """Owned editions of a card name, largest holdings first."""
        editions = self._editions_by_key.get(key, ())
        return [(edition, self._by_edition[edition]) for edition in editions]

    def card_for_edition(self, edition: Edition) -> CardIdentity | None:
        """Card identity of an owned edition, if owned."""
        return self._cards_by_edition.get(edition)

    def cards(self) -> list[tuple[CardIdentity, int]]:
        """
        One (card, total owned) pair per card name.

        The first-seen identity represents the name.
        """
        seen: dict[str, CardIdentity] = {}
        for card in self._cards_by_edition.values():
            seen.setdefault(card.key, card)
        return [(card, self._by_key[key]) for key, card in seen.items()]

    def total_copies(self) -> int:
        """Total owned copies across all editions."""
        return sum(self._by_edition.values())

    def unique_cards(self) -> int:
        """Number of distinct card names owned."""
        return len(self._by_key)
