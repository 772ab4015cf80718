"""
Deck Composition Store.

The authoritative in-memory deck state for one editing session. Every
mutator asks deck_rules how much fits before touching the deck, so the
stored deck never exceeds a cap through this API.

INVARIANTS:
1. Mutators never raise for rule rejections; they return MutationResult
2. Unknown entry ids raise UnknownEntryError (caller bug)
3. Totals are computed from the entries on every call
4. add_entry merges into the existing stack for the same card/edition/section
"""

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

from duelvault.models.card import CardIdentity, DeckSection, Edition
from duelvault.models.deck import Deck, DeckCardEntry
from duelvault.models.failure import UnknownEntryError
from duelvault.models.inventory import InventoryIndex
from duelvault.models.mutation import ClampReason, MutationResult
from duelvault.models.violation import ValidationReport, ValidationViolation
from duelvault.services.deck_rules import (
    NO_PENDING,
    BanlistLookup,
    Headroom,
    Pending,
    addition_headroom,
    catalog_banlist_lookup,
)
from duelvault.services.deck_validator import build_report, validate

if TYPE_CHECKING:
    from duelvault.services.reconciliation import ReconciliationResult

logger = logging.getLogger(__name__)


class DeckStore:
    """
    Mutable deck state plus the collaborators needed to clamp mutations.

    Usage:
        store = DeckStore(deck, inventory)
        result = store.add_entry(card, 3, edition=edition)
        if result.clamped:
            show(result.reason, result.unfulfilled)
    """

    def __init__(
        self,
        deck: Deck,
        inventory: InventoryIndex,
        banlist_lookup: BanlistLookup = catalog_banlist_lookup,
    ) -> None:
        self._deck = deck
        self._inventory = inventory
        self._banlist_lookup = banlist_lookup

    @property
    def deck(self) -> Deck:
        return self._deck

    @property
    def inventory(self) -> InventoryIndex:
        return self._inventory

    @property
    def banlist_lookup(self) -> BanlistLookup:
        return self._banlist_lookup

    def headroom(
        self,
        card: CardIdentity,
        section: DeckSection,
        edition: Edition | None = None,
        pending: Pending = NO_PENDING,
    ) -> Headroom:
        """How many more copies of card fit in section."""
        return addition_headroom(
            self._deck,
            self._inventory,
            card,
            section,
            edition=edition,
            pending=pending,
            banlist_lookup=self._banlist_lookup,
        )

    # =========================================================================
    # MUTATORS
    # =========================================================================

    def add_entry(
        self,
        card: CardIdentity,
        quantity: int,
        section: DeckSection | None = None,
        edition: Edition | None = None,
    ) -> MutationResult:
        """
        Add copies of a card, clamped to every applicable cap.

        Increments the existing stack for the same edition (or, for
        card-level adds, the same card name) in the section, otherwise
        appends a new entry.

        Args:
            card: Resolved card to add
            quantity: Requested copies (> 0)
            section: Target section; derived from the card type when omitted
            edition: Printing to tie the copies to (None for card-level)

        Returns:
            MutationResult with the applied quantity and, when less than
            requested, the binding constraint.
        """
        if quantity <= 0:
            return MutationResult.reject(quantity, ClampReason.INVALID_QUANTITY)

        target = section if section is not None else card.section
        headroom = self.headroom(card, target, edition)
        applied = headroom.clamp(quantity)
        reason = headroom.reason if applied < quantity else None

        if applied == 0:
            logger.info(
                "Rejected add of %s to %s deck: %s",
                card.name,
                target.value,
                headroom.reason.value,
                extra={"requested": quantity},
            )
            return MutationResult.reject(quantity, headroom.reason)

        entry = self._find_stack(card, edition, target)
        if entry is None:
            entry = DeckCardEntry(
                entry_id=self._deck.next_entry_id(),
                card=card,
                quantity=applied,
                section=target,
                edition=edition,
            )
            self._deck.section_entries(target).append(entry)
        else:
            entry.quantity += applied

        if reason is not None:
            logger.info(
                "Clamped add of %s: %d of %d applied (%s)",
                card.name,
                applied,
                quantity,
                reason.value,
            )
        return MutationResult(
            requested=quantity, applied=applied, reason=reason, entry_id=entry.entry_id
        )

    def remove_entry(self, entry_id: int) -> DeckCardEntry:
        """
        Remove an entry outright.

        Raises:
            UnknownEntryError: If the deck has no such entry
        """
        entry = self._require_entry(entry_id)
        self._deck.section_entries(entry.section).remove(entry)
        logger.debug("Removed entry %d (%s x%d)", entry_id, entry.card.name, entry.quantity)
        return entry

    def change_quantity(self, entry_id: int, delta: int) -> MutationResult:
        """
        Change an entry's quantity by delta.

        Decreases always apply; an entry reaching 0 or below is removed.
        Increases apply fully or not at all.

        Raises:
            UnknownEntryError: If the deck has no such entry
        """
        entry = self._require_entry(entry_id)

        if delta == 0:
            return MutationResult(requested=0, applied=0, entry_id=entry_id)

        if delta < 0:
            if entry.quantity + delta <= 0:
                self._deck.section_entries(entry.section).remove(entry)
                logger.debug("Entry %d dropped to zero and was removed", entry_id)
            else:
                entry.quantity += delta
            return MutationResult(requested=delta, applied=delta, entry_id=entry_id)

        headroom = self.headroom(entry.card, entry.section, entry.edition)
        if delta > headroom.available:
            logger.info(
                "Rejected +%d on entry %d (%s): %s",
                delta,
                entry_id,
                entry.card.name,
                headroom.reason.value,
            )
            return MutationResult.reject(delta, headroom.reason, entry_id=entry_id)

        entry.quantity += delta
        return MutationResult(requested=delta, applied=delta, entry_id=entry_id)

    def clear(self) -> None:
        """Empty both sections."""
        self._deck.main.clear()
        self._deck.extra.clear()

    def replace_sections(self, entries: Mapping[DeckSection, Iterable[DeckCardEntry]]) -> None:
        """
        Replace whole sections in one step.

        Sections absent from the mapping are left untouched. Entries are
        stored as given, so callers must pass entry ids that do not clash
        with the untouched sections.
        """
        for section, new_entries in entries.items():
            target = self._deck.section_entries(section)
            target[:] = list(new_entries)

    def apply(self, result: "ReconciliationResult") -> None:
        """Install the sections a reconciliation produced."""
        self.replace_sections(
            {section: result.deck.section_entries(section) for section in result.sections}
        )
        logger.info(
            "Applied reconciliation to deck %s",
            self._deck.id,
            extra={
                "main_count": self._deck.total(DeckSection.MAIN),
                "extra_count": self._deck.total(DeckSection.EXTRA),
                "unfulfilled": len(result.unfulfilled),
            },
        )

    # =========================================================================
    # READ
    # =========================================================================

    def validate(self) -> list[ValidationViolation]:
        return validate(self._deck, self._inventory, self._banlist_lookup)

    def report(self) -> ValidationReport:
        return build_report(self._deck, self._inventory, self._banlist_lookup)

    def snapshot(self) -> Deck:
        return self._deck.snapshot()

    def _find_stack(
        self, card: CardIdentity, edition: Edition | None, section: DeckSection
    ) -> DeckCardEntry | None:
        for entry in self._deck.section_entries(section):
            if entry.holds(card, edition, section):
                return entry
        return None

    def _require_entry(self, entry_id: int) -> DeckCardEntry:
        entry = self._deck.find_entry(entry_id)
        if entry is None:
            raise UnknownEntryError(entry_id)
        return entry
