"""
Staging Buffer.

A cancelable overlay of pending additions used while a user selects
quantities across many editions. The committed deck is never touched until
commit().

Increases are checked with the same headroom computation the store uses,
counting pending selections on top of committed state, so every staged
quantity is still addable when commit() runs.

INVARIANTS:
1. adjust() never partially applies; a rejected increase changes nothing
2. Selections are keyed by edition; one edition has one pending quantity
3. discard() leaves the store exactly as it was
"""

import logging
from dataclasses import dataclass

from duelvault.models.card import CardIdentity, DeckSection, Edition, name_key
from duelvault.models.deck import Deck, DeckCardEntry
from duelvault.models.mutation import ClampReason, MutationResult
from duelvault.services.card_catalog import CardCatalog
from duelvault.services.deck_rules import Pending
from duelvault.services.deck_store import DeckStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StagingSelection:
    """
    Pending quantity for one edition.

    Attributes:
        edition: Printing being staged
        card: Card identity of the printing
        quantity: Pending copies (> 0 while the selection exists)
        section: Section the copies will be committed to
    """

    edition: Edition
    card: CardIdentity
    quantity: int
    section: DeckSection


class StagingBuffer:
    """
    Pending additions for one editing session.

    Usage:
        buffer = StagingBuffer(store, catalog)
        buffer.adjust(edition, +2)
        buffer.pending_total(DeckSection.MAIN)
        results = buffer.commit()
    """

    def __init__(self, store: DeckStore, catalog: CardCatalog) -> None:
        self._store = store
        self._catalog = catalog
        self._selections: dict[Edition, StagingSelection] = {}

    def adjust(
        self,
        edition: Edition,
        delta: int,
        section: DeckSection | None = None,
    ) -> MutationResult:
        """
        Change the pending quantity of an edition by delta.

        An increase is rejected when committed plus pending copies would
        exceed the section bound, the per-name copy cap, or the owned
        copies of the edition.

        Raises:
            UnknownCardError: If the edition's card cannot be resolved
        """
        current = self._selections.get(edition)
        card = self._card_for(edition, current)
        pending_qty = current.quantity if current else 0

        if delta == 0:
            return MutationResult(requested=0, applied=0)

        if delta < 0:
            if current is None:
                return MutationResult.reject(delta, ClampReason.INVALID_QUANTITY)
            applied = max(delta, -pending_qty)
            self._set(edition, card, pending_qty + applied, current.section)
            reason = ClampReason.INVALID_QUANTITY if applied != delta else None
            return MutationResult(requested=delta, applied=applied, reason=reason)

        # A selection only ever exists in its card's section, so a differing
        # target is rejected as a section mismatch by the headroom check
        target = section or card.section
        pending = Pending(
            section=self.pending_total(target),
            name=self.pending_total_for_name(card.name),
            edition=pending_qty,
        )
        headroom = self._store.headroom(card, target, edition, pending)
        if delta > headroom.available:
            logger.debug(
                "Staging rejected +%d of %s [%s]: %s",
                delta,
                card.name,
                edition.label(),
                headroom.reason.value,
            )
            return MutationResult.reject(delta, headroom.reason)

        self._set(edition, card, pending_qty + delta, target)
        return MutationResult(requested=delta, applied=delta)

    # =========================================================================
    # LIVE COUNTERS
    # =========================================================================

    def pending_total(self, section: DeckSection) -> int:
        """Pending copies headed for a section."""
        return sum(s.quantity for s in self._selections.values() if s.section == section)

    def pending_total_for_name(self, name: str) -> int:
        """Pending copies of a card name across all staged editions."""
        key = name_key(name)
        return sum(s.quantity for s in self._selections.values() if s.card.key == key)

    def pending_for_edition(self, edition: Edition) -> int:
        selection = self._selections.get(edition)
        return selection.quantity if selection else 0

    def selections(self) -> list[StagingSelection]:
        """Current selections in the order they were first staged."""
        return list(self._selections.values())

    def __len__(self) -> int:
        return len(self._selections)

    def projected_deck(self) -> Deck:
        """
        Committed deck with pending selections applied.

        Feeds the live validation path; the committed deck is not modified.
        """
        projected = self._store.snapshot()
        next_id = projected.next_entry_id()
        for selection in self._selections.values():
            existing = next(
                (
                    entry
                    for entry in projected.section_entries(selection.section)
                    if entry.holds(selection.card, selection.edition, selection.section)
                ),
                None,
            )
            if existing is not None:
                existing.quantity += selection.quantity
                continue
            projected.section_entries(selection.section).append(
                DeckCardEntry(
                    entry_id=next_id,
                    card=selection.card,
                    quantity=selection.quantity,
                    section=selection.section,
                    edition=selection.edition,
                )
            )
            next_id += 1
        return projected

    # =========================================================================
    # COMMIT / DISCARD
    # =========================================================================

    def commit(self) -> list[MutationResult]:
        """
        Push every pending selection into the store, then clear the buffer.

        Each add is expected to apply fully because it was clamped while
        staging. A clamped result means the store changed underneath the
        session and is logged.
        """
        results: list[MutationResult] = []
        for selection in self._selections.values():
            result = self._store.add_entry(
                selection.card,
                selection.quantity,
                section=selection.section,
                edition=selection.edition,
            )
            if result.clamped:
                logger.warning(
                    "Staged %s [%s] clamped on commit: %d of %d",
                    selection.card.name,
                    selection.edition.label(),
                    result.applied,
                    result.requested,
                )
            results.append(result)

        logger.info(
            "Committed %d staged selections",
            len(results),
            extra={"copies": sum(r.applied for r in results)},
        )
        self._selections.clear()
        return results

    def discard(self) -> None:
        """Drop all pending selections."""
        if self._selections:
            logger.debug("Discarded %d staged selections", len(self._selections))
        self._selections.clear()

    def _card_for(self, edition: Edition, current: StagingSelection | None) -> CardIdentity:
        if current is not None:
            return current.card
        card = self._store.inventory.card_for_edition(edition)
        if card is None:
            card = self._catalog.resolve(edition.card_id)
        return card

    def _set(
        self, edition: Edition, card: CardIdentity, quantity: int, section: DeckSection
    ) -> None:
        if quantity <= 0:
            self._selections.pop(edition, None)
            return
        self._selections[edition] = StagingSelection(
            edition=edition, card=card, quantity=quantity, section=section
        )
