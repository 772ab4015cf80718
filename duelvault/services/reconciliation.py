"""
Reconciliation Engine.

Turns a raw, possibly inconsistent candidate list (a staged bulk commit, an
automated proposal, an import) into a clean replacement for one or both
deck sections.

Pipeline:
  1. drop candidates with quantity <= 0
  2. group by card name key, summing quantities, and clamp each group to
     the copy cap (3, or the banlist cap with enforcement on)
  3. attach owned editions: a single covering edition when one exists,
     otherwise split across owned editions; unowned groups are dropped
  4. re-derive every group's section from its card type
  5. truncate groups that would overflow a section bound, in the order set
     by the truncation policy
  6. build the new deck; the caller installs it with DeckStore.apply()

INVARIANTS:
1. reconcile() never mutates its input deck
2. Applying the same candidates to the result again yields the same deck
3. Nothing is auto-padded; a main section below 40 is reported by
   validation, never filled
4. An unresolvable card id raises UnknownCardError; an unowned card is data
"""

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from duelvault.models.card import CardIdentity, DeckSection, Edition
from duelvault.models.deck import MAX_COPIES_PER_CARD, Deck, DeckCardEntry
from duelvault.models.inventory import InventoryIndex
from duelvault.models.mutation import ClampReason
from duelvault.models.violation import ValidationViolation
from duelvault.services.card_catalog import CardCatalog
from duelvault.services.deck_rules import (
    BanlistLookup,
    catalog_banlist_lookup,
    copy_limit,
    section_capacity,
)
from duelvault.services.deck_validator import validate

logger = logging.getLogger(__name__)

ALL_SECTIONS = frozenset(DeckSection)


class Provenance(str, Enum):
    """Where a candidate came from."""

    STAGED = "staged"
    PROPOSAL = "proposal"
    IMPORT = "import"


class UnfulfilledReason(str, Enum):
    """Why (part of) a candidate group did not make it into the deck."""

    NOT_OWNED = "not_owned"
    INSUFFICIENT_INVENTORY = "insufficient_inventory"
    SECTION_CAPACITY = "section_capacity"
    FORBIDDEN = "forbidden"
    BANLIST_LIMIT = "banlist_limit"
    SECTION_NOT_TARGETED = "section_not_targeted"
    UNKNOWN_CARD = "unknown_card"


class TruncationPolicy(str, Enum):
    """
    Which groups survive when a section overflows.

    INSERTION_ORDER: first-seen groups win
    QUANTITY_DESC: larger groups win; ties keep first-seen order
    NAME: alphabetical by name key
    """

    INSERTION_ORDER = "insertion_order"
    QUANTITY_DESC = "quantity_desc"
    NAME = "name"


@dataclass(frozen=True, slots=True)
class Candidate:
    """
    One raw line of a bulk candidate list.

    Attributes:
        card_id: Card reference (may differ between lines of the same card)
        quantity: Proposed copies (may be zero, negative or excessive)
        section: Proposed section (advisory; re-derived from the card type)
        provenance: Origin of the line
        card_name: Name reported by the upstream step, for display only
        edition: Preferred printing, if the source knows one
        reason: Free-text rationale from the source
    """

    card_id: int
    quantity: int
    section: DeckSection | None = None
    provenance: Provenance = Provenance.IMPORT
    card_name: str | None = None
    edition: Edition | None = None
    reason: str = ""


@dataclass(frozen=True, slots=True)
class UnfulfilledItem:
    """Copies that were asked for but could not be included."""

    card_name: str
    quantity: int
    reason: UnfulfilledReason
    card_id: int | None = None
    provenance: Provenance | None = None


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Output of reconcile().

    Attributes:
        deck: New deck state (the input deck with target sections replaced)
        unfulfilled: Copies that could not be included, with reasons
        violations: Validation of the new deck
        inventory_verified: False when ownership could not be checked
        sections: Sections this result replaces
    """

    deck: Deck
    unfulfilled: tuple[UnfulfilledItem, ...] = field(default_factory=tuple)
    violations: tuple[ValidationViolation, ...] = field(default_factory=tuple)
    inventory_verified: bool = True
    sections: frozenset[DeckSection] = ALL_SECTIONS

    @property
    def valid(self) -> bool:
        return len(self.violations) == 0

    def unfulfilled_copies(self) -> int:
        return sum(item.quantity for item in self.unfulfilled)


@dataclass
class _Group:
    order: int
    card: CardIdentity
    quantity: int
    provenance: Provenance
    preferred: Edition | None = None
    parts: list[tuple[Edition | None, int]] = field(default_factory=list)

    @property
    def planned(self) -> int:
        return sum(qty for _, qty in self.parts)


def reconcile(
    deck: Deck,
    candidates: Iterable[Candidate],
    inventory: InventoryIndex,
    catalog: CardCatalog,
    *,
    sections: Iterable[DeckSection] | None = None,
    policy: TruncationPolicy = TruncationPolicy.INSERTION_ORDER,
    banlist_lookup: BanlistLookup = catalog_banlist_lookup,
) -> ReconciliationResult:
    """
    Merge a candidate list into a clean section replacement.

    Args:
        deck: Current deck (not modified)
        candidates: Raw candidate lines, in source order
        inventory: Ownership index of the deck owner
        catalog: Card lookup for candidate card ids
        sections: Sections to replace (None replaces both)
        policy: Truncation order for overflowing sections
        banlist_lookup: Banlist status source

    Returns:
        ReconciliationResult with the new deck and the unfulfilled items

    Raises:
        UnknownCardError: If a candidate's card id is not in the catalog
    """
    targets = frozenset(sections) if sections is not None else ALL_SECTIONS
    kept = [entry for entry in deck.entries() if entry.section not in targets]
    unfulfilled: list[UnfulfilledItem] = []

    groups = _group_candidates(candidates, catalog)

    planned: list[_Group] = []
    for group in groups:
        if group.card.section not in targets:
            unfulfilled.append(
                _unfulfilled(group, group.quantity, UnfulfilledReason.SECTION_NOT_TARGETED)
            )
            continue
        quantity = _clamp_to_copy_cap(group, deck, kept, banlist_lookup, unfulfilled)
        if quantity <= 0:
            continue
        _attach_editions(group, quantity, inventory, kept, unfulfilled)
        if group.planned > 0:
            planned.append(group)

    for section in sorted(targets, key=list(DeckSection).index):
        _truncate(
            [group for group in planned if group.card.section == section],
            section,
            policy,
            unfulfilled,
        )

    new_deck = _build_deck(deck, kept, planned, targets)
    violations = validate(new_deck, inventory, banlist_lookup)

    logger.info(
        "Reconciled deck %s",
        deck.id,
        extra={
            "groups": len(groups),
            "main_count": new_deck.total(DeckSection.MAIN),
            "extra_count": new_deck.total(DeckSection.EXTRA),
            "unfulfilled": len(unfulfilled),
            "violations": len(violations),
        },
    )
    return ReconciliationResult(
        deck=new_deck,
        unfulfilled=tuple(unfulfilled),
        violations=tuple(violations),
        inventory_verified=inventory.available,
        sections=targets,
    )


def _group_candidates(candidates: Iterable[Candidate], catalog: CardCatalog) -> list[_Group]:
    groups: dict[str, _Group] = {}
    for candidate in candidates:
        if candidate.quantity <= 0:
            logger.debug(
                "Dropping candidate %d with quantity %d", candidate.card_id, candidate.quantity
            )
            continue
        card = catalog.resolve(candidate.card_id)
        if candidate.section is not None and candidate.section != card.section:
            logger.debug(
                "Candidate %s proposed for %s deck, moved to %s",
                card.name,
                candidate.section.value,
                card.section.value,
            )

        group = groups.get(card.key)
        if group is None:
            groups[card.key] = _Group(
                order=len(groups),
                card=card,
                quantity=candidate.quantity,
                provenance=candidate.provenance,
                preferred=candidate.edition,
            )
        else:
            group.quantity += candidate.quantity
            if group.preferred is None:
                group.preferred = candidate.edition
    return list(groups.values())


def _clamp_to_copy_cap(
    group: _Group,
    deck: Deck,
    kept: list[DeckCardEntry],
    banlist_lookup: BanlistLookup,
    unfulfilled: list[UnfulfilledItem],
) -> int:
    """Quantity allowed by the copy cap, counting copies kept in other sections."""
    limit, reason = copy_limit(group.card, deck, banlist_lookup)
    if reason == ClampReason.FORBIDDEN:
        unfulfilled.append(_unfulfilled(group, group.quantity, UnfulfilledReason.FORBIDDEN))
        return 0

    already = sum(entry.quantity for entry in kept if entry.key == group.card.key)
    generic = min(group.quantity, max(0, MAX_COPIES_PER_CARD - already))
    allowed = min(group.quantity, max(0, limit - already))
    if reason == ClampReason.BANLIST_LIMIT and allowed < generic:
        unfulfilled.append(
            _unfulfilled(group, generic - allowed, UnfulfilledReason.BANLIST_LIMIT)
        )
    return allowed


def _attach_editions(
    group: _Group,
    quantity: int,
    inventory: InventoryIndex,
    kept: list[DeckCardEntry],
    unfulfilled: list[UnfulfilledItem],
) -> None:
    """Fill group.parts with (edition, copies) pairs backed by the inventory."""
    if not inventory.available:
        group.parts = [(None, quantity)]
        return

    in_use: Counter[Edition] = Counter()
    for entry in kept:
        if entry.edition is not None:
            in_use[entry.edition] += entry.quantity

    owned = [
        (edition, count - in_use[edition])
        for edition, count in inventory.editions_for_key(group.card.key)
        if count - in_use[edition] > 0
    ]
    if group.preferred is not None:
        owned.sort(key=lambda pair: pair[0] != group.preferred)

    if not owned:
        unfulfilled.append(_unfulfilled(group, quantity, UnfulfilledReason.NOT_OWNED))
        return

    covering = next((edition for edition, free in owned if free >= quantity), None)
    if covering is not None:
        group.parts = [(covering, quantity)]
        return

    remaining = quantity
    for edition, free in owned:
        take = min(free, remaining)
        group.parts.append((edition, take))
        remaining -= take
        if remaining == 0:
            break
    if remaining > 0:
        unfulfilled.append(
            _unfulfilled(group, remaining, UnfulfilledReason.INSUFFICIENT_INVENTORY)
        )


def _truncate(
    groups: list[_Group],
    section: DeckSection,
    policy: TruncationPolicy,
    unfulfilled: list[UnfulfilledItem],
) -> None:
    """Trim groups so the section stays within its bound."""
    if policy == TruncationPolicy.QUANTITY_DESC:
        ranked = sorted(groups, key=lambda g: (-g.planned, g.order))
    elif policy == TruncationPolicy.NAME:
        ranked = sorted(groups, key=lambda g: (g.card.key, g.order))
    else:
        ranked = sorted(groups, key=lambda g: g.order)

    room = section_capacity(section)
    for group in ranked:
        planned = group.planned
        if planned <= room:
            room -= planned
            continue

        dropped = planned - room
        _trim_parts(group, room)
        room = 0
        unfulfilled.append(_unfulfilled(group, dropped, UnfulfilledReason.SECTION_CAPACITY))
        logger.warning(
            "Truncated %d copies of %s to fit the %s deck",
            dropped,
            group.card.name,
            section.value,
            extra={"policy": policy.value},
        )


def _trim_parts(group: _Group, keep: int) -> None:
    trimmed: list[tuple[Edition | None, int]] = []
    for edition, qty in group.parts:
        if keep <= 0:
            break
        take = min(qty, keep)
        trimmed.append((edition, take))
        keep -= take
    group.parts = trimmed


def _build_deck(
    deck: Deck,
    kept: list[DeckCardEntry],
    planned: list[_Group],
    targets: frozenset[DeckSection],
) -> Deck:
    new_deck = deck.snapshot()
    next_id = max((entry.entry_id for entry in kept), default=0) + 1

    replacement: dict[DeckSection, list[DeckCardEntry]] = {section: [] for section in targets}
    for group in sorted(planned, key=lambda g: g.order):
        for edition, qty in group.parts:
            replacement[group.card.section].append(
                DeckCardEntry(
                    entry_id=next_id,
                    card=group.card,
                    quantity=qty,
                    section=group.card.section,
                    edition=edition,
                )
            )
            next_id += 1

    for section, entries in replacement.items():
        new_deck.section_entries(section)[:] = entries
    return new_deck


def _unfulfilled(group: _Group, quantity: int, reason: UnfulfilledReason) -> UnfulfilledItem:
    return UnfulfilledItem(
        card_name=group.card.name,
        quantity=quantity,
        reason=reason,
        card_id=group.card.card_id,
        provenance=group.provenance,
    )
