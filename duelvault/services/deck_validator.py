"""
Deck Validation Engine.

A pure, idempotent scan that returns EVERY rule violation of a deck
snapshot. It only reports; refusing to save an invalid deck is decided by
the save workflow.

Rules checked:
  - main section holds 40-60 cards
  - extra section holds at most 15 cards
  - at most 3 copies of any card name across both sections
  - edition-backed entries never exceed the owned copies of that edition
  - an entry's edition is a printing of the entry's card
  - card-level entries never exceed the owned copies of that card name
  - every entry sits in the section its card type requires
  - with banlist enforcement: no forbidden cards, limited <= 1,
    semi-limited <= 2

When the inventory or the banlist source is down, the dependent check is
skipped and a distinct "unavailable" violation is reported instead, so a
deck is never shown as valid when validity could not be verified.
"""

import logging
from collections import Counter

from duelvault.models.card import BanlistStatus, DeckSection, Edition
from duelvault.models.deck import (
    EXTRA_DECK_MAX,
    MAIN_DECK_MAX,
    MAIN_DECK_MIN,
    MAX_COPIES_PER_CARD,
    Deck,
    DeckCardEntry,
)
from duelvault.models.inventory import InventoryIndex
from duelvault.models.violation import ValidationReport, ValidationViolation, ViolationKind
from duelvault.services.deck_rules import (
    BanlistLookup,
    BanlistUnavailableError,
    catalog_banlist_lookup,
    edition_matches,
)

logger = logging.getLogger(__name__)


def validate(
    deck: Deck,
    inventory: InventoryIndex,
    banlist_lookup: BanlistLookup = catalog_banlist_lookup,
) -> list[ValidationViolation]:
    """
    Produce the complete violation list for a deck.

    Args:
        deck: Deck snapshot (not modified)
        inventory: Ownership index of the deck owner
        banlist_lookup: Banlist status source (used only with enforcement on)

    Returns:
        All violations, in rule order. Empty means the deck is valid.
    """
    violations: list[ValidationViolation] = []
    violations.extend(_check_section_sizes(deck))
    violations.extend(_check_copy_limits(deck))
    violations.extend(_check_ownership(deck, inventory))
    violations.extend(_check_sections(deck))
    if deck.respect_banlist:
        violations.extend(_check_banlist(deck, banlist_lookup))

    logger.debug(
        "Validated deck %s: %d violations",
        deck.id,
        len(violations),
        extra={"main_count": deck.total(DeckSection.MAIN)},
    )
    return violations


def build_report(
    deck: Deck,
    inventory: InventoryIndex,
    banlist_lookup: BanlistLookup = catalog_banlist_lookup,
) -> ValidationReport:
    """Validate and bundle the result with section counts."""
    return ValidationReport(
        violations=tuple(validate(deck, inventory, banlist_lookup)),
        main_count=deck.total(DeckSection.MAIN),
        extra_count=deck.total(DeckSection.EXTRA),
    )


def _check_section_sizes(deck: Deck) -> list[ValidationViolation]:
    violations: list[ValidationViolation] = []

    main_count = deck.total(DeckSection.MAIN)
    if main_count < MAIN_DECK_MIN:
        violations.append(
            ValidationViolation(
                kind=ViolationKind.MAIN_DECK_SIZE,
                detail=(
                    f"Main Deck must have at least {MAIN_DECK_MIN} cards (currently {main_count})"
                ),
                count=main_count,
            )
        )
    elif main_count > MAIN_DECK_MAX:
        violations.append(
            ValidationViolation(
                kind=ViolationKind.MAIN_DECK_SIZE,
                detail=f"Main Deck cannot exceed {MAIN_DECK_MAX} cards (currently {main_count})",
                count=main_count,
            )
        )

    extra_count = deck.total(DeckSection.EXTRA)
    if extra_count > EXTRA_DECK_MAX:
        violations.append(
            ValidationViolation(
                kind=ViolationKind.EXTRA_DECK_SIZE,
                detail=(
                    f"Extra Deck cannot exceed {EXTRA_DECK_MAX} cards (currently {extra_count})"
                ),
                count=extra_count,
            )
        )

    return violations


def _copies_by_name(deck: Deck) -> dict[str, tuple[DeckCardEntry, int]]:
    """Name key -> (first entry for display, combined quantity)."""
    totals: Counter[str] = Counter()
    first: dict[str, DeckCardEntry] = {}
    for entry in deck.entries():
        totals[entry.key] += entry.quantity
        first.setdefault(entry.key, entry)
    return {key: (first[key], total) for key, total in totals.items()}


def _check_copy_limits(deck: Deck) -> list[ValidationViolation]:
    violations: list[ValidationViolation] = []
    for entry, total in _copies_by_name(deck).values():
        if total > MAX_COPIES_PER_CARD:
            violations.append(
                ValidationViolation(
                    kind=ViolationKind.COPY_LIMIT,
                    detail=(
                        f"Cannot have more than {MAX_COPIES_PER_CARD} copies of "
                        f"{entry.card.name} (currently {total})"
                    ),
                    card_name=entry.card.name,
                    count=total,
                )
            )
    return violations


def _check_ownership(deck: Deck, inventory: InventoryIndex) -> list[ValidationViolation]:
    if not inventory.available:
        return [
            ValidationViolation(
                kind=ViolationKind.INVENTORY_UNAVAILABLE,
                detail="Collection could not be loaded; ownership was not verified",
            )
        ]

    violations: list[ValidationViolation] = []

    # Committed state never splits one edition across entries, but staged or
    # imported decks can; count what the other entries already hold.
    assigned: Counter[Edition] = Counter()
    for entry in deck.entries():
        if entry.edition is not None:
            assigned[entry.edition] += entry.quantity

    for entry in deck.entries():
        if entry.edition is None:
            continue
        if not edition_matches(entry.card, entry.edition, inventory):
            violations.append(
                ValidationViolation(
                    kind=ViolationKind.EDITION_MISMATCH,
                    detail=(
                        f"{entry.card.name} is tied to {entry.edition.label()}, "
                        "which is a printing of a different card"
                    ),
                    card_name=entry.card.name,
                    count=entry.quantity,
                )
            )
            continue
        owned = inventory.owned_by_edition(entry.edition)
        elsewhere = assigned[entry.edition] - entry.quantity
        if entry.quantity > owned - elsewhere:
            violations.append(
                ValidationViolation(
                    kind=ViolationKind.EDITION_OWNERSHIP,
                    detail=(
                        f"{entry.card.name} [{entry.edition.label()}] uses {entry.quantity} "
                        f"copies but only {max(0, owned - elsewhere)} are available"
                    ),
                    card_name=entry.card.name,
                    count=entry.quantity,
                )
            )

    card_level_keys = {entry.key for entry in deck.entries() if entry.edition is None}
    for entry, total in _copies_by_name(deck).values():
        if entry.key not in card_level_keys:
            continue
        owned = inventory.owned_by_key(entry.key)
        if total > owned:
            violations.append(
                ValidationViolation(
                    kind=ViolationKind.CARD_OWNERSHIP,
                    detail=f"{entry.card.name} uses {total} copies but only {owned} are owned",
                    card_name=entry.card.name,
                    count=total,
                )
            )

    return violations


def _check_sections(deck: Deck) -> list[ValidationViolation]:
    violations: list[ValidationViolation] = []
    for entry in deck.entries():
        expected = entry.card.section
        if entry.section != expected:
            violations.append(
                ValidationViolation(
                    kind=ViolationKind.SECTION_MISMATCH,
                    detail=(
                        f"{entry.card.name} ({entry.card.type_line}) belongs in the "
                        f"{expected.value} deck, not the {entry.section.value} deck"
                    ),
                    card_name=entry.card.name,
                    count=entry.quantity,
                )
            )
    return violations


def _check_banlist(deck: Deck, banlist_lookup: BanlistLookup) -> list[ValidationViolation]:
    violations: list[ValidationViolation] = []
    for entry, total in _copies_by_name(deck).values():
        try:
            status = banlist_lookup(entry.card, deck.ruleset)
        except BanlistUnavailableError:
            logger.warning("Banlist unavailable for ruleset %s", deck.ruleset.value)
            # Violations confirmed before the outage stay reported
            violations.append(
                ValidationViolation(
                    kind=ViolationKind.BANLIST_UNAVAILABLE,
                    detail=(
                        f"Banlist ({deck.ruleset.value.upper()}) could not be loaded; "
                        "banlist restrictions were not verified"
                    ),
                )
            )
            return violations

        if status == BanlistStatus.FORBIDDEN:
            violations.append(
                ValidationViolation(
                    kind=ViolationKind.FORBIDDEN_CARD,
                    detail=f"{entry.card.name} is Forbidden under the current banlist",
                    card_name=entry.card.name,
                    count=total,
                )
            )
        elif status.copy_limit < MAX_COPIES_PER_CARD and total > status.copy_limit:
            limit = status.copy_limit
            violations.append(
                ValidationViolation(
                    kind=ViolationKind.BANLIST_LIMIT,
                    detail=(
                        f"Banlist allows only {limit} cop{'ies' if limit > 1 else 'y'} "
                        f"of {entry.card.name} (currently {total})"
                    ),
                    card_name=entry.card.name,
                    count=total,
                )
            )
    return violations
