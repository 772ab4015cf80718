"""
Deck Rules: the one place deck caps are computed.

The store, the staging buffer, the reconciler and the validator all ask this
module how many more copies of a card fit. Nothing else re-derives a cap,
so the live-feedback path and the commit path can never drift apart.

Caps applied to an addition of card C (edition E) to section S:
  - section capacity: 60 main / 15 extra, minus what is already there
  - copy limit: 3 per card name across both sections, or the banlist cap
    (forbidden 0, limited 1, semi-limited 2) when enforcement is on
  - ownership: copies of E owned minus copies of E already assigned, or for
    card-level additions, copies of C's name owned minus copies in the deck
  - section eligibility: S must be C's derived section
  - edition identity: E must be a printing of C's name
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from duelvault.models.card import BanlistStatus, CardIdentity, DeckSection, Edition, Ruleset
from duelvault.models.deck import MAX_COPIES_PER_CARD, SECTION_LIMITS, Deck
from duelvault.models.inventory import InventoryIndex
from duelvault.models.mutation import ClampReason

logger = logging.getLogger(__name__)

BanlistLookup = Callable[[CardIdentity, Ruleset], BanlistStatus]


class BanlistUnavailableError(Exception):
    """Raised by a banlist lookup that could not reach its data source."""


def catalog_banlist_lookup(card: CardIdentity, ruleset: Ruleset) -> BanlistStatus:
    """Banlist lookup backed by the status already resolved into the card."""
    return card.banlist_status(ruleset)


def edition_matches(card: CardIdentity, edition: Edition, inventory: InventoryIndex) -> bool:
    """
    True when edition is a printing of card's name.

    Reprints carry their own card id, so an edition with a different id
    still matches when the owned record behind it has the same name.
    """
    if edition.card_id == card.card_id:
        return True
    owner = inventory.card_for_edition(edition)
    return owner is not None and owner.key == card.key


def section_capacity(section: DeckSection) -> int:
    """Maximum copies a section may hold."""
    return SECTION_LIMITS[section][1]


def copy_limit(
    card: CardIdentity,
    deck: Deck,
    banlist_lookup: BanlistLookup = catalog_banlist_lookup,
) -> tuple[int, ClampReason]:
    """
    Maximum copies of a card name allowed in the deck, and the rule behind it.

    With enforcement off, or when the banlist source is down, the generic
    cap of 3 applies.
    """
    if not deck.respect_banlist:
        return MAX_COPIES_PER_CARD, ClampReason.COPY_LIMIT

    try:
        status = banlist_lookup(card, deck.ruleset)
    except BanlistUnavailableError:
        logger.warning(
            "Banlist unavailable, using generic copy limit for %s",
            card.name,
            extra={"ruleset": deck.ruleset.value},
        )
        return MAX_COPIES_PER_CARD, ClampReason.COPY_LIMIT

    if status == BanlistStatus.FORBIDDEN:
        return 0, ClampReason.FORBIDDEN
    if status.copy_limit < MAX_COPIES_PER_CARD:
        return status.copy_limit, ClampReason.BANLIST_LIMIT
    return MAX_COPIES_PER_CARD, ClampReason.COPY_LIMIT


@dataclass(frozen=True, slots=True)
class Headroom:
    """
    How many more copies fit, and which rule binds.

    Attributes:
        available: Copies that can still be added (>= 0)
        reason: The tightest constraint (reported when a request exceeds it)
    """

    available: int
    reason: ClampReason

    def clamp(self, requested: int) -> int:
        return max(0, min(requested, self.available))


@dataclass(frozen=True, slots=True)
class Pending:
    """Uncommitted additions that already claim room (staging overlay)."""

    section: int = 0
    name: int = 0
    edition: int = 0


NO_PENDING = Pending()


def addition_headroom(
    deck: Deck,
    inventory: InventoryIndex,
    card: CardIdentity,
    section: DeckSection,
    edition: Edition | None = None,
    pending: Pending = NO_PENDING,
    banlist_lookup: BanlistLookup = catalog_banlist_lookup,
) -> Headroom:
    """
    Compute how many copies of a card can be added to a section.

    Args:
        deck: Committed deck state
        inventory: Ownership index (ownership caps skipped when unavailable)
        card: Card to add
        section: Target section
        edition: Printing the copies are tied to (None for card-level)
        pending: Staged additions to count on top of the committed deck
        banlist_lookup: Banlist status source

    Returns:
        Headroom with the smallest remaining allowance. Ties report the
        first rule in order: eligibility, copy/banlist, section, ownership.
    """
    if section != card.section:
        return Headroom(available=0, reason=ClampReason.SECTION_MISMATCH)
    if edition is not None and not edition_matches(card, edition, inventory):
        return Headroom(available=0, reason=ClampReason.EDITION_MISMATCH)

    limit, limit_reason = copy_limit(card, deck, banlist_lookup)
    in_deck = deck.quantity_for_key(card.key) + pending.name

    constraints: list[tuple[int, ClampReason]] = [
        (limit - in_deck, limit_reason),
        (
            section_capacity(section) - deck.total(section) - pending.section,
            ClampReason.SECTION_CAPACITY,
        ),
    ]

    if inventory.available:
        if edition is not None:
            assigned = deck.quantity_for_edition(edition) + pending.edition
            constraints.append(
                (inventory.owned_by_edition(edition) - assigned, ClampReason.EDITION_OWNERSHIP)
            )
        else:
            constraints.append(
                (inventory.owned_by_key(card.key) - in_deck, ClampReason.CARD_OWNERSHIP)
            )

    available, reason = min(constraints, key=lambda c: c[0])
    return Headroom(available=max(0, available), reason=reason)
