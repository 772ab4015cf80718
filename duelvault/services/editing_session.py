"""
Editing Session.

One user's editing of one deck. The session owns exactly one DeckStore
(working on a private copy of the deck) and one StagingBuffer, so no state
is shared between sessions.

Live feedback and the commit path call the same validator: live feedback
validates the projected deck (committed + staged), the commit path
validates the committed deck.
"""

import logging
from collections.abc import Iterable

from duelvault.models.card import DeckSection
from duelvault.models.deck import Deck
from duelvault.models.inventory import InventoryIndex
from duelvault.models.mutation import MutationResult
from duelvault.models.violation import ValidationReport, ValidationViolation
from duelvault.services.card_catalog import CardCatalog
from duelvault.services.deck_rules import BanlistLookup, catalog_banlist_lookup
from duelvault.services.deck_store import DeckStore
from duelvault.services.deck_validator import build_report, validate
from duelvault.services.reconciliation import (
    Candidate,
    ReconciliationResult,
    TruncationPolicy,
    reconcile,
)
from duelvault.services.staging import StagingBuffer

logger = logging.getLogger(__name__)


class EditingSession:
    """
    Usage:
        session = EditingSession(deck, inventory, catalog)
        session.staging.adjust(edition, +2)
        session.live_violations()
        session.commit_staging()
        session.report()
    """

    def __init__(
        self,
        deck: Deck,
        inventory: InventoryIndex,
        catalog: CardCatalog,
        banlist_lookup: BanlistLookup = catalog_banlist_lookup,
        truncation_policy: TruncationPolicy = TruncationPolicy.INSERTION_ORDER,
    ) -> None:
        self._catalog = catalog
        self._truncation_policy = truncation_policy
        self._store = DeckStore(deck.snapshot(), inventory, banlist_lookup)
        self._staging = StagingBuffer(self._store, catalog)

    @property
    def store(self) -> DeckStore:
        return self._store

    @property
    def staging(self) -> StagingBuffer:
        return self._staging

    @property
    def catalog(self) -> CardCatalog:
        return self._catalog

    @property
    def deck(self) -> Deck:
        """Committed deck state of this session."""
        return self._store.deck

    def validate(self) -> list[ValidationViolation]:
        return self._store.validate()

    def report(self) -> ValidationReport:
        return self._store.report()

    def live_violations(self) -> list[ValidationViolation]:
        """Violations the deck would have if staging were committed now."""
        return validate(
            self._staging.projected_deck(), self._store.inventory, self._store.banlist_lookup
        )

    def live_report(self) -> ValidationReport:
        return build_report(
            self._staging.projected_deck(), self._store.inventory, self._store.banlist_lookup
        )

    def projected_total(self, section: DeckSection) -> int:
        """Committed plus pending copies in a section (live counter)."""
        return self._store.deck.total(section) + self._staging.pending_total(section)

    def commit_staging(self) -> list[MutationResult]:
        return self._staging.commit()

    def discard_staging(self) -> None:
        self._staging.discard()

    def preview(
        self,
        candidates: Iterable[Candidate],
        sections: Iterable[DeckSection] | None = None,
        policy: TruncationPolicy | None = None,
    ) -> ReconciliationResult:
        """Reconcile candidates against the committed deck without applying."""
        return reconcile(
            self._store.deck,
            candidates,
            self._store.inventory,
            self._catalog,
            sections=sections,
            policy=policy or self._truncation_policy,
            banlist_lookup=self._store.banlist_lookup,
        )

    def apply_proposal(
        self,
        candidates: Iterable[Candidate],
        sections: Iterable[DeckSection] | None = None,
        policy: TruncationPolicy | None = None,
    ) -> ReconciliationResult:
        """
        Replace the target sections with a reconciled candidate list.

        Pending staged selections were computed against the old deck and
        are discarded.
        """
        result = self.preview(candidates, sections, policy)
        self._staging.discard()
        self._store.apply(result)
        logger.info(
            "Applied bulk replacement to deck %s",
            self._store.deck.id,
            extra={"unfulfilled_copies": result.unfulfilled_copies()},
        )
        return result
