"""
DuelVault services.

The deck engine: rules, validation, editing, staging, reconciliation and
automated proposals. Nothing here touches the database or configuration.
"""

from duelvault.services.card_catalog import CardCatalog, card_from_record, parse_banlist
from duelvault.services.deck_proposer import DeckProposal, DeckProposer, ProposalSuggestion
from duelvault.services.deck_rules import (
    BanlistLookup,
    BanlistUnavailableError,
    Headroom,
    Pending,
    addition_headroom,
    catalog_banlist_lookup,
    copy_limit,
    edition_matches,
)
from duelvault.services.deck_store import DeckStore
from duelvault.services.deck_validator import build_report, validate
from duelvault.services.editing_session import EditingSession
from duelvault.services.reconciliation import (
    Candidate,
    Provenance,
    ReconciliationResult,
    TruncationPolicy,
    UnfulfilledItem,
    UnfulfilledReason,
    reconcile,
)
from duelvault.services.staging import StagingBuffer, StagingSelection

__all__ = [
    "BanlistLookup",
    "BanlistUnavailableError",
    "Candidate",
    "CardCatalog",
    "DeckProposal",
    "DeckProposer",
    "DeckStore",
    "EditingSession",
    "Headroom",
    "Pending",
    "ProposalSuggestion",
    "Provenance",
    "ReconciliationResult",
    "StagingBuffer",
    "StagingSelection",
    "TruncationPolicy",
    "UnfulfilledItem",
    "UnfulfilledReason",
    "addition_headroom",
    "build_report",
    "card_from_record",
    "catalog_banlist_lookup",
    "copy_limit",
    "edition_matches",
    "parse_banlist",
    "reconcile",
    "validate",
]
