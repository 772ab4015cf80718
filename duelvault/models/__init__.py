from duelvault.models.budget import (
    DEFAULT_MAX_PROPOSAL_CALLS,
    BudgetExceededError,
    ProposalBudget,
)
from duelvault.models.card import (
    BanlistStatus,
    CardIdentity,
    DeckSection,
    Edition,
    Ruleset,
    is_extra_deck_type,
    name_key,
)
from duelvault.models.deck import (
    EXTRA_DECK_MAX,
    MAIN_DECK_MAX,
    MAIN_DECK_MIN,
    MAX_COPIES_PER_CARD,
    Deck,
    DeckCardEntry,
)
from duelvault.models.failure import (
    FailureKind,
    KnownError,
    ProposalUnavailableError,
    UnknownCardError,
    UnknownEntryError,
)
from duelvault.models.inventory import InventoryIndex, OwnedEdition
from duelvault.models.mutation import ClampReason, MutationResult
from duelvault.models.violation import ValidationReport, ValidationViolation, ViolationKind

__all__ = [
    "BanlistStatus",
    "BudgetExceededError",
    "CardIdentity",
    "ClampReason",
    "DEFAULT_MAX_PROPOSAL_CALLS",
    "Deck",
    "DeckCardEntry",
    "DeckSection",
    "EXTRA_DECK_MAX",
    "Edition",
    "FailureKind",
    "InventoryIndex",
    "KnownError",
    "MAIN_DECK_MAX",
    "MAIN_DECK_MIN",
    "MAX_COPIES_PER_CARD",
    "MutationResult",
    "OwnedEdition",
    "ProposalBudget",
    "ProposalUnavailableError",
    "Ruleset",
    "UnknownCardError",
    "UnknownEntryError",
    "ValidationReport",
    "ValidationViolation",
    "ViolationKind",
    "is_extra_deck_type",
    "name_key",
]
