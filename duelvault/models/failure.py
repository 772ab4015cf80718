"""
Failure Classification.

Two kinds of "no" exist in the deck engine:

- Expected outcomes: rule violations and rejected mutations. These are DATA
  (ValidationViolation, MutationResult) and are never raised.
- Faults: programmer errors and unreachable collaborators. These are raised
  as KnownError subclasses so the API layer can explain them.

INVARIANT: Ordinary deck editing never raises. Only unknown entry ids,
unresolvable card ids, and collaborator failures do.
"""

from enum import Enum


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"

    # Resource failures
    NOT_FOUND = "not_found"
    UNKNOWN_ENTRY = "unknown_entry"
    UNKNOWN_CARD = "unknown_card"

    # Constraint violations
    VALIDATION_FAILED = "validation_failed"
    BUDGET_EXCEEDED = "budget_exceeded"

    # Service failures
    SERVICE_UNAVAILABLE = "service_unavailable"
    EXTERNAL_API_ERROR = "external_api_error"

    UNKNOWN = "unknown"


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)


class UnknownEntryError(KnownError):
    """Raised when a mutation names an entry id the deck does not contain."""

    def __init__(self, entry_id: int):
        self.entry_id = entry_id
        super().__init__(
            kind=FailureKind.UNKNOWN_ENTRY,
            message=f"Deck entry {entry_id} does not exist",
            detail=f"entry_id={entry_id}",
            suggestion="Reload the deck and retry with a current entry id.",
            status_code=404,
        )


class UnknownCardError(KnownError):
    """
    Raised when a card id cannot be resolved by the catalog at all.

    Distinct from a card that is merely unowned, which is ordinary data.
    """

    def __init__(self, card_id: int):
        self.card_id = card_id
        super().__init__(
            kind=FailureKind.UNKNOWN_CARD,
            message=f"Card {card_id} is not in the card catalog",
            detail=f"card_id={card_id}",
            suggestion="Refresh the card catalog or check the card id.",
            status_code=404,
        )


class ProposalUnavailableError(KnownError):
    """Raised when the automated-proposal provider cannot produce a proposal."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(
            kind=FailureKind.SERVICE_UNAVAILABLE,
            message="Automated deck proposal is unavailable.",
            detail=reason,
            suggestion="Try again later or build the deck manually.",
            status_code=503,
        )
