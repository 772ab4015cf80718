"""
Proposal Budget - hard cap on automated-proposal calls.

The proposal provider is a paid external model. Every call is counted
against a per-process budget and refused once the budget is spent, until an
operator resets it.

INVARIANTS:
- The check happens BEFORE the external call
- A refused call is terminal: no retry, no fallback
- Counting is thread-safe (API handlers may run in a thread pool)
"""

import logging
from dataclasses import dataclass, field
from threading import Lock

from duelvault.models.failure import FailureKind, KnownError

logger = logging.getLogger(__name__)

DEFAULT_MAX_PROPOSAL_CALLS = 5


class BudgetExceededError(KnownError):
    """Raised when the proposal call budget is spent."""

    def __init__(self, used: int, limit: int):
        self.used = used
        self.limit = limit
        super().__init__(
            kind=FailureKind.BUDGET_EXCEEDED,
            message=f"Automated proposal limit reached ({used}/{limit})",
            detail=f"proposal calls: {used}/{limit}",
            suggestion="Ask an administrator to reset the proposal counter.",
            status_code=429,
        )


@dataclass
class ProposalBudget:
    """
    Counts proposal calls against a fixed maximum.

    Usage:
        budget.acquire()      # raises BudgetExceededError when spent
        client.messages.create(...)
    """

    max_calls: int = DEFAULT_MAX_PROPOSAL_CALLS
    _used: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def acquire(self) -> None:
        """
        Reserve one call.

        Raises:
            BudgetExceededError: If every call has been used
        """
        with self._lock:
            if self._used >= self.max_calls:
                logger.warning(
                    "Proposal budget exhausted",
                    extra={"used": self._used, "limit": self.max_calls},
                )
                raise BudgetExceededError(self._used, self.max_calls)
            self._used += 1
            logger.info("Proposal call %d/%d", self._used, self.max_calls)

    @property
    def used(self) -> int:
        return self._used

    @property
    def remaining(self) -> int:
        return max(0, self.max_calls - self._used)

    def reset(self) -> None:
        with self._lock:
            self._used = 0
