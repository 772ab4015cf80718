"""Tests for the automated-proposal call budget."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from duelvault.models.budget import (
    DEFAULT_MAX_PROPOSAL_CALLS,
    BudgetExceededError,
    ProposalBudget,
)
from duelvault.models.failure import FailureKind, KnownError


class TestProposalBudget:
    def test_default_limit(self) -> None:
        budget = ProposalBudget()
        assert budget.max_calls == DEFAULT_MAX_PROPOSAL_CALLS == 5
        assert budget.used == 0
        assert budget.remaining == 5

    def test_acquire_counts_calls(self) -> None:
        budget = ProposalBudget(max_calls=2)
        budget.acquire()

        assert budget.used == 1
        assert budget.remaining == 1

    def test_exhausted_budget_refuses(self) -> None:
        budget = ProposalBudget(max_calls=1)
        budget.acquire()

        with pytest.raises(BudgetExceededError) as exc_info:
            budget.acquire()

        error = exc_info.value
        assert isinstance(error, KnownError)
        assert error.kind == FailureKind.BUDGET_EXCEEDED
        assert error.status_code == 429
        assert (error.used, error.limit) == (1, 1)
        assert budget.used == 1

    def test_refusal_is_terminal_until_reset(self) -> None:
        budget = ProposalBudget(max_calls=1)
        budget.acquire()
        for _ in range(3):
            with pytest.raises(BudgetExceededError):
                budget.acquire()

        budget.reset()

        budget.acquire()
        assert budget.used == 1

    def test_concurrent_acquire_never_overspends(self) -> None:
        budget = ProposalBudget(max_calls=10)

        def try_acquire(_: int) -> bool:
            try:
                budget.acquire()
            except BudgetExceededError:
                return False
            return True

        with ThreadPoolExecutor(max_workers=8) as pool:
            granted = sum(pool.map(try_acquire, range(50)))

        assert granted == 10
        assert budget.used == 10
