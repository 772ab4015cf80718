"""
Automated-proposal budget endpoints and the proposer dependency.

The budget is per process, like the call counter it replaces; operators
inspect and reset it here.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from duelvault.config import settings
from duelvault.models.budget import ProposalBudget
from duelvault.services.deck_proposer import DeckProposer

router = APIRouter(prefix="/proposals", tags=["proposals"])

_budget = ProposalBudget(max_calls=settings.proposal_max_calls)


def get_proposal_budget() -> ProposalBudget:
    return _budget


def get_proposer(
    budget: Annotated[ProposalBudget, Depends(get_proposal_budget)],
) -> DeckProposer:
    """Dependency that provides the configured proposer."""
    return DeckProposer(
        api_key=settings.anthropic_api_key,
        budget=budget,
        model=settings.proposal_model,
        max_tokens=settings.proposal_max_tokens,
    )


class BudgetResponse(BaseModel):
    used: int
    limit: int
    remaining: int


def _budget_response(budget: ProposalBudget) -> BudgetResponse:
    return BudgetResponse(used=budget.used, limit=budget.max_calls, remaining=budget.remaining)


@router.get("/budget", response_model=BudgetResponse)
async def get_budget(
    budget: Annotated[ProposalBudget, Depends(get_proposal_budget)],
) -> BudgetResponse:
    return _budget_response(budget)


@router.post("/budget/reset", response_model=BudgetResponse)
async def reset_budget(
    budget: Annotated[ProposalBudget, Depends(get_proposal_budget)],
) -> BudgetResponse:
    budget.reset()
    return _budget_response(budget)
