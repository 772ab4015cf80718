"""Tests for the proposal budget endpoints and proposer failures over HTTP."""

from unittest.mock import patch

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from duelvault.api.proposals import get_proposal_budget
from duelvault.main import app
from duelvault.models.budget import ProposalBudget


@pytest.fixture
def budget():
    budget = ProposalBudget(max_calls=3)
    app.dependency_overrides[get_proposal_budget] = lambda: budget
    yield budget
    app.dependency_overrides.clear()


class TestBudgetEndpoints:
    def test_get_budget(self, budget: ProposalBudget) -> None:
        budget.acquire()

        response = TestClient(app).get("/proposals/budget")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"used": 1, "limit": 3, "remaining": 2}

    def test_reset_budget(self, budget: ProposalBudget) -> None:
        for _ in range(3):
            budget.acquire()

        response = TestClient(app).post("/proposals/budget/reset")

        assert response.json() == {"used": 0, "limit": 3, "remaining": 3}
        assert budget.used == 0


class TestProposerDependency:
    def test_proposer_uses_settings(self, budget: ProposalBudget) -> None:
        from duelvault.api.proposals import get_proposer

        with patch("duelvault.api.proposals.settings") as mock_settings:
            mock_settings.anthropic_api_key = "test-key"
            mock_settings.proposal_model = "test-model"
            mock_settings.proposal_max_tokens = 100

            proposer = get_proposer(budget)

        assert proposer.budget is budget
