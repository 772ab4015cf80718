"""Tests for the automated deck proposer."""

import json
from unittest.mock import MagicMock, patch

import anthropic
import httpx
import pytest
from anthropic.types import TextBlock

from duelvault.models.budget import BudgetExceededError, ProposalBudget
from duelvault.models.card import DeckSection
from duelvault.models.deck import Deck, DeckCardEntry
from duelvault.models.failure import FailureKind, ProposalUnavailableError
from duelvault.models.inventory import InventoryIndex
from duelvault.services.deck_proposer import (
    DeckProposer,
    build_collection_prompt,
    build_deck_context,
    parse_proposal,
)
from duelvault.services.reconciliation import Provenance

PROPOSAL_JSON = {
    "mainDeck": [
        {"cardId": 46986414, "cardName": "Dark Magician", "quantity": 3, "reason": "Core"},
        {"cardId": 46986414, "cardName": "Dark Magician", "quantity": 1, "reason": "Again"},
    ],
    "extraDeck": [{"cardId": 63519819, "cardName": "Thousand-Eyes Restrict", "quantity": 1}],
    "suggestions": [
        {"cardName": "Dark Magical Circle", "reason": "Searches the boss", "priority": "high"}
    ],
    "explanation": "Spellcaster control",
}


def _mock_response(text: str) -> MagicMock:
    block = MagicMock(spec=TextBlock)
    block.text = text
    response = MagicMock()
    response.content = [block]
    response.usage = None
    return response


@pytest.fixture
def inventory(make_inventory, make_edition, dark_magician, thousand_eyes) -> InventoryIndex:
    return make_inventory(
        [
            (dark_magician, make_edition(dark_magician), 5),
            (thousand_eyes, make_edition(thousand_eyes), 1),
        ]
    )


@pytest.fixture
def empty_deck() -> Deck:
    return Deck(id=1, owner_id=7, name="Empty")


class TestPrompts:
    def test_collection_prompt_caps_available_copies(self, inventory) -> None:
        prompt = build_collection_prompt(inventory)

        assert 'ID:46986414 | "Dark Magician" | Normal Monster | AVAILABLE: x3' in prompt
        assert "(1 unique cards, 3 copies)" in prompt
        extra_part = prompt.split("## Extra Deck cards available")[1]
        assert "Thousand-Eyes Restrict" in extra_part

    def test_deck_context_merges_names(self, dark_magician, dark_magician_reprint) -> None:
        deck = Deck(id=1, owner_id=7, name="Reprints")
        deck.main.append(DeckCardEntry(1, dark_magician, 1, DeckSection.MAIN))
        deck.main.append(DeckCardEntry(2, dark_magician_reprint, 2, DeckSection.MAIN))

        context = build_deck_context(deck)

        assert "- Dark Magician x3" in context
        assert "(main 3, extra 0)" in context

    def test_empty_deck_has_no_context(self, empty_deck) -> None:
        assert build_deck_context(empty_deck) == ""


class TestParseProposal:
    def test_parses_candidates_in_order(self) -> None:
        text = "Here is your deck:\n" + json.dumps(PROPOSAL_JSON) + "\nEnjoy!"

        proposal = parse_proposal(text)

        assert [(c.card_id, c.quantity, c.section) for c in proposal.candidates] == [
            (46986414, 3, DeckSection.MAIN),
            (46986414, 1, DeckSection.MAIN),
            (63519819, 1, DeckSection.EXTRA),
        ]
        assert all(c.provenance == Provenance.PROPOSAL for c in proposal.candidates)
        assert proposal.explanation == "Spellcaster control"
        assert proposal.suggestions[0].card_name == "Dark Magical Circle"
        assert proposal.suggestions[0].priority == "high"

    def test_no_json(self) -> None:
        with pytest.raises(ProposalUnavailableError):
            parse_proposal("I cannot build that deck.")

    def test_invalid_payload(self) -> None:
        with pytest.raises(ProposalUnavailableError):
            parse_proposal('{"mainDeck": [{"quantity": 2}]}')


class TestDeckProposer:
    def test_propose(self, inventory, empty_deck) -> None:
        budget = ProposalBudget(max_calls=2)
        proposer = DeckProposer(api_key="test-key", budget=budget)

        with patch("duelvault.services.deck_proposer.anthropic.Anthropic") as mock_anthropic:
            mock_client = MagicMock()
            mock_client.messages.create.return_value = _mock_response(json.dumps(PROPOSAL_JSON))
            mock_anthropic.return_value = mock_client

            proposal = proposer.propose("Dark Magician control", inventory, empty_deck)

        assert len(proposal.candidates) == 3
        assert budget.used == 1
        kwargs = mock_client.messages.create.call_args.kwargs
        assert "## My request\nDark Magician control" in kwargs["messages"][0]["content"]

    def test_missing_api_key(self, inventory, empty_deck) -> None:
        budget = ProposalBudget()
        proposer = DeckProposer(api_key="", budget=budget)

        with pytest.raises(ProposalUnavailableError) as exc_info:
            proposer.propose("anything", inventory, empty_deck)

        assert exc_info.value.kind == FailureKind.SERVICE_UNAVAILABLE
        assert budget.used == 0

    def test_unavailable_inventory(self, empty_deck) -> None:
        proposer = DeckProposer(api_key="test-key", budget=ProposalBudget())

        with pytest.raises(ProposalUnavailableError):
            proposer.propose("anything", InventoryIndex.unavailable(), empty_deck)

    def test_budget_checked_before_call(self, inventory, empty_deck) -> None:
        proposer = DeckProposer(api_key="test-key", budget=ProposalBudget(max_calls=0))

        with patch("duelvault.services.deck_proposer.anthropic.Anthropic") as mock_anthropic:
            with pytest.raises(BudgetExceededError):
                proposer.propose("anything", inventory, empty_deck)

        mock_anthropic.assert_not_called()

    def test_api_error_surfaces_as_unavailable(self, inventory, empty_deck) -> None:
        proposer = DeckProposer(api_key="test-key", budget=ProposalBudget())
        error = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )

        with patch("duelvault.services.deck_proposer.anthropic.Anthropic") as mock_anthropic:
            mock_anthropic.return_value.messages.create.side_effect = error
            with pytest.raises(ProposalUnavailableError):
                proposer.propose("anything", inventory, empty_deck)

    def test_empty_text_response(self, inventory, empty_deck) -> None:
        proposer = DeckProposer(api_key="test-key", budget=ProposalBudget())
        response = MagicMock()
        response.content = []
        response.usage = None

        with patch("duelvault.services.deck_proposer.anthropic.Anthropic") as mock_anthropic:
            mock_anthropic.return_value.messages.create.return_value = response
            with pytest.raises(ProposalUnavailableError):
                proposer.propose("anything", inventory, empty_deck)
