"""
Automated Deck Proposer.

Asks Claude to assemble a deck from the user's owned cards for a free-text
goal, and converts the answer into reconciliation candidates.

The model's output is UNTRUSTED: it may repeat cards, invent quantities or
put cards in the wrong section. This module only parses it; every rule is
enforced afterwards by the reconciliation engine.

INVARIANTS:
1. The call budget is checked BEFORE the API call
2. Any provider failure surfaces as ProposalUnavailableError
3. Suggestions and explanation are passed through unmodified
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Literal

import anthropic
from anthropic.types import TextBlock
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from duelvault.models.budget import ProposalBudget
from duelvault.models.card import DeckSection
from duelvault.models.deck import MAIN_DECK_MAX, MAIN_DECK_MIN, MAX_COPIES_PER_CARD, Deck
from duelvault.models.failure import ProposalUnavailableError
from duelvault.models.inventory import InventoryIndex
from duelvault.services.reconciliation import Candidate, Provenance

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 8192

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

SYSTEM_PROMPT = f"""You are an expert Yu-Gi-Oh! deck builder. You build complete,
synergistic and playable decks from the player's own collection.

## Rules
1. Main Deck: {MAIN_DECK_MIN}-{MAIN_DECK_MAX} cards (aim for {MAIN_DECK_MIN}-45)
2. Extra Deck: 0-15 cards (Fusion, Synchro, Xyz and Link monsters only)
3. At most {MAX_COPIES_PER_CARD} copies of a card, never more than the AVAILABLE quantity
4. Use ONLY card ids from the provided collection

## Method
- Core of the deck: the key cards of the requested theme, 3 copies each
- Theme support: cards that enable the main strategy, 2-3 copies
- Consistency: draw and search cards
- Protection: traps and spells that protect the strategy
- Every card needs a reason tied to the strategy

## Output
Reply ONLY with JSON in this shape:
{{
  "mainDeck": [{{"cardId": 0, "cardName": "", "quantity": 1, "reason": ""}}],
  "extraDeck": [{{"cardId": 0, "cardName": "", "quantity": 1, "reason": ""}}],
  "suggestions": [{{"cardName": "", "reason": "", "priority": "high|medium|low"}}],
  "explanation": ""
}}

"suggestions" lists cards the player does NOT own that would improve the deck."""


class ProposalSuggestion(BaseModel):
    """A card the player does not own, recommended by the proposer."""

    model_config = ConfigDict(populate_by_name=True)

    card_name: str = Field(alias="cardName")
    reason: str = ""
    priority: Literal["high", "medium", "low"] = "medium"


class _ProposedCard(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_id: int = Field(alias="cardId")
    card_name: str = Field(default="", alias="cardName")
    quantity: int = 1
    reason: str = ""


class _ProposalPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    main_deck: list[_ProposedCard] = Field(default_factory=list, alias="mainDeck")
    extra_deck: list[_ProposedCard] = Field(default_factory=list, alias="extraDeck")
    suggestions: list[ProposalSuggestion] = Field(default_factory=list)
    explanation: str = ""


@dataclass(frozen=True)
class DeckProposal:
    """
    Parsed proposer output.

    Attributes:
        candidates: Raw candidate lines for the reconciliation engine
        explanation: Free-text strategy rationale
        suggestions: Ranked cards to acquire
    """

    candidates: tuple[Candidate, ...] = field(default_factory=tuple)
    explanation: str = ""
    suggestions: tuple[ProposalSuggestion, ...] = field(default_factory=tuple)


def build_collection_prompt(inventory: InventoryIndex) -> str:
    """Owned cards grouped by name, split into main and extra pools."""
    main_lines: list[str] = []
    extra_lines: list[str] = []
    for card, owned in inventory.cards():
        available = min(owned, MAX_COPIES_PER_CARD)
        line = f'ID:{card.card_id} | "{card.name}" | {card.type_line} | AVAILABLE: x{available}'
        if card.section == DeckSection.EXTRA:
            extra_lines.append(line)
        else:
            main_lines.append(line)

    main_copies = sum(
        min(owned, MAX_COPIES_PER_CARD)
        for card, owned in inventory.cards()
        if card.section == DeckSection.MAIN
    )
    return (
        f"## My collection ({len(main_lines)} unique cards, {main_copies} copies)\n"
        + ("\n".join(main_lines) or "None")
        + "\n\n## Extra Deck cards available\n"
        + ("\n".join(extra_lines) or "No Extra Deck cards in the collection")
    )


def build_deck_context(deck: Deck) -> str:
    """The current deck as a merged name/quantity list, or "" when empty."""
    merged = deck.merged_card_list()
    if not merged:
        return ""
    lines = "\n".join(f"- {name} x{quantity}" for name, quantity in merged)
    return (
        f"## Current deck to optimize "
        f"(main {deck.total(DeckSection.MAIN)}, extra {deck.total(DeckSection.EXTRA)})\n"
        f"{lines}\n\n"
        "REPLACE this deck with an optimized version. Keep, remove or add cards."
    )


def parse_proposal(text: str) -> DeckProposal:
    """
    Extract and validate the JSON object in a model reply.

    Raises:
        ProposalUnavailableError: If no valid JSON object is found
    """
    match = _JSON_OBJECT.search(text)
    if match is None:
        raise ProposalUnavailableError("Proposal response contained no JSON object")

    try:
        payload = _ProposalPayload.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ProposalUnavailableError(f"Proposal response was not valid: {exc}") from exc

    candidates = [
        Candidate(
            card_id=line.card_id,
            quantity=line.quantity,
            section=section,
            provenance=Provenance.PROPOSAL,
            card_name=line.card_name or None,
            reason=line.reason,
        )
        for section, lines in (
            (DeckSection.MAIN, payload.main_deck),
            (DeckSection.EXTRA, payload.extra_deck),
        )
        for line in lines
    ]
    return DeckProposal(
        candidates=tuple(candidates),
        explanation=payload.explanation,
        suggestions=tuple(payload.suggestions),
    )


class DeckProposer:
    """
    Automated-proposal provider backed by the Anthropic Messages API.

    Usage:
        proposer = DeckProposer(api_key, budget)
        proposal = proposer.propose("a Dark Magician deck", inventory, deck)
        result = reconcile(deck, proposal.candidates, inventory, catalog)
    """

    def __init__(
        self,
        api_key: str,
        budget: ProposalBudget,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        self._api_key = api_key
        self._budget = budget
        self._model = model
        self._max_tokens = max_tokens

    @property
    def budget(self) -> ProposalBudget:
        return self._budget

    def propose(self, goal: str, inventory: InventoryIndex, deck: Deck) -> DeckProposal:
        """
        Request a deck proposal for a free-text goal.

        Raises:
            ProposalUnavailableError: No API key, unavailable collection,
                API failure or unparseable output
            BudgetExceededError: The call budget is spent
        """
        if not self._api_key:
            raise ProposalUnavailableError("Anthropic API key not configured")
        if not inventory.available:
            raise ProposalUnavailableError("Collection could not be loaded")

        user_message = "\n\n".join(
            part
            for part in (
                build_collection_prompt(inventory),
                build_deck_context(deck),
                f"## My request\n{goal}",
            )
            if part
        )

        self._budget.acquire()
        client = anthropic.Anthropic(api_key=self._api_key)
        try:
            response = client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": user_message}],
            )
        except anthropic.APIError as exc:
            logger.warning("Proposal request failed: %s", exc)
            raise ProposalUnavailableError(f"Anthropic API error: {exc}") from exc

        if response.usage:
            logger.info(
                "proposal_token_usage",
                extra={
                    "input_tokens": response.usage.input_tokens,
                    "output_tokens": response.usage.output_tokens,
                },
            )

        text = "".join(block.text for block in response.content if isinstance(block, TextBlock))
        if not text:
            raise ProposalUnavailableError("Proposal response contained no text")

        proposal = parse_proposal(text)
        logger.info(
            "Received proposal with %d candidate lines",
            len(proposal.candidates),
            extra={"suggestions": len(proposal.suggestions)},
        )
        return proposal
