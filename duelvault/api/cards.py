"""
Card metadata cache endpoints.

The surrounding application fetches card metadata from the external
metadata source and pushes it here; the deck engine only reads the cache.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from duelvault.db import load_catalog, upsert_cards
from duelvault.db.database import get_session
from duelvault.models.card import CardIdentity
from duelvault.services.card_catalog import CardCatalog

router = APIRouter(prefix="/cards", tags=["cards"])


class CardUpsertRequest(BaseModel):
    """Raw card records as published by the metadata source."""

    cards: list[dict[str, Any]] = Field(
        ...,
        description="Card records (id, name, type, frameType, banlist_info)",
        examples=[
            [
                {
                    "id": 46986414,
                    "name": "Dark Magician",
                    "type": "Normal Monster",
                    "frameType": "normal",
                }
            ]
        ],
    )


class CardUpsertResponse(BaseModel):
    received: int
    stored: int
    skipped: int


class CardResponse(BaseModel):
    card_id: int
    name: str
    type_line: str
    frame_type: str
    section: str
    banlist: dict[str, str] = Field(default_factory=dict)


def card_response(card: CardIdentity) -> CardResponse:
    return CardResponse(
        card_id=card.card_id,
        name=card.name,
        type_line=card.type_line,
        frame_type=card.frame_type,
        section=card.section.value,
        banlist={ruleset.value: status.value for ruleset, status in card.banlist.items()},
    )


@router.post("", response_model=CardUpsertResponse)
async def store_cards(
    request: CardUpsertRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardUpsertResponse:
    """Cache card metadata. Malformed records are skipped."""
    catalog = CardCatalog.from_records(request.cards)
    stored = await upsert_cards(session, catalog)
    return CardUpsertResponse(
        received=len(request.cards),
        stored=stored,
        skipped=len(request.cards) - len(catalog),
    )


@router.get("/{card_id}", response_model=CardResponse)
async def get_card(
    card_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    catalog = await load_catalog(session, [card_id])
    return card_response(catalog.resolve(card_id))
