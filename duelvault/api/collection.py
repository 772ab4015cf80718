"""
Collection API endpoints.

Owned editions per user. Every edition must reference a cached card.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from duelvault.db import (
    add_owned_edition,
    get_owned_edition,
    get_owned_editions,
    load_catalog,
    owned_edition_to_model,
    remove_owned_edition,
    replace_owned_editions,
    set_owned_quantity,
)
from duelvault.db.database import get_session
from duelvault.models.card import Edition
from duelvault.models.db import OwnedEditionDB
from duelvault.models.inventory import InventoryIndex

router = APIRouter(prefix="/collection", tags=["collection"])


class EditionModel(BaseModel):
    """A specific printing of a card."""

    card_id: int
    set_code: str = Field(..., min_length=1, max_length=50)
    rarity: str = Field(..., min_length=1, max_length=50)
    language: str = Field(default="EN", min_length=2, max_length=5)

    def to_edition(self) -> Edition:
        return Edition(
            card_id=self.card_id,
            set_code=self.set_code,
            rarity=self.rarity,
            language=self.language.upper(),
        )


class OwnedEditionModel(EditionModel):
    quantity: int = Field(..., ge=1)


class CollectionUpdateRequest(BaseModel):
    """Request model for replacing a collection."""

    editions: list[OwnedEditionModel] = Field(
        ...,
        examples=[
            [{"card_id": 46986414, "set_code": "LOB-EN005", "rarity": "Ultra Rare", "quantity": 2}]
        ],
    )


class QuantityUpdateRequest(BaseModel):
    """New copy count for one owned edition; 0 removes it."""

    quantity: int = Field(..., ge=0)


class OwnedEditionResponse(BaseModel):
    edition_id: int
    card_id: int
    card_name: str
    set_code: str
    rarity: str
    language: str
    quantity: int


class CollectionResponse(BaseModel):
    """Response model for collection data."""

    user_id: int
    unique_cards: int = 0
    total_copies: int = 0
    editions: list[OwnedEditionResponse] = Field(default_factory=list)


async def _require_cards(session: AsyncSession, editions: list[OwnedEditionModel]) -> None:
    """Raise UnknownCardError for the first edition whose card is not cached."""
    catalog = await load_catalog(session, (e.card_id for e in editions))
    for edition in editions:
        catalog.resolve(edition.card_id)


async def _require_owned(session: AsyncSession, user_id: int, edition_id: int) -> OwnedEditionDB:
    owned = await get_owned_edition(session, user_id, edition_id)
    if owned is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Edition {edition_id} not found in collection of user {user_id}",
        )
    return owned


async def _collection_response(session: AsyncSession, user_id: int) -> CollectionResponse:
    rows = await get_owned_editions(session, user_id)
    owned = [owned_edition_to_model(row) for row in rows]
    index = InventoryIndex.from_owned(owned)
    return CollectionResponse(
        user_id=user_id,
        unique_cards=index.unique_cards(),
        total_copies=index.total_copies(),
        editions=[
            OwnedEditionResponse(
                edition_id=row.id,
                card_id=record.edition.card_id,
                card_name=record.card.name,
                set_code=record.edition.set_code,
                rarity=record.edition.rarity,
                language=record.edition.language,
                quantity=record.quantity,
            )
            for row, record in zip(rows, owned, strict=True)
        ],
    )


@router.get("/{user_id}", response_model=CollectionResponse)
async def get_user_collection(
    user_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CollectionResponse:
    """A user's owned editions. Users with nothing recorded own nothing."""
    return await _collection_response(session, user_id)


@router.put("/{user_id}", response_model=CollectionResponse)
async def replace_user_collection(
    user_id: int,
    request: CollectionUpdateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CollectionResponse:
    """Replace a user's whole collection. Duplicate editions are summed."""
    await _require_cards(session, request.editions)
    await replace_owned_editions(
        session, user_id, [(e.to_edition(), e.quantity) for e in request.editions]
    )
    return await _collection_response(session, user_id)


@router.post("/{user_id}/editions", response_model=CollectionResponse)
async def add_user_edition(
    user_id: int,
    request: OwnedEditionModel,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CollectionResponse:
    """Add copies of one edition; an edition already owned is incremented."""
    await _require_cards(session, [request])
    await add_owned_edition(session, user_id, request.to_edition(), request.quantity)
    return await _collection_response(session, user_id)


@router.put("/{user_id}/editions/{edition_id}", response_model=CollectionResponse)
async def update_edition_quantity(
    user_id: int,
    edition_id: int,
    request: QuantityUpdateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CollectionResponse:
    """Set the copies owned of one edition. Decks using it are not changed."""
    owned = await _require_owned(session, user_id, edition_id)
    await set_owned_quantity(session, owned, request.quantity)
    return await _collection_response(session, user_id)


@router.delete("/{user_id}/editions/{edition_id}", response_model=CollectionResponse)
async def remove_user_edition(
    user_id: int,
    edition_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CollectionResponse:
    owned = await _require_owned(session, user_id, edition_id)
    await remove_owned_edition(session, owned)
    return await _collection_response(session, user_id)
