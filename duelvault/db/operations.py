"""
Database CRUD operations.

Async functions that load and store cards, collections and decks, and
convert between ORM rows and the deck engine's domain models. The engine
itself never calls these; the API layer does.
"""

import logging
import secrets
from collections.abc import Iterable

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from duelvault.models.card import BanlistStatus, CardIdentity, DeckSection, Edition, Ruleset
from duelvault.models.db import CardDB, DeckCardDB, DeckDB, OwnedEditionDB
from duelvault.models.deck import Deck, DeckCardEntry
from duelvault.models.inventory import InventoryIndex, OwnedEdition
from duelvault.services.card_catalog import CardCatalog

logger = logging.getLogger(__name__)

# token_urlsafe length stays under SHARE_TOKEN_MAX_LENGTH
SHARE_TOKEN_BYTES = 32

# --- Card Operations ---


def card_to_model(card: CardDB) -> CardIdentity:
    """Convert a cached card row to a domain model."""
    return CardIdentity(
        card_id=card.id,
        name=card.name,
        type_line=card.type_line,
        frame_type=card.frame_type or "",
        banlist={
            Ruleset(ruleset): BanlistStatus(status)
            for ruleset, status in (card.banlist or {}).items()
        },
    )


async def upsert_cards(session: AsyncSession, cards: Iterable[CardIdentity]) -> int:
    """
    Insert or update cached card metadata.

    Returns the number of cards written.
    """
    count = 0
    for card in cards:
        banlist = {ruleset.value: status.value for ruleset, status in card.banlist.items()}
        existing = await session.get(CardDB, card.card_id)
        if existing:
            existing.name = card.name
            existing.type_line = card.type_line
            existing.frame_type = card.frame_type
            existing.banlist = banlist
        else:
            session.add(
                CardDB(
                    id=card.card_id,
                    name=card.name,
                    type_line=card.type_line,
                    frame_type=card.frame_type,
                    banlist=banlist,
                )
            )
        count += 1
    await session.flush()
    return count


async def load_catalog(session: AsyncSession, card_ids: Iterable[int]) -> CardCatalog:
    """Catalog holding the cached cards among card_ids (unknown ids are absent)."""
    ids = set(card_ids)
    if not ids:
        return CardCatalog()
    result = await session.execute(select(CardDB).where(CardDB.id.in_(ids)))
    return CardCatalog(card_to_model(card) for card in result.scalars().all())


# --- Collection Operations ---


async def get_owned_editions(session: AsyncSession, user_id: int) -> list[OwnedEditionDB]:
    result = await session.execute(
        select(OwnedEditionDB)
        .where(OwnedEditionDB.user_id == user_id)
        .options(selectinload(OwnedEditionDB.card))
        .order_by(OwnedEditionDB.id)
    )
    return list(result.scalars().all())


async def add_owned_edition(
    session: AsyncSession, user_id: int, edition: Edition, quantity: int
) -> OwnedEditionDB:
    """
    Add copies of an edition to a collection.

    Adding an edition the user already owns increments its quantity.
    """
    result = await session.execute(
        select(OwnedEditionDB).where(
            OwnedEditionDB.user_id == user_id,
            OwnedEditionDB.card_id == edition.card_id,
            OwnedEditionDB.set_code == edition.set_code,
            OwnedEditionDB.rarity == edition.rarity,
            OwnedEditionDB.language == edition.language,
        )
    )
    existing = result.scalar_one_or_none()
    if existing:
        existing.quantity += quantity
        await session.flush()
        return existing

    owned = OwnedEditionDB(
        user_id=user_id,
        card_id=edition.card_id,
        set_code=edition.set_code,
        rarity=edition.rarity,
        language=edition.language,
        quantity=quantity,
    )
    session.add(owned)
    await session.flush()
    return owned


async def replace_owned_editions(
    session: AsyncSession, user_id: int, editions: Iterable[tuple[Edition, int]]
) -> int:
    """
    Replace a user's collection with new edition data.

    Duplicate editions are summed. Returns the number of distinct editions stored.
    """
    await session.execute(delete(OwnedEditionDB).where(OwnedEditionDB.user_id == user_id))

    merged: dict[Edition, int] = {}
    for edition, quantity in editions:
        merged[edition] = merged.get(edition, 0) + quantity

    for edition, quantity in merged.items():
        session.add(
            OwnedEditionDB(
                user_id=user_id,
                card_id=edition.card_id,
                set_code=edition.set_code,
                rarity=edition.rarity,
                language=edition.language,
                quantity=quantity,
            )
        )
    await session.flush()
    return len(merged)


async def get_owned_edition(
    session: AsyncSession, user_id: int, owned_id: int
) -> OwnedEditionDB | None:
    """One owned edition row, or None if it does not belong to the user."""
    result = await session.execute(
        select(OwnedEditionDB).where(
            OwnedEditionDB.id == owned_id,
            OwnedEditionDB.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def set_owned_quantity(
    session: AsyncSession, owned: OwnedEditionDB, quantity: int
) -> OwnedEditionDB | None:
    """
    Set the copies owned of one edition.

    A quantity of 0 removes the edition and returns None.
    """
    if quantity <= 0:
        await remove_owned_edition(session, owned)
        return None
    owned.quantity = quantity
    await session.flush()
    return owned


async def remove_owned_edition(session: AsyncSession, owned: OwnedEditionDB) -> None:
    await session.delete(owned)
    await session.flush()
    logger.info(
        "Removed edition %s from collection of user %d",
        owned.set_code,
        owned.user_id,
        extra={"card_id": owned.card_id},
    )


def owned_edition_to_model(owned: OwnedEditionDB) -> OwnedEdition:
    return OwnedEdition(
        card=card_to_model(owned.card),
        edition=Edition(
            card_id=owned.card_id,
            set_code=owned.set_code,
            rarity=owned.rarity,
            language=owned.language,
        ),
        quantity=owned.quantity,
    )


async def load_inventory(session: AsyncSession, user_id: int) -> InventoryIndex:
    """Build the ownership index for a user."""
    owned = await get_owned_editions(session, user_id)
    return InventoryIndex.from_owned(owned_edition_to_model(row) for row in owned)


# --- Deck Operations ---


async def create_deck(
    session: AsyncSession,
    user_id: int,
    name: str,
    is_public: bool = True,
    respect_banlist: bool = True,
    ruleset: Ruleset = Ruleset.TCG,
) -> DeckDB:
    deck = DeckDB(
        user_id=user_id,
        name=name,
        is_public=is_public,
        respect_banlist=respect_banlist,
        ruleset=ruleset.value,
        cards=[],
    )
    session.add(deck)
    await session.flush()
    logger.info("Created deck %d for user %d", deck.id, user_id)
    return deck


async def get_deck(session: AsyncSession, deck_id: int) -> DeckDB | None:
    """
    Get a deck with its entries and their cards.

    Returns None if the deck does not exist.
    """
    result = await session.execute(
        select(DeckDB)
        .where(DeckDB.id == deck_id)
        .options(selectinload(DeckDB.cards).selectinload(DeckCardDB.card))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def update_deck_settings(
    session: AsyncSession,
    deck: DeckDB,
    name: str | None = None,
    is_public: bool | None = None,
    respect_banlist: bool | None = None,
    ruleset: Ruleset | None = None,
) -> DeckDB:
    """Update deck metadata; None leaves a field unchanged."""
    if name is not None:
        deck.name = name
    if is_public is not None:
        deck.is_public = is_public
    if respect_banlist is not None:
        deck.respect_banlist = respect_banlist
    if ruleset is not None:
        deck.ruleset = ruleset.value
    await session.flush()
    return deck


async def delete_deck(session: AsyncSession, deck_id: int) -> bool:
    """
    Delete a deck and its entries.

    Returns True if deleted, False if not found.
    """
    deck = await get_deck(session, deck_id)
    if not deck:
        return False
    await session.delete(deck)
    await session.flush()
    return True


async def share_deck(session: AsyncSession, deck: DeckDB) -> str:
    """
    Share token granting read access to a deck.

    A deck that is already shared keeps its token.
    """
    if deck.share_token is None:
        deck.share_token = secrets.token_urlsafe(SHARE_TOKEN_BYTES)
        await session.flush()
        logger.info("Shared deck %d", deck.id)
    return deck.share_token


async def unshare_deck(session: AsyncSession, deck: DeckDB) -> None:
    """Revoke a deck's share token; links handed out stop working."""
    deck.share_token = None
    await session.flush()


async def get_shared_deck(session: AsyncSession, share_token: str) -> DeckDB | None:
    """The deck behind a share token, with entries and cards loaded."""
    result = await session.execute(
        select(DeckDB)
        .where(DeckDB.share_token == share_token)
        .options(selectinload(DeckDB.cards).selectinload(DeckCardDB.card))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def save_deck_entries(session: AsyncSession, deck_db: DeckDB, deck: Deck) -> DeckDB:
    """
    Replace a deck's stored entries with the entries of a domain deck.

    Concurrent saves of the same deck are last-write-wins.
    """
    # delete-orphan cascade removes the old rows at flush
    deck_db.cards.clear()

    for position, entry in enumerate(deck.entries()):
        edition = entry.edition
        deck_db.cards.append(
            DeckCardDB(
                entry_id=entry.entry_id,
                position=position,
                card_id=entry.card_id,
                quantity=entry.quantity,
                is_extra_deck=entry.section == DeckSection.EXTRA,
                edition_card_id=edition.card_id if edition else None,
                set_code=edition.set_code if edition else None,
                rarity=edition.rarity if edition else None,
                language=edition.language if edition else None,
            )
        )
    await session.flush()
    logger.info(
        "Saved deck %d",
        deck_db.id,
        extra={
            "main_count": deck.total(DeckSection.MAIN),
            "extra_count": deck.total(DeckSection.EXTRA),
        },
    )
    return deck_db


def deck_to_model(deck_db: DeckDB) -> Deck:
    """Convert a loaded deck row (entries and cards eager-loaded) to a domain model."""
    deck = Deck(
        id=deck_db.id,
        owner_id=deck_db.user_id,
        name=deck_db.name,
        is_public=deck_db.is_public,
        respect_banlist=deck_db.respect_banlist,
        ruleset=Ruleset(deck_db.ruleset),
    )
    for row in deck_db.cards:
        section = DeckSection.EXTRA if row.is_extra_deck else DeckSection.MAIN
        edition = None
        if row.set_code is not None and row.rarity is not None:
            edition = Edition(
                card_id=row.edition_card_id if row.edition_card_id is not None else row.card_id,
                set_code=row.set_code,
                rarity=row.rarity,
                language=row.language or "EN",
            )
        deck.section_entries(section).append(
            DeckCardEntry(
                entry_id=row.entry_id,
                card=card_to_model(row.card),
                quantity=row.quantity,
                section=section,
                edition=edition,
            )
        )
    return deck


def _deck_filters(
    query: Select[tuple[DeckDB]],
    search: str | None,
    respect_banlist: bool | None,
) -> Select[tuple[DeckDB]]:
    if search:
        query = query.where(DeckDB.name.ilike(f"%{search}%"))
    if respect_banlist is not None:
        query = query.where(DeckDB.respect_banlist == respect_banlist)
    return query


async def _paginate(
    session: AsyncSession, query: Select[tuple[DeckDB]], page: int, limit: int
) -> tuple[list[DeckDB], int]:
    total = await session.scalar(select(func.count()).select_from(query.subquery()))
    result = await session.execute(
        query.order_by(DeckDB.updated_at.desc(), DeckDB.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)


async def list_user_decks(
    session: AsyncSession,
    user_id: int,
    search: str | None = None,
    respect_banlist: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[DeckDB], int]:
    """
    A page of a user's decks, most recently updated first.

    Returns:
        Tuple of (decks on this page, total matching decks)
    """
    query = _deck_filters(select(DeckDB).where(DeckDB.user_id == user_id), search, respect_banlist)
    return await _paginate(session, query, page, limit)


async def list_public_decks(
    session: AsyncSession,
    search: str | None = None,
    respect_banlist: bool | None = None,
    user_id: int | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[DeckDB], int]:
    """A page of public decks, optionally restricted to one author."""
    query = select(DeckDB).where(DeckDB.is_public.is_(True))
    if user_id is not None:
        query = query.where(DeckDB.user_id == user_id)
    query = _deck_filters(query, search, respect_banlist)
    return await _paginate(session, query, page, limit)
