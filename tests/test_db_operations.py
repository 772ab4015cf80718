"""Tests for database CRUD operations."""

from dataclasses import replace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from duelvault.db.operations import (
    add_owned_edition,
    create_deck,
    deck_to_model,
    delete_deck,
    get_deck,
    get_owned_editions,
    list_public_decks,
    list_user_decks,
    load_catalog,
    load_inventory,
    replace_owned_editions,
    save_deck_entries,
    update_deck_settings,
    upsert_cards,
)
from duelvault.models.card import BanlistStatus, DeckSection, Edition, Ruleset
from duelvault.models.db import Base
from duelvault.models.deck import DeckCardEntry


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session(async_engine) -> AsyncSession:
    """Provide a database session for tests."""
    async_session = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session


@pytest.fixture
async def cached_cards(session: AsyncSession, catalog) -> None:
    await upsert_cards(session, catalog)
    await session.commit()


class TestCardOperations:
    async def test_upsert_and_load(self, session: AsyncSession, catalog, raigeki) -> None:
        """Cached cards round-trip with their banlist."""
        stored = await upsert_cards(session, catalog)
        await session.commit()

        loaded = await load_catalog(session, [raigeki.card_id, 1])

        assert stored == len(catalog)
        assert len(loaded) == 1
        assert loaded.resolve(raigeki.card_id) == raigeki

    async def test_upsert_updates_existing(self, session: AsyncSession, dark_magician) -> None:
        await upsert_cards(session, [dark_magician])
        await session.commit()

        renamed = replace(dark_magician, banlist={Ruleset.GOAT: BanlistStatus.LIMITED})
        await upsert_cards(session, [renamed])
        await session.commit()

        loaded = await load_catalog(session, [dark_magician.card_id])
        assert loaded.resolve(dark_magician.card_id).banlist == renamed.banlist

    async def test_load_catalog_no_ids(self, session: AsyncSession) -> None:
        assert len(await load_catalog(session, [])) == 0


@pytest.mark.usefixtures("cached_cards")
class TestCollectionOperations:
    async def test_add_edition_increments(self, session: AsyncSession, dark_magician) -> None:
        edition = Edition(dark_magician.card_id, "LOB-EN005", "Ultra Rare")
        await add_owned_edition(session, 7, edition, 1)
        await add_owned_edition(session, 7, edition, 2)
        await session.commit()

        rows = await get_owned_editions(session, 7)

        assert len(rows) == 1
        assert rows[0].quantity == 3

    async def test_replace_sums_duplicates(self, session: AsyncSession, dark_magician) -> None:
        lob = Edition(dark_magician.card_id, "LOB-EN005", "Ultra Rare")
        sdy = Edition(dark_magician.card_id, "SDY-006", "Ultra Rare")
        await add_owned_edition(session, 7, sdy, 3)

        stored = await replace_owned_editions(session, 7, [(lob, 1), (lob, 1)])
        await session.commit()

        inventory = await load_inventory(session, 7)
        assert stored == 1
        assert inventory.owned_by_edition(lob) == 2
        assert inventory.owned_by_edition(sdy) == 0

    async def test_inventory_per_user(self, session: AsyncSession, dark_magician) -> None:
        edition = Edition(dark_magician.card_id, "LOB-EN005", "Ultra Rare")
        await add_owned_edition(session, 7, edition, 2)
        await session.commit()

        assert (await load_inventory(session, 7)).owned_by_card_name("Dark Magician") == 2
        assert (await load_inventory(session, 8)).owned_by_card_name("Dark Magician") == 0


@pytest.mark.usefixtures("cached_cards")
class TestDeckOperations:
    async def test_create_and_get(self, session: AsyncSession) -> None:
        deck_db = await create_deck(session, user_id=7, name="Spellcasters")
        await session.commit()

        loaded = await get_deck(session, deck_db.id)

        assert loaded is not None
        model = deck_to_model(loaded)
        assert model.name == "Spellcasters"
        assert model.ruleset == Ruleset.TCG
        assert model.main == [] and model.extra == []

    async def test_get_missing(self, session: AsyncSession) -> None:
        assert await get_deck(session, 999) is None

    async def test_save_entries_round_trip(
        self, session: AsyncSession, dark_magician, thousand_eyes
    ) -> None:
        deck_db = await create_deck(session, user_id=7, name="Round Trip")
        deck = deck_to_model(deck_db)
        edition = Edition(dark_magician.card_id, "LOB-EN005", "Ultra Rare")
        deck.main.append(DeckCardEntry(1, dark_magician, 2, DeckSection.MAIN, edition))
        deck.extra.append(DeckCardEntry(2, thousand_eyes, 1, DeckSection.EXTRA))

        await save_deck_entries(session, deck_db, deck)
        await session.commit()
        loaded = deck_to_model(await get_deck(session, deck_db.id))

        assert loaded.main == deck.main
        assert loaded.extra == deck.extra

    async def test_reprint_edition_round_trip(
        self, session: AsyncSession, dark_magician, dark_magician_reprint
    ) -> None:
        """An entry tied to a reprint's edition keeps the reprint's card id."""
        deck_db = await create_deck(session, user_id=7, name="Reprints")
        deck = deck_to_model(deck_db)
        sdy = Edition(dark_magician_reprint.card_id, "SDY-006", "Ultra Rare")
        deck.main.append(DeckCardEntry(1, dark_magician, 2, DeckSection.MAIN, sdy))

        await save_deck_entries(session, deck_db, deck)
        await session.commit()
        loaded = deck_to_model(await get_deck(session, deck_db.id))

        assert loaded.main[0].card_id == dark_magician.card_id
        assert loaded.main[0].edition == sdy

    async def test_save_replaces_previous_entries(
        self, session: AsyncSession, dark_magician, raigeki
    ) -> None:
        deck_db = await create_deck(session, user_id=7, name="Replace")
        deck = deck_to_model(deck_db)
        deck.main.append(DeckCardEntry(1, dark_magician, 3, DeckSection.MAIN))
        await save_deck_entries(session, deck_db, deck)
        await session.commit()

        deck.main[:] = [DeckCardEntry(5, raigeki, 1, DeckSection.MAIN)]
        await save_deck_entries(session, deck_db, deck)
        await session.commit()

        loaded = deck_to_model(await get_deck(session, deck_db.id))
        assert [(e.entry_id, e.card.name) for e in loaded.main] == [(5, "Raigeki")]

    async def test_update_settings(self, session: AsyncSession) -> None:
        deck_db = await create_deck(session, user_id=7, name="Before")

        await update_deck_settings(
            session, deck_db, name="After", respect_banlist=False, ruleset=Ruleset.GOAT
        )
        await session.commit()

        model = deck_to_model(await get_deck(session, deck_db.id))
        assert (model.name, model.respect_banlist, model.ruleset) == (
            "After",
            False,
            Ruleset.GOAT,
        )
        assert model.is_public is True

    async def test_delete(self, session: AsyncSession, dark_magician) -> None:
        deck_db = await create_deck(session, user_id=7, name="Doomed")
        deck = deck_to_model(deck_db)
        deck.main.append(DeckCardEntry(1, dark_magician, 1, DeckSection.MAIN))
        await save_deck_entries(session, deck_db, deck)
        await session.commit()

        assert await delete_deck(session, deck_db.id) is True
        await session.commit()
        assert await get_deck(session, deck_db.id) is None
        assert await delete_deck(session, deck_db.id) is False

    async def test_list_user_decks_paginates(self, session: AsyncSession) -> None:
        for index in range(5):
            await create_deck(session, user_id=7, name=f"Deck {index}")
        await create_deck(session, user_id=8, name="Someone else")
        await session.commit()

        page, total = await list_user_decks(session, 7, page=2, limit=2)

        assert total == 5
        assert len(page) == 2
        assert all(deck.user_id == 7 for deck in page)

    async def test_list_public_decks_filters(self, session: AsyncSession) -> None:
        await create_deck(session, user_id=7, name="Dragon Rush")
        await create_deck(session, user_id=8, name="Dragon Control", respect_banlist=False)
        await create_deck(session, user_id=8, name="Secret Dragons", is_public=False)
        await create_deck(session, user_id=9, name="Spellcasters")
        await session.commit()

        decks, total = await list_public_decks(session, search="dragon")
        assert total == 2
        assert {deck.name for deck in decks} == {"Dragon Rush", "Dragon Control"}

        decks, total = await list_public_decks(session, search="dragon", respect_banlist=True)
        assert [deck.name for deck in decks] == ["Dragon Rush"]

        decks, total = await list_public_decks(session, user_id=9)
        assert [deck.name for deck in decks] == ["Spellcasters"]
