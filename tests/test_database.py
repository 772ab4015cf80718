"""Tests for engine construction and table creation."""

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.pool import StaticPool

from duelvault.db.database import build_engine, init_db
from duelvault.models.db import CardDB


class TestBuildEngine:
    def test_in_memory_sqlite_uses_one_connection(self) -> None:
        engine = build_engine("sqlite+aiosqlite://")

        assert isinstance(engine.pool, StaticPool)

    def test_server_database_pools_connections(self) -> None:
        engine = build_engine("postgresql+asyncpg://localhost:5432/duelvault")

        assert not isinstance(engine.pool, StaticPool)
        assert engine.url.get_backend_name() == "postgresql"

    async def test_in_memory_data_survives_across_sessions(self) -> None:
        """Rows committed in one session are visible to the next."""
        engine = build_engine("sqlite+aiosqlite:///:memory:")
        await init_db(engine)
        factory = async_sessionmaker(engine, expire_on_commit=False)

        async with factory() as session:
            session.add(CardDB(id=46986414, name="Dark Magician", type_line="Normal Monster"))
            await session.commit()

        async with factory() as session:
            card = await session.get(CardDB, 46986414)

        assert card is not None
        assert card.name == "Dark Magician"
        await engine.dispose()


class TestInitDb:
    async def test_creates_every_table(self) -> None:
        engine = build_engine("sqlite+aiosqlite:///:memory:")

        await init_db(engine)
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

        assert set(tables) == {"cards", "owned_editions", "decks", "deck_cards"}
        await engine.dispose()
