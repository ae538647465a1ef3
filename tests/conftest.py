from dataclasses import dataclass

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cardswap.db.database import get_session
from cardswap.db.operations import (
    create_collection_entry,
    create_wishlist_entry,
    set_active_location,
    upsert_card,
    upsert_preferences,
)
from cardswap.main import app
from cardswap.models.card import CatalogCard
from cardswap.models.db import Base, CollectionEntryDB, WishlistEntryDB
from cardswap.services import notifications
from cardswap.services.notifications import drain_pushes

# ~4.26 km apart
HOME = (40.0, -74.0)
NEARBY = (40.0, -74.05)
# ~111 km north of HOME
FAR = (41.0, -74.0)

BOLT = CatalogCard(
    scryfall_id="p7",
    oracle_id="o1",
    name="Lightning Bolt",
    set_code="M11",
    set_name="Magic 2011",
    image_uri="https://img.example/p7.jpg",
    prices_usd=15.0,
    prices_usd_foil=30.0,
)
BOLT_REPRINT = CatalogCard(
    scryfall_id="p8",
    oracle_id="o1",
    name="Lightning Bolt",
    set_code="2XM",
    set_name="Double Masters",
    prices_usd=3.0,
)
COUNTERSPELL = CatalogCard(
    scryfall_id="p20",
    oracle_id="o2",
    name="Counterspell",
    set_code="MH2",
    set_name="Modern Horizons 2",
    prices_usd=2.0,
)
SOL_RING = CatalogCard(
    scryfall_id="p30",
    oracle_id="o3",
    name="Sol Ring",
    set_code="C21",
    set_name="Commander 2021",
    prices_usd=1.0,
)


@dataclass
class Seeder:
    """Shortcuts for putting users, cards and inventory in the store."""

    session: AsyncSession

    bolt = BOLT
    bolt_reprint = BOLT_REPRINT
    counterspell = COUNTERSPELL
    sol_ring = SOL_RING
    home = HOME
    nearby = NEARBY
    far = FAR

    async def catalog(self, *cards: CatalogCard) -> None:
        for card in cards or (BOLT, BOLT_REPRINT, COUNTERSPELL, SOL_RING):
            await upsert_card(self.session, card)
        await self.session.flush()

    async def user(
        self, user_id: str, point: tuple[float, float] = HOME, radius_km: float | None = None
    ) -> None:
        await set_active_location(self.session, user_id, point[0], point[1], radius_km)

    async def have(
        self,
        user_id: str,
        card: CatalogCard = BOLT,
        quantity: int = 1,
        **kwargs,
    ) -> CollectionEntryDB:
        return await create_collection_entry(
            self.session, user_id, card.scryfall_id, quantity=quantity, **kwargs
        )

    async def want(
        self,
        user_id: str,
        card: CatalogCard = BOLT,
        quantity: int = 1,
        **kwargs,
    ) -> WishlistEntryDB:
        return await create_wishlist_entry(
            self.session, user_id, card.oracle_id, quantity=quantity, **kwargs
        )

    async def prefs(self, user_id: str, **kwargs) -> None:
        await upsert_preferences(self.session, user_id, **kwargs)


@pytest.fixture(autouse=True)
async def push_disabled(monkeypatch: pytest.MonkeyPatch):
    """Keep push delivery offline and wait for scheduled pushes after each test."""
    monkeypatch.setattr(notifications.settings, "push_service_url", "")
    yield
    await drain_pushes()


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
async def seed(session: AsyncSession) -> Seeder:
    seeder = Seeder(session)
    await seeder.catalog()
    return seeder


@pytest.fixture
async def client(async_engine):
    """Provide an async test client with overridden database session."""
    async_session = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_session():
        async with async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
