"""Tests for database CRUD operations."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from cardswap.db.operations import (
    card_to_model,
    count_collection_entries,
    count_custom_lines,
    count_matches_by_status,
    count_wishlist_entries,
    create_collection_entry,
    create_wishlist_entry,
    delete_collection_entry,
    delete_match_lines,
    delete_matches,
    get_active_location,
    get_card,
    get_collection_entries,
    get_escrowed_collection_ids,
    get_lines_for_matches,
    get_match,
    get_match_by_pair,
    get_match_lines,
    get_matches_for_user,
    get_other_active_locations,
    get_preferences_map,
    search_collection,
    set_active_location,
    upsert_preferences,
)
from cardswap.models.db import MatchCardDB, MatchDB

from conftest import Seeder


def make_line(match_id: int, price: float | None, **overrides) -> MatchCardDB:
    fields = {
        "match_id": match_id,
        "direction": "a_wants",
        "card_id": "p7",
        "card_name": "Lightning Bolt",
        "card_set_code": "M11",
        "asking_price": price,
        "collection_condition": "NM",
        "wishlist_min_condition": "LP",
        "is_foil": False,
        "quantity_available": 1,
        "quantity_wanted": 1,
    }
    fields.update(overrides)
    return MatchCardDB(**fields)


@pytest.fixture
async def pair(session: AsyncSession) -> MatchDB:
    match = MatchDB(user_a_id="alice", user_b_id="bob", match_type="one_way_buy")
    session.add(match)
    await session.flush()
    return match


class TestCardOperations:
    async def test_card_round_trip(self, session: AsyncSession, seed: Seeder) -> None:
        row = await get_card(session, "p7")

        card = card_to_model(row)
        assert card == seed.bolt


class TestLocationOperations:
    async def test_new_location_replaces_active(self, session: AsyncSession) -> None:
        await set_active_location(session, "alice", 1.0, 2.0)
        await set_active_location(session, "alice", 3.0, 4.0, radius_km=10)

        location = await get_active_location(session, "alice")

        assert (location.latitude, location.longitude, location.radius_km) == (3.0, 4.0, 10)

    async def test_no_location(self, session: AsyncSession) -> None:
        assert await get_active_location(session, "alice") is None

    async def test_other_active_locations(self, session: AsyncSession) -> None:
        await set_active_location(session, "alice", 1.0, 1.0)
        await set_active_location(session, "bob", 2.0, 2.0)
        await set_active_location(session, "carol", 3.0, 3.0)

        others = await get_other_active_locations(session, "alice")

        assert sorted(loc.user_id for loc in others) == ["bob", "carol"]


class TestPreferenceOperations:
    async def test_upsert_only_writes_given_fields(self, session: AsyncSession) -> None:
        await upsert_preferences(session, "bob", trade_mode="sell", minimum_price=1.0)
        prefs = await upsert_preferences(session, "bob", minimum_price=2.0)

        assert prefs.trade_mode == "sell"
        assert prefs.minimum_price == 2.0

    async def test_preferences_map(self, session: AsyncSession) -> None:
        await upsert_preferences(session, "bob", trade_mode="buy")

        prefs = await get_preferences_map(session, ["bob", "carol"])

        assert set(prefs) == {"bob"}


class TestInventoryOperations:
    @pytest.mark.parametrize("quantity", [0, -1])
    async def test_collection_quantity_must_be_positive(
        self, session: AsyncSession, quantity: int
    ) -> None:
        with pytest.raises(ValueError, match="positive"):
            await create_collection_entry(session, "bob", "p7", quantity=quantity)

    async def test_wishlist_priority_range(self, session: AsyncSession) -> None:
        with pytest.raises(ValueError, match="Priority"):
            await create_wishlist_entry(session, "alice", "o1", priority=11)

    async def test_paused_entries_hidden_by_default(
        self, session: AsyncSession, seed: Seeder
    ) -> None:
        await seed.have("bob", seed.bolt)
        await seed.have("bob", seed.sol_ring, is_paused=True)

        visible = await get_collection_entries(session, ["bob"])
        everything = await get_collection_entries(session, ["bob"], include_paused=True)

        assert [e.card_id for e in visible] == ["p7"]
        assert len(everything) == 2
        assert await count_collection_entries(session, "bob") == 2

    async def test_count_wishlist(self, session: AsyncSession, seed: Seeder) -> None:
        await seed.want("alice", seed.bolt)
        await seed.want("alice", seed.counterspell)

        assert await count_wishlist_entries(session, "alice") == 2

    async def test_delete_unlinks_match_lines(
        self, session: AsyncSession, seed: Seeder, pair: MatchDB
    ) -> None:
        entry = await seed.have("bob", seed.bolt)
        session.add(make_line(pair.id, 5.0, collection_id=entry.id))
        await session.flush()

        await delete_collection_entry(session, entry)

        lines = await get_match_lines(session, pair.id)
        assert lines[0].collection_id is None

    async def test_search_collection(self, session: AsyncSession, seed: Seeder) -> None:
        await seed.have("bob", seed.bolt)
        await seed.have("bob", seed.bolt_reprint)
        await seed.have("bob", seed.sol_ring)

        rows, total = await search_collection(session, "bob", "lightning", limit=1)

        assert total == 2
        assert len(rows) == 1
        assert rows[0][1].name == "Lightning Bolt"


class TestMatchOperations:
    async def test_lookup_by_pair(self, session: AsyncSession, pair: MatchDB) -> None:
        assert (await get_match_by_pair(session, "alice", "bob")).id == pair.id
        assert await get_match_by_pair(session, "bob", "alice") is None

    async def test_for_update_rereads(self, session: AsyncSession, pair: MatchDB) -> None:
        match = await get_match(session, pair.id, for_update=True)

        assert match is pair

    async def test_matches_for_user_and_counts(self, session: AsyncSession, pair: MatchDB) -> None:
        session.add(
            MatchDB(user_a_id="bob", user_b_id="carol", match_type="two_way", status="dismissed")
        )
        await session.flush()

        assert len(await get_matches_for_user(session, "bob")) == 2
        assert len(await get_matches_for_user(session, "bob", ["dismissed"])) == 1
        counts = await count_matches_by_status(session, "bob")
        assert counts["active"] == 1
        assert counts["dismissed"] == 1
        assert counts["completed"] == 0

    async def test_delete_matches_removes_lines(
        self, session: AsyncSession, pair: MatchDB
    ) -> None:
        session.add(make_line(pair.id, 1.0))
        await session.flush()

        deleted = await delete_matches(session, [pair.id])

        assert deleted == 1
        assert await get_match_lines(session, pair.id) == []
        assert await delete_matches(session, []) == 0


class TestMatchLineOperations:
    async def test_lines_cheapest_first_unpriced_last(
        self, session: AsyncSession, pair: MatchDB
    ) -> None:
        session.add_all(
            [make_line(pair.id, None), make_line(pair.id, 9.0), make_line(pair.id, 1.0)]
        )
        await session.flush()

        lines = await get_match_lines(session, pair.id)

        assert [line.asking_price for line in lines] == [1.0, 9.0, None]

    async def test_excluded_lines_filtered(self, session: AsyncSession, pair: MatchDB) -> None:
        session.add_all([make_line(pair.id, 1.0), make_line(pair.id, 2.0, is_excluded=True)])
        await session.flush()

        lines = await get_match_lines(session, pair.id, include_excluded=False)

        assert [line.asking_price for line in lines] == [1.0]

    async def test_lines_grouped_by_match(self, session: AsyncSession, pair: MatchDB) -> None:
        session.add(make_line(pair.id, 1.0))
        await session.flush()

        grouped = await get_lines_for_matches(session, [pair.id, 9999])

        assert len(grouped[pair.id]) == 1
        assert grouped[9999] == []

    async def test_delete_keeps_custom(self, session: AsyncSession, pair: MatchDB) -> None:
        session.add_all(
            [
                make_line(pair.id, 1.0),
                make_line(pair.id, 2.0, is_custom=True, added_by_user_id="alice"),
            ]
        )
        await session.flush()

        deleted = await delete_match_lines(session, pair.id)

        assert deleted == 1
        assert await count_custom_lines(session, pair.id) == 1

    async def test_escrowed_collection_ids(
        self, session: AsyncSession, seed: Seeder, pair: MatchDB
    ) -> None:
        held = await seed.have("bob", seed.bolt)
        excluded = await seed.have("bob", seed.sol_ring)
        session.add_all(
            [
                make_line(pair.id, 1.0, collection_id=held.id),
                make_line(pair.id, 1.0, collection_id=excluded.id, is_excluded=True),
            ]
        )
        await session.flush()
        assert await get_escrowed_collection_ids(session) == set()

        pair.status = "confirmed"
        await session.flush()

        assert await get_escrowed_collection_ids(session) == {held.id}
