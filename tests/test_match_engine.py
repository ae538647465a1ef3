"""Tests for match computation and single-match recalculation."""

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cardswap.analysis.geo import haversine_km
from cardswap.analysis.scoring import calculate_match_score
from cardswap.db.operations import (
    delete_wishlist_entry,
    get_match,
    get_match_by_pair,
    get_match_lines,
    get_wishlist_entries,
)
from cardswap.models.db import LocationDB, MatchDB, NotificationDB
from cardswap.models.enums import MatchType
from cardswap.models.failure import InvalidStateError, NoInventoryError, NoLocationError
from cardswap.services.match_engine import (
    allowed_by_trade_mode,
    compute_matches,
    recalculate_match,
)
from cardswap.services.trade_lifecycle import (
    add_custom_card,
    confirm_trade,
    request_trade,
    set_line_exclusion,
)

from conftest import Seeder


async def match_count(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(MatchDB))
    return int(result.scalar_one())


async def store_state(session: AsyncSession) -> list[tuple]:
    """Match and line content without ids or timestamps."""
    matches = (await session.execute(select(MatchDB).order_by(MatchDB.user_a_id))).scalars()
    state: list[tuple] = []
    for m in matches:
        state.append(
            (
                m.user_a_id,
                m.user_b_id,
                m.match_type,
                m.distance_km,
                m.cards_a_wants_count,
                m.cards_b_wants_count,
                m.value_a_wants,
                m.value_b_wants,
                m.match_score,
                m.has_price_warnings,
                m.status,
            )
        )
        lines = await get_match_lines(session, m.id)
        state.extend(
            sorted(
                (
                    line.direction,
                    line.wishlist_id,
                    line.collection_id,
                    line.card_id,
                    line.asking_price,
                    line.quantity_available,
                    line.quantity_wanted,
                    line.is_excluded,
                )
                for line in lines
            )
        )
    return state


@pytest.fixture
async def alice_wants_bobs_bolt(seed: Seeder) -> Seeder:
    """alice wants a Bolt (LP+, max $10); bob, 4 km away, has one at 50% of $15."""
    await seed.user("alice", seed.home)
    await seed.user("bob", seed.nearby)
    await seed.want("alice", seed.bolt, max_price=10.0, min_condition="LP")
    await seed.have("bob", seed.bolt, quantity=2, condition="NM", price_percentage=50.0)
    return seed


class TestComputePreconditions:
    async def test_no_location(self, session: AsyncSession, seed: Seeder) -> None:
        await seed.want("alice")

        with pytest.raises(NoLocationError):
            await compute_matches(session, "alice")

    async def test_no_inventory(self, session: AsyncSession, seed: Seeder) -> None:
        await seed.user("alice")

        with pytest.raises(NoInventoryError):
            await compute_matches(session, "alice")


class TestComputeMatches:
    async def test_discounted_copy_matches(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        """50% of $15 is $7.50, under the $10 ceiling."""
        summaries = await compute_matches(session, "alice")

        assert len(summaries) == 1
        summary = summaries[0]
        assert summary.other_user_id == "bob"
        assert summary.match_type == MatchType.ONE_WAY_BUY
        assert summary.cards_i_want == 1
        assert summary.cards_they_want == 0

        match = await get_match(session, summary.id)
        lines = await get_match_lines(session, match.id)
        assert len(lines) == 1
        assert lines[0].asking_price == 7.5
        assert lines[0].price_exceeds_max is False
        assert lines[0].card_name == "Lightning Bolt"
        assert match.has_price_warnings is False

        distance = haversine_km(40.0, -74.0, 40.0, -74.05)
        assert match.distance_km == distance
        assert match.match_score == calculate_match_score(
            MatchType.ONE_WAY_BUY, 1, 0, 7.5, 0.0, distance, False, 0.75
        )

    async def test_price_over_ceiling_warns_and_penalises(
        self, session: AsyncSession, seed: Seeder
    ) -> None:
        """80% of $15 is $12, over the $10 ceiling."""
        await seed.user("alice", seed.home)
        await seed.user("bob", seed.nearby)
        await seed.want("alice", seed.bolt, max_price=10.0)
        await seed.have("bob", seed.bolt, price_percentage=80.0)

        summaries = await compute_matches(session, "alice")

        match = await get_match(session, summaries[0].id)
        lines = await get_match_lines(session, match.id)
        assert lines[0].asking_price == 12.0
        assert lines[0].price_exceeds_max is True
        assert match.has_price_warnings is True

        args = (MatchType.ONE_WAY_BUY, 1, 0, 12.0, 0.0, match.distance_km)
        unpenalised = calculate_match_score(*args, False, 1.0)
        assert match.match_score == pytest.approx(unpenalised - 5.0)

    async def test_two_way_match(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        seed = alice_wants_bobs_bolt
        await seed.have("alice", seed.counterspell)
        await seed.want("bob", seed.counterspell)

        summaries = await compute_matches(session, "alice")

        assert summaries[0].match_type == MatchType.TWO_WAY
        assert summaries[0].cards_i_want == 1
        assert summaries[0].cards_they_want == 1

    async def test_every_eligible_printing_becomes_a_line(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        seed = alice_wants_bobs_bolt
        await seed.have("bob", seed.bolt_reprint)

        summaries = await compute_matches(session, "alice")

        assert summaries[0].cards_i_want == 2

    async def test_condition_below_minimum_skipped(
        self, session: AsyncSession, seed: Seeder
    ) -> None:
        await seed.user("alice", seed.home)
        await seed.user("bob", seed.nearby)
        await seed.want("alice", seed.bolt, min_condition="NM")
        await seed.have("bob", seed.bolt, condition="LP")

        assert await compute_matches(session, "alice") == []

    async def test_specific_edition(self, session: AsyncSession, seed: Seeder) -> None:
        """Only the listed printing matches."""
        await seed.user("alice", seed.home)
        await seed.user("bob", seed.nearby)
        await seed.want("alice", seed.bolt, edition_preference="specific", specific_editions=["p8"])
        await seed.have("bob", seed.bolt)
        await seed.have("bob", seed.bolt_reprint)

        summaries = await compute_matches(session, "alice")

        lines = await get_match_lines(session, summaries[0].id)
        assert [line.card_id for line in lines] == ["p8"]

    async def test_minimum_price_floor(self, session: AsyncSession, seed: Seeder) -> None:
        await seed.user("alice", seed.home)
        await seed.user("bob", seed.nearby)
        await seed.want("alice", seed.sol_ring)
        await seed.have("bob", seed.sol_ring, price_percentage=50.0)
        await seed.prefs("bob", minimum_price=2.0)

        summaries = await compute_matches(session, "alice")

        lines = await get_match_lines(session, summaries[0].id)
        assert lines[0].asking_price == 2.0

    async def test_results_sorted_by_score(self, session: AsyncSession, seed: Seeder) -> None:
        await seed.user("alice", seed.home)
        await seed.user("bob", seed.nearby)
        await seed.user("carol", seed.home)
        await seed.want("alice", seed.bolt)
        await seed.have("bob", seed.bolt)
        await seed.have("carol", seed.bolt)
        await seed.have("carol", seed.bolt_reprint)

        summaries = await compute_matches(session, "alice")

        assert [s.other_user_id for s in summaries] == ["carol", "bob"]
        assert summaries[0].score >= summaries[1].score


class TestRadius:
    async def test_far_users_not_matched(self, session: AsyncSession, seed: Seeder) -> None:
        await seed.user("alice", seed.home)
        await seed.user("bob", seed.far)
        await seed.want("alice")
        await seed.have("bob")

        assert await compute_matches(session, "alice") == []

    async def test_their_radius_admits_pair(self, session: AsyncSession, seed: Seeder) -> None:
        """bob's 200 km radius covers alice even though alice's 25 km doesn't cover bob."""
        await seed.user("alice", seed.home)
        await seed.user("bob", seed.far, radius_km=200.0)
        await seed.want("alice")
        await seed.have("bob")

        summaries = await compute_matches(session, "alice")

        assert [s.other_user_id for s in summaries] == ["bob"]

    async def test_my_radius_admits_pair(self, session: AsyncSession, seed: Seeder) -> None:
        await seed.user("alice", seed.home, radius_km=200.0)
        await seed.user("bob", seed.far)
        await seed.want("alice")
        await seed.have("bob")

        assert len(await compute_matches(session, "alice")) == 1


class TestCanonicalRows:
    async def test_one_row_per_pair(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        """Computing from either side shares one match row."""
        from_alice = await compute_matches(session, "alice")
        from_bob = await compute_matches(session, "bob")

        assert await match_count(session) == 1
        assert from_alice[0].id == from_bob[0].id
        assert from_bob[0].match_type == MatchType.ONE_WAY_SELL
        assert from_bob[0].cards_they_want == 1

    async def test_stored_relative_to_lower_id(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        await compute_matches(session, "bob")

        match = await get_match_by_pair(session, "alice", "bob")
        assert match is not None
        assert match.match_type == MatchType.ONE_WAY_BUY.value
        assert match.cards_a_wants_count == 1
        assert match.value_a_wants == 7.5
        lines = await get_match_lines(session, match.id)
        assert lines[0].direction == "a_wants"

    async def test_recompute_is_idempotent(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        seed = alice_wants_bobs_bolt
        await seed.have("alice", seed.counterspell)
        await seed.want("bob", seed.counterspell)

        await compute_matches(session, "alice")
        first = await store_state(session)
        await compute_matches(session, "alice")

        assert await store_state(session) == first


async def drop_wishlist(session: AsyncSession, user_id: str) -> None:
    for entry in await get_wishlist_entries(session, [user_id]):
        await delete_wishlist_entry(session, entry)


class TestPreservation:
    async def test_user_modified_match_untouched(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        seed = alice_wants_bobs_bolt
        summaries = await compute_matches(session, "alice")
        lines = await get_match_lines(session, summaries[0].id)
        await set_line_exclusion(session, summaries[0].id, lines[0].id, "alice", True)
        before = await store_state(session)

        await seed.have("bob", seed.bolt_reprint)
        await compute_matches(session, "alice")
        await compute_matches(session, "bob")

        assert await store_state(session) == before

    async def test_requested_match_survives_lost_inventory(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        seed = alice_wants_bobs_bolt
        await seed.have("alice", seed.sol_ring)
        summaries = await compute_matches(session, "alice")
        await request_trade(session, summaries[0].id, "alice")
        await drop_wishlist(session, "alice")

        await compute_matches(session, "alice")

        match = await get_match(session, summaries[0].id)
        assert match is not None
        assert match.status == "requested"
        assert len(await get_match_lines(session, match.id)) == 1

    async def test_stale_match_removed(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        """A non-preserved match with nothing left to trade is deleted."""
        seed = alice_wants_bobs_bolt
        await seed.have("alice", seed.sol_ring)
        await compute_matches(session, "alice")
        await drop_wishlist(session, "alice")

        assert await compute_matches(session, "alice") == []
        assert await match_count(session) == 0


class TestFilters:
    async def test_trade_mode_trade_drops_one_way(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        await alice_wants_bobs_bolt.prefs("alice", trade_mode="trade")

        assert await compute_matches(session, "alice") == []

    async def test_trade_mode_buy_keeps_purchases(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        await alice_wants_bobs_bolt.prefs("alice", trade_mode="buy")

        assert len(await compute_matches(session, "alice")) == 1

    async def test_trade_mode_sell_drops_purchases(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        await alice_wants_bobs_bolt.prefs("alice", trade_mode="sell")

        assert await compute_matches(session, "alice") == []

    async def test_paused_counterpart_skipped(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        await alice_wants_bobs_bolt.prefs("bob", collection_paused=True)

        assert await compute_matches(session, "alice") == []

    async def test_own_paused_collection_not_offered(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        await alice_wants_bobs_bolt.prefs("bob", collection_paused=True)

        assert await compute_matches(session, "bob") == []

    async def test_paused_entry_skipped(self, session: AsyncSession, seed: Seeder) -> None:
        await seed.user("alice", seed.home)
        await seed.user("bob", seed.nearby)
        await seed.want("alice")
        await seed.have("bob", is_paused=True)

        assert await compute_matches(session, "alice") == []

    async def test_escrowed_entry_not_offered_again(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        """bob's Bolt is committed to a confirmed trade with alice."""
        seed = alice_wants_bobs_bolt
        summaries = await compute_matches(session, "alice")
        await request_trade(session, summaries[0].id, "alice")
        await confirm_trade(session, summaries[0].id, "bob")

        await seed.user("carol", seed.home)
        await seed.want("carol", seed.bolt)

        assert await compute_matches(session, "carol") == []


class TestAllowedByTradeMode:
    def test_both_keeps_everything(self) -> None:
        assert all(allowed_by_trade_mode("both", t) for t in MatchType)

    def test_trade(self) -> None:
        assert allowed_by_trade_mode("trade", MatchType.TWO_WAY)
        assert not allowed_by_trade_mode("trade", MatchType.ONE_WAY_SELL)

    def test_sell(self) -> None:
        assert allowed_by_trade_mode("sell", MatchType.ONE_WAY_SELL)
        assert not allowed_by_trade_mode("sell", MatchType.ONE_WAY_BUY)

    def test_buy(self) -> None:
        assert allowed_by_trade_mode("buy", MatchType.ONE_WAY_BUY)
        assert not allowed_by_trade_mode("buy", MatchType.ONE_WAY_SELL)


class TestRecalculateMatch:
    async def test_rebuilds_lines_and_clears_exclusions(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        summaries = await compute_matches(session, "alice")
        match_id = summaries[0].id
        lines = await get_match_lines(session, match_id)
        await set_line_exclusion(session, match_id, lines[0].id, "alice", True)

        result = await recalculate_match(session, match_id, "bob")

        assert result.outcome == "recalculated"
        assert result.match_type == MatchType.ONE_WAY_SELL
        assert result.cards_they_want == 1
        assert result.value_they_want == 7.5
        match = await get_match(session, match_id)
        assert match.is_user_modified is False
        lines = await get_match_lines(session, match_id)
        assert [line.is_excluded for line in lines] == [False]

    async def test_custom_lines_kept(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        seed = alice_wants_bobs_bolt
        counterspell = await seed.have("bob", seed.counterspell)
        summaries = await compute_matches(session, "alice")
        match_id = summaries[0].id
        await add_custom_card(session, match_id, "alice", counterspell.id)

        result = await recalculate_match(session, match_id, "alice")

        assert result.outcome == "recalculated"
        assert result.custom_cards_preserved == 1
        lines = await get_match_lines(session, match_id)
        assert sorted(line.is_custom for line in lines) == [False, True]

    async def test_custom_only(self, session: AsyncSession, alice_wants_bobs_bolt: Seeder) -> None:
        """No wishlist lines remain but a custom card does."""
        seed = alice_wants_bobs_bolt
        counterspell = await seed.have("bob", seed.counterspell)
        summaries = await compute_matches(session, "alice")
        match_id = summaries[0].id
        await add_custom_card(session, match_id, "alice", counterspell.id)
        await drop_wishlist(session, "alice")

        result = await recalculate_match(session, match_id, "alice")

        assert result.outcome == "custom_only"
        assert result.custom_cards_preserved == 1
        match = await get_match(session, match_id)
        assert match.status == "active"
        assert match.cards_a_wants_count == 0
        assert match.match_score == 0.0
        assert match.is_user_modified is True
        lines = await get_match_lines(session, match_id)
        assert [line.is_custom for line in lines] == [True]

    async def test_empty(self, session: AsyncSession, alice_wants_bobs_bolt: Seeder) -> None:
        summaries = await compute_matches(session, "alice")
        match_id = summaries[0].id
        lines = await get_match_lines(session, match_id)
        await set_line_exclusion(session, match_id, lines[0].id, "alice", True)
        await drop_wishlist(session, "alice")

        result = await recalculate_match(session, match_id, "alice")

        assert result.outcome == "empty"
        match = await get_match(session, match_id)
        assert match.is_user_modified is False
        assert match.value_a_wants == 0.0
        assert await get_match_lines(session, match_id) == []

    async def test_forbidden_once_confirmed(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        summaries = await compute_matches(session, "alice")
        await request_trade(session, summaries[0].id, "alice")
        await confirm_trade(session, summaries[0].id, "bob")

        with pytest.raises(InvalidStateError):
            await recalculate_match(session, summaries[0].id, "alice")

    async def test_withdraws_counterpart_request(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        summaries = await compute_matches(session, "alice")
        await request_trade(session, summaries[0].id, "alice")

        await recalculate_match(session, summaries[0].id, "bob")

        match = await get_match(session, summaries[0].id)
        assert match.status == "active"
        assert match.requested_by is None
        result = await session.execute(
            select(NotificationDB).where(NotificationDB.type == "request_invalidated")
        )
        assert [n.user_id for n in result.scalars()] == ["alice"]

    async def test_requester_recalculating_tells_counterpart(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        """alice's own request stands, but bob learns the cards were rebuilt."""
        summaries = await compute_matches(session, "alice")
        await request_trade(session, summaries[0].id, "alice")

        await recalculate_match(session, summaries[0].id, "alice")

        match = await get_match(session, summaries[0].id)
        assert match.status == "requested"
        assert match.requested_by == "alice"
        result = await session.execute(
            select(NotificationDB).where(NotificationDB.type == "request_updated")
        )
        assert [n.user_id for n in result.scalars()] == ["bob"]

    async def test_missing_location(
        self, session: AsyncSession, alice_wants_bobs_bolt: Seeder
    ) -> None:
        summaries = await compute_matches(session, "alice")
        await session.execute(
            update(LocationDB).where(LocationDB.user_id == "bob").values(is_active=False)
        )

        with pytest.raises(NoLocationError):
            await recalculate_match(session, summaries[0].id, "alice")
