"""
Match computation engine.

Computes bidirectional matches between a user and every nearby counterpart
and persists them as one ``matches`` row per unordered pair. Matches that
are user-modified or in negotiation are never overwritten.
"""

import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from cardswap.analysis.eligibility import is_eligible
from cardswap.analysis.geo import haversine_km, within_either_radius
from cardswap.analysis.perspective import canonical_pair, give_direction, receive_direction
from cardswap.analysis.pricing import calculate_asking_price, price_efficiency, price_exceeds_max
from cardswap.analysis.scoring import calculate_match_score
from cardswap.config import settings
from cardswap.db.operations import (
    count_custom_lines,
    delete_match_lines,
    delete_matches,
    get_active_location,
    get_collection_entries,
    get_escrowed_collection_ids,
    get_matches_for_user,
    get_other_active_locations,
    get_preferences,
    get_preferences_map,
    get_wishlist_entries,
)
from cardswap.models.card import CatalogCard
from cardswap.models.db import (
    CollectionEntryDB,
    LocationDB,
    MatchCardDB,
    MatchDB,
    UserPreferencesDB,
    WishlistEntryDB,
)
from cardswap.models.enums import (
    NON_RECALCULABLE_STATUSES,
    PROTECTED_STATUSES,
    Direction,
    MatchStatus,
    MatchType,
    TradeMode,
)
from cardswap.models.failure import InvalidStateError, NoInventoryError, NoLocationError
from cardswap.models.match import (
    CandidateLine,
    MatchSummary,
    PairComputation,
    RecalculationResult,
)
from cardswap.services.card_catalog import CardCatalog
from cardswap.services.guards import invalidate_counterpart_request, require_participant_match

logger = logging.getLogger(__name__)

EntryT = TypeVar("EntryT", WishlistEntryDB, CollectionEntryDB)


def location_radius(location: LocationDB) -> float:
    return location.radius_km or settings.default_radius_km


def is_preserved(match: MatchDB) -> bool:
    """User-modified or in negotiation; global recompute leaves it alone."""
    return match.is_user_modified or match.status in PROTECTED_STATUSES


def allowed_by_trade_mode(trade_mode: str, match_type: MatchType) -> bool:
    """
    Filter a self-relative match type by the user's trade mode.

    "trade" keeps only two-way matches, "sell" drops matches where the user
    only buys, "buy" drops matches where the user only sells.
    """
    if trade_mode == TradeMode.TRADE.value:
        return match_type == MatchType.TWO_WAY
    if trade_mode == TradeMode.SELL.value:
        return match_type != MatchType.ONE_WAY_BUY
    if trade_mode == TradeMode.BUY.value:
        return match_type != MatchType.ONE_WAY_SELL
    return True


def find_candidates(
    wishlist: Sequence[WishlistEntryDB],
    collection: Sequence[CollectionEntryDB],
    cards: dict[str, CatalogCard],
    seller_minimum_price: float = 0.0,
) -> list[CandidateLine]:
    """
    Pair each wishlist entry with every collection entry that satisfies it.

    Args:
        wishlist: Receiver's wishlist entries
        collection: Giver's available collection entries
        cards: Catalog printings keyed by printing id
        seller_minimum_price: Giver's price floor

    Returns:
        Candidate lines in wishlist order, then collection order.
    """
    candidates: list[CandidateLine] = []
    for wish in wishlist:
        for entry in collection:
            card = cards.get(entry.card_id)
            if card is None:
                continue
            if not is_eligible(
                wishlist_oracle_id=wish.oracle_id,
                min_condition=wish.min_condition,
                foil_preference=wish.foil_preference,
                edition_preference=wish.edition_preference,
                specific_editions=wish.specific_editions,
                card_oracle_id=card.oracle_id,
                printing_id=card.scryfall_id,
                condition=entry.condition,
                is_foil=entry.foil,
            ):
                continue

            asking = calculate_asking_price(
                entry.price_mode,
                entry.price_percentage,
                entry.price_fixed,
                card.reference_price(entry.foil),
                seller_minimum_price,
            )
            candidates.append(
                CandidateLine(
                    wishlist=wish,
                    collection=entry,
                    card=card,
                    asking_price=asking,
                    price_exceeds_max=price_exceeds_max(asking, wish.max_price),
                )
            )
    return candidates


def evaluate_pair(
    self_user_id: str,
    other_user_id: str,
    my_wishlist: Sequence[WishlistEntryDB],
    my_collection: Sequence[CollectionEntryDB],
    their_wishlist: Sequence[WishlistEntryDB],
    their_collection: Sequence[CollectionEntryDB],
    cards: dict[str, CatalogCard],
    my_minimum_price: float,
    their_minimum_price: float,
    distance_km: float | None,
) -> PairComputation:
    """Both directions of one pair, oriented to ``self_user_id``."""
    return PairComputation(
        self_user_id=self_user_id,
        other_user_id=other_user_id,
        cards_i_want=find_candidates(my_wishlist, their_collection, cards, their_minimum_price),
        cards_they_want=find_candidates(their_wishlist, my_collection, cards, my_minimum_price),
        distance_km=distance_km,
    )


def score_pair(pair: PairComputation) -> float:
    """Composite score of a non-empty pair, from the self side."""
    efficiency = price_efficiency(
        [(line.asking_price, line.wishlist.max_price) for line in pair.cards_i_want]
    )
    return calculate_match_score(
        match_type=pair.match_type,
        cards_i_want=len(pair.cards_i_want),
        cards_they_want=len(pair.cards_they_want),
        value_i_want=pair.value_i_want,
        value_they_want=pair.value_they_want,
        distance_km=pair.distance_km,
        has_price_warnings=pair.has_price_warnings,
        price_efficiency=efficiency,
    )


def apply_pair(match: MatchDB, pair: PairComputation, score: float) -> None:
    """Write a pair's aggregates onto its match, in canonical A/B orientation."""
    is_a = pair.self_user_id == match.user_a_id
    match_type = pair.match_type if is_a else pair.match_type.flipped()
    mine = (len(pair.cards_i_want), pair.value_i_want)
    theirs = (len(pair.cards_they_want), pair.value_they_want)
    a_side, b_side = (mine, theirs) if is_a else (theirs, mine)

    match.match_type = match_type.value
    match.distance_km = pair.distance_km
    match.cards_a_wants_count, match.value_a_wants = a_side
    match.cards_b_wants_count, match.value_b_wants = b_side
    match.match_score = score
    match.has_price_warnings = pair.has_price_warnings


def reset_aggregates(match: MatchDB) -> None:
    match.cards_a_wants_count = 0
    match.cards_b_wants_count = 0
    match.value_a_wants = 0.0
    match.value_b_wants = 0.0
    match.match_score = 0.0
    match.has_price_warnings = False


def build_line(match_id: int, candidate: CandidateLine, direction: Direction) -> MatchCardDB:
    snapshot = candidate.card.snapshot()
    return MatchCardDB(
        match_id=match_id,
        direction=direction.value,
        wishlist_id=candidate.wishlist.id,
        collection_id=candidate.collection.id,
        card_id=snapshot.card_id,
        card_name=snapshot.name,
        card_set_code=snapshot.set_code,
        card_image_uri=snapshot.image_uri,
        asking_price=candidate.asking_price,
        max_price=candidate.wishlist.max_price,
        price_exceeds_max=candidate.price_exceeds_max,
        collection_condition=candidate.collection.condition,
        wishlist_min_condition=candidate.wishlist.min_condition,
        is_foil=candidate.collection.foil,
        quantity_available=candidate.collection.quantity,
        quantity_wanted=candidate.wishlist.quantity,
        is_excluded=False,
        is_custom=False,
    )


async def write_lines(session: AsyncSession, match: MatchDB, pair: PairComputation) -> None:
    """Replace a match's algorithmic lines with the pair's candidates."""
    is_a = pair.self_user_id == match.user_a_id
    await delete_match_lines(session, match.id, keep_custom=True)
    for candidate in pair.cards_i_want:
        session.add(build_line(match.id, candidate, receive_direction(is_a)))
    for candidate in pair.cards_they_want:
        session.add(build_line(match.id, candidate, give_direction(is_a)))
    await session.flush()


def _minimum_price(prefs: UserPreferencesDB | None) -> float:
    return prefs.minimum_price if prefs is not None and prefs.minimum_price else 0.0


def _group_by_user(entries: Sequence[EntryT]) -> dict[str, list[EntryT]]:
    grouped: dict[str, list[EntryT]] = defaultdict(list)
    for entry in entries:
        grouped[entry.user_id].append(entry)
    return grouped


async def compute_matches(
    session: AsyncSession,
    user_id: str,
    catalog: CardCatalog | None = None,
) -> list[MatchSummary]:
    """
    Recompute every match of ``user_id`` against nearby counterparts.

    Preserved matches are skipped; stale ones are updated in place or
    deleted. Collection entries committed to a confirmed trade are not
    offered.

    Returns:
        Summaries of the written matches, best score first.

    Raises:
        NoLocationError: If the user has no active location
        NoInventoryError: If the user has neither collection nor wishlist
    """
    catalog = catalog or CardCatalog(session)

    my_location = await get_active_location(session, user_id)
    if my_location is None:
        raise NoLocationError(user_id)

    my_prefs = await get_preferences(session, user_id)
    trade_mode = my_prefs.trade_mode if my_prefs is not None else TradeMode.BOTH.value

    my_wishlist = await get_wishlist_entries(session, [user_id])
    my_collection = await get_collection_entries(session, [user_id])
    if not my_wishlist and not my_collection:
        raise NoInventoryError(user_id)
    if my_prefs is not None and my_prefs.collection_paused:
        my_collection = []

    existing = {m.other_user(user_id): m for m in await get_matches_for_user(session, user_id)}
    preserved = {other for other, m in existing.items() if is_preserved(m)}

    # Counterparts inside either party's radius, minus paused collections
    distances: dict[str, float] = {}
    my_radius = location_radius(my_location)
    for location in await get_other_active_locations(session, user_id):
        distance = haversine_km(
            my_location.latitude, my_location.longitude, location.latitude, location.longitude
        )
        if within_either_radius(distance, my_radius, location_radius(location)):
            distances[location.user_id] = distance

    their_prefs = await get_preferences_map(session, distances)
    for other_id, prefs in their_prefs.items():
        if prefs.collection_paused:
            distances.pop(other_id, None)

    nearby = sorted(distances)
    escrowed = await get_escrowed_collection_ids(session)
    my_collection = [entry for entry in my_collection if entry.id not in escrowed]

    wishlists = _group_by_user(await get_wishlist_entries(session, nearby))
    collections = _group_by_user(
        [e for e in await get_collection_entries(session, nearby) if e.id not in escrowed]
    )
    cards = await catalog.lookup_printings(
        [e.card_id for e in my_collection]
        + [e.card_id for entries in collections.values() for e in entries]
    )

    summaries: list[MatchSummary] = []
    written: set[str] = set()
    for other_id in nearby:
        if other_id in preserved:
            continue

        pair = evaluate_pair(
            user_id,
            other_id,
            my_wishlist,
            my_collection,
            wishlists.get(other_id, []),
            collections.get(other_id, []),
            cards,
            _minimum_price(my_prefs),
            _minimum_price(their_prefs.get(other_id)),
            distances[other_id],
        )
        if pair.is_empty or not allowed_by_trade_mode(trade_mode, pair.match_type):
            continue

        score = score_pair(pair)
        match = existing.get(other_id)
        if match is None:
            user_a_id, user_b_id = canonical_pair(user_id, other_id)
            match = MatchDB(
                user_a_id=user_a_id,
                user_b_id=user_b_id,
                status=MatchStatus.ACTIVE.value,
                is_user_modified=False,
            )
            session.add(match)
        apply_pair(match, pair, score)
        await session.flush()
        await write_lines(session, match, pair)

        written.add(other_id)
        summaries.append(
            MatchSummary(
                id=match.id,
                other_user_id=other_id,
                match_type=pair.match_type,
                cards_i_want=len(pair.cards_i_want),
                cards_they_want=len(pair.cards_they_want),
                distance=pair.distance_km,
                score=score,
            )
        )

    stale = [
        m.id for other, m in existing.items() if other not in preserved and other not in written
    ]
    await delete_matches(session, stale)
    await session.flush()

    summaries.sort(key=lambda s: s.score, reverse=True)
    logger.info(
        "Computed matches for %s: %d nearby, %d written, %d preserved, %d removed",
        user_id,
        len(nearby),
        len(summaries),
        len(preserved),
        len(stale),
    )
    return summaries


async def recalculate_match(
    session: AsyncSession,
    match_id: int,
    user_id: str,
    catalog: CardCatalog | None = None,
) -> RecalculationResult:
    """
    Refresh one match against both users' current inventory.

    Custom lines are kept verbatim; algorithmic lines are rebuilt from the
    full wishlists and collections, ignoring earlier exclusions.

    Raises:
        NotFoundError: If the match doesn't exist or the caller isn't in it
        InvalidStateError: If the match is confirmed or finalized
        NoLocationError: If either user has no active location
    """
    catalog = catalog or CardCatalog(session)
    match = await require_participant_match(session, match_id, user_id)
    if match.status in NON_RECALCULABLE_STATUSES:
        raise InvalidStateError(
            "This trade can no longer be recalculated.", status=match.status
        )

    other_id = match.other_user(user_id)
    my_location = await get_active_location(session, user_id)
    their_location = await get_active_location(session, other_id)
    if my_location is None or their_location is None:
        raise NoLocationError(
            user_id if my_location is None else other_id,
            "One of the users has no active location.",
        )

    prefs = await get_preferences_map(session, [user_id, other_id])
    wishlists = _group_by_user(await get_wishlist_entries(session, [user_id, other_id]))
    collections = _group_by_user(await get_collection_entries(session, [user_id, other_id]))
    cards = await catalog.lookup_printings(
        [e.card_id for entries in collections.values() for e in entries]
    )

    distance = haversine_km(
        my_location.latitude,
        my_location.longitude,
        their_location.latitude,
        their_location.longitude,
    )
    pair = evaluate_pair(
        user_id,
        other_id,
        wishlists.get(user_id, []),
        collections.get(user_id, []),
        wishlists.get(other_id, []),
        collections.get(other_id, []),
        cards,
        _minimum_price(prefs.get(user_id)),
        _minimum_price(prefs.get(other_id)),
        distance,
    )

    custom_count = await count_custom_lines(session, match.id)
    invalidate_counterpart_request(session, match, user_id)

    if pair.is_empty:
        await delete_match_lines(session, match.id, keep_custom=True)
        reset_aggregates(match)
        match.distance_km = distance
        if custom_count > 0:
            match.is_user_modified = True
            outcome = "custom_only"
        else:
            match.is_user_modified = False
            outcome = "empty"
        await session.flush()
        logger.info("Recalculated match %s for %s: %s", match.id, user_id, outcome)
        return RecalculationResult(outcome=outcome, custom_cards_preserved=custom_count)

    score = score_pair(pair)
    apply_pair(match, pair, score)
    match.is_user_modified = False
    await write_lines(session, match, pair)

    logger.info(
        "Recalculated match %s for %s: %d/%d lines, score %.2f",
        match.id,
        user_id,
        len(pair.cards_i_want),
        len(pair.cards_they_want),
        score,
    )
    return RecalculationResult(
        outcome="recalculated",
        match_type=pair.match_type,
        cards_i_want=len(pair.cards_i_want),
        cards_they_want=len(pair.cards_they_want),
        value_i_want=pair.value_i_want,
        value_they_want=pair.value_they_want,
        match_score=score,
        custom_cards_preserved=custom_count,
    )
