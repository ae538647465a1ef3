"""
Canonical pair ordering and per-viewer projection of matches.

Matches are stored once per unordered pair, oriented to ``user_a``. Readers
get a view relabelled as "I want" / "they want" for whichever participant is
asking; oriented copies are never stored.
"""

from collections.abc import Iterable

from cardswap.models.db import MatchCardDB, MatchDB
from cardswap.models.enums import Direction, MatchType
from cardswap.models.match import MatchLineView, MatchView


def canonical_pair(user_id: str, other_user_id: str) -> tuple[str, str]:
    """Order two user ids so the lower one is user_a."""
    if user_id < other_user_id:
        return user_id, other_user_id
    return other_user_id, user_id


def receive_direction(is_user_a: bool) -> Direction:
    """Direction of the lines a participant receives."""
    return Direction.A_WANTS if is_user_a else Direction.B_WANTS


def give_direction(is_user_a: bool) -> Direction:
    """Direction of the lines a participant gives away."""
    return Direction.B_WANTS if is_user_a else Direction.A_WANTS


def line_view(line: MatchCardDB) -> MatchLineView:
    return MatchLineView(
        id=line.id,
        snapshot=line.snapshot,
        asking_price=line.asking_price,
        max_price=line.max_price,
        price_exceeds_max=line.price_exceeds_max,
        condition=line.collection_condition,
        min_condition=line.wishlist_min_condition,
        is_foil=line.is_foil,
        quantity_available=line.quantity_available,
        quantity_wanted=line.quantity_wanted,
        is_excluded=line.is_excluded,
        is_custom=line.is_custom,
        added_by_user_id=line.added_by_user_id,
    )


def to_perspective(
    match: MatchDB,
    lines: Iterable[MatchCardDB],
    viewer_id: str,
) -> MatchView:
    """
    Project a stored match onto one participant.

    Args:
        match: The stored match
        lines: Its card lines (any order)
        viewer_id: user_a or user_b of the match

    Returns:
        A MatchView whose "i_want" side is what ``viewer_id`` receives.

    Raises:
        ValueError: If ``viewer_id`` is not a participant
    """
    if not match.is_participant(viewer_id):
        msg = f"User {viewer_id} is not a participant of match {match.id}"
        raise ValueError(msg)

    is_a = viewer_id == match.user_a_id
    mine = receive_direction(is_a).value

    cards_i_want: list[MatchLineView] = []
    cards_they_want: list[MatchLineView] = []
    for line in lines:
        if line.direction == mine:
            cards_i_want.append(line_view(line))
        else:
            cards_they_want.append(line_view(line))

    match_type = MatchType(match.match_type)
    if not is_a:
        match_type = match_type.flipped()

    return MatchView(
        id=match.id,
        viewer_id=viewer_id,
        other_user_id=match.other_user(viewer_id),
        match_type=match_type,
        status=match.status,
        distance_km=match.distance_km,
        match_score=match.match_score,
        has_price_warnings=match.has_price_warnings,
        is_user_modified=match.is_user_modified,
        cards_i_want_count=match.cards_a_wants_count if is_a else match.cards_b_wants_count,
        cards_they_want_count=match.cards_b_wants_count if is_a else match.cards_a_wants_count,
        value_i_want=match.value_a_wants if is_a else match.value_b_wants,
        value_they_want=match.value_b_wants if is_a else match.value_a_wants,
        requested_by=match.requested_by,
        requested_at=match.requested_at,
        confirmed_at=match.confirmed_at,
        escrow_expires_at=match.escrow_expires_at,
        has_conflict=match.has_conflict,
        i_requested=match.requested_by == viewer_id,
        they_requested=match.requested_by is not None and match.requested_by != viewer_id,
        i_completed=match.user_a_completed if is_a else match.user_b_completed,
        they_completed=match.user_b_completed if is_a else match.user_a_completed,
        created_at=match.created_at,
        updated_at=match.updated_at,
        cards_i_want=cards_i_want,
        cards_they_want=cards_they_want,
    )
