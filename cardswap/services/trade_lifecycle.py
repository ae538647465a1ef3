"""
Trade lifecycle state machine.

    active <-> contacted <-> dismissed
       \\          |           /
        +----> requested <---+
                   |
               confirmed
                /      \\
         completed   cancelled

Either participant may edit the cards of a match until it is finalized.
Edits by one side withdraw a pending request made by the other.
"""

import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from cardswap.analysis.perspective import receive_direction, to_perspective
from cardswap.analysis.pricing import calculate_asking_price
from cardswap.config import settings
from cardswap.db.operations import (
    card_to_model,
    count_matches_by_status,
    get_collection_entry,
    get_lines_for_matches,
    get_match_line,
    get_match_lines,
    get_matches_for_user,
    get_preferences,
    search_collection,
)
from cardswap.models.db import MatchCardDB, MatchDB, utcnow
from cardswap.models.enums import (
    LATERAL_STATUSES,
    MatchStatus,
    NotificationType,
)
from cardswap.models.failure import (
    EmptyTradeError,
    InvalidInputError,
    InvalidQuantityError,
    InvalidStateError,
    NotFoundError,
    OwnershipError,
)
from cardswap.models.match import (
    CompletionResult,
    CounterpartCard,
    CounterpartPage,
    CustomCardResult,
    ExclusionResult,
    MatchListing,
    MatchView,
)
from cardswap.services.card_catalog import CardCatalog
from cardswap.services.guards import (
    ensure_not_finalized,
    invalidate_counterpart_request,
    require_participant_match,
)
from cardswap.services.notifications import notify
from cardswap.services.settlement import settle_trade

logger = logging.getLogger(__name__)

SORT_KEYS = ("score", "distance", "value", "recent")
MAX_PAGE_SIZE = 50


def _log_transition(match: MatchDB, previous: str, actor: str) -> None:
    logger.info("Match %s: %s -> %s by %s", match.id, previous, match.status, actor)


def _clear_request(match: MatchDB) -> None:
    match.requested_by = None
    match.requested_at = None


def _active_values(
    lines: list[MatchCardDB], match: MatchDB, viewer_id: str
) -> tuple[float, float]:
    """(value I receive, value they receive) over non-excluded lines."""
    mine = receive_direction(viewer_id == match.user_a_id).value
    active = [line for line in lines if not line.is_excluded]
    i_want = sum(line.asking_price or 0.0 for line in active if line.direction == mine)
    they_want = sum(line.asking_price or 0.0 for line in active if line.direction != mine)
    return round(i_want, 2), round(they_want, 2)


# --- Status transitions ---


async def set_status(session: AsyncSession, match_id: int, user_id: str, status: str) -> MatchDB:
    """
    Move a match to active, contacted or dismissed.

    From ``requested`` this withdraws (requester) or rejects (counterpart)
    the request. A confirmed match may only be dismissed, which releases
    its escrow and tells the counterpart.

    Raises:
        InvalidInputError: If ``status`` is not one of the lateral statuses
        FinalizedTradeError: If the match is completed or cancelled
        InvalidStateError: If a confirmed match is moved to active or contacted
    """
    if status not in LATERAL_STATUSES:
        raise InvalidInputError(f"Status must be one of: {', '.join(sorted(LATERAL_STATUSES))}.")

    match = await require_participant_match(session, match_id, user_id)
    ensure_not_finalized(match)
    previous = match.status

    if previous == MatchStatus.CONFIRMED.value:
        if status != MatchStatus.DISMISSED.value:
            raise InvalidStateError(
                "A confirmed trade can only be completed or dismissed.", status=previous
            )
        _clear_request(match)
        match.escrow_expires_at = None
        notify(
            session,
            match.other_user(user_id),
            NotificationType.TRADE_CANCELLED,
            match_id=match.id,
            from_user_id=user_id,
            content="The other trader dismissed your confirmed trade.",
        )
    elif previous == MatchStatus.REQUESTED.value:
        requester = match.requested_by
        _clear_request(match)
        if requester is not None and requester != user_id:
            notify(
                session,
                requester,
                NotificationType.REQUEST_REJECTED,
                match_id=match.id,
                from_user_id=user_id,
                content="Your trade request was rejected.",
            )

    match.status = status
    await session.flush()
    _log_transition(match, previous, user_id)
    return match


async def request_trade(session: AsyncSession, match_id: int, user_id: str) -> MatchDB:
    """
    Ask the counterpart to confirm the trade on its current cards.

    Raises:
        InvalidStateError: If the match is not active, contacted or dismissed
        EmptyTradeError: If every line is excluded
    """
    match = await require_participant_match(session, match_id, user_id)
    ensure_not_finalized(match)
    if match.status not in LATERAL_STATUSES:
        raise InvalidStateError(
            f'A trade cannot be requested in status "{match.status}".', status=match.status
        )

    if not await get_match_lines(session, match.id, include_excluded=False):
        raise EmptyTradeError()

    previous = match.status
    match.status = MatchStatus.REQUESTED.value
    match.requested_by = user_id
    match.requested_at = utcnow()
    match.is_user_modified = True
    await session.flush()
    _log_transition(match, previous, user_id)

    notify(
        session,
        match.other_user(user_id),
        NotificationType.TRADE_REQUESTED,
        match_id=match.id,
        from_user_id=user_id,
        content="You have a new trade request.",
    )
    return match


async def cancel_request(session: AsyncSession, match_id: int, user_id: str) -> MatchDB:
    """
    Withdraw (requester) or reject (counterpart) a pending request.

    Raises:
        InvalidStateError: If the match is not requested
    """
    match = await require_participant_match(session, match_id, user_id)
    if match.status != MatchStatus.REQUESTED.value:
        raise InvalidStateError("There is no pending request to cancel.", status=match.status)

    requester = match.requested_by
    match.status = MatchStatus.ACTIVE.value
    _clear_request(match)
    await session.flush()
    _log_transition(match, MatchStatus.REQUESTED.value, user_id)

    if requester is not None and requester != user_id:
        notify(
            session,
            requester,
            NotificationType.REQUEST_REJECTED,
            match_id=match.id,
            from_user_id=user_id,
            content="Your trade request was rejected.",
        )
    return match


async def confirm_trade(session: AsyncSession, match_id: int, user_id: str) -> MatchDB:
    """
    Accept the counterpart's request and open the escrow window.

    Raises:
        InvalidStateError: If the match is not requested, or the caller made the request
    """
    match = await require_participant_match(session, match_id, user_id)
    if match.status != MatchStatus.REQUESTED.value:
        raise InvalidStateError("Only a requested trade can be confirmed.", status=match.status)
    if match.requested_by == user_id:
        raise InvalidStateError("You cannot confirm your own request.", status=match.status)

    now = utcnow()
    match.status = MatchStatus.CONFIRMED.value
    match.confirmed_at = now
    match.escrow_expires_at = now + timedelta(days=settings.escrow_days)
    match.user_a_completed = None
    match.user_b_completed = None
    match.has_conflict = False
    await session.flush()
    _log_transition(match, MatchStatus.REQUESTED.value, user_id)

    if match.requested_by is not None:
        notify(
            session,
            match.requested_by,
            NotificationType.TRADE_CONFIRMED,
            match_id=match.id,
            from_user_id=user_id,
            content="Your trade request was accepted.",
        )
    return match


def resolve_completion(mine: bool | None, theirs: bool | None) -> tuple[str | None, bool]:
    """
    Resolve both participants' reports.

    Returns:
        (final status or None while a report is missing, has_conflict)
    """
    if mine is None or theirs is None:
        return None, False
    if mine and theirs:
        return MatchStatus.COMPLETED.value, False
    if not mine and not theirs:
        return MatchStatus.CANCELLED.value, False
    return MatchStatus.CANCELLED.value, True


async def mark_completed(
    session: AsyncSession, match_id: int, user_id: str, completed: bool
) -> CompletionResult:
    """
    Record whether the caller's side of the trade happened.

    The status change is committed before settlement runs. A settlement
    failure is logged and rolled back on its own; the completion stands.

    Raises:
        InvalidStateError: If the match is not confirmed
    """
    match = await require_participant_match(session, match_id, user_id, for_update=True)
    if match.status != MatchStatus.CONFIRMED.value:
        raise InvalidStateError("Only a confirmed trade can be completed.", status=match.status)

    is_a = user_id == match.user_a_id
    if is_a:
        match.user_a_completed = completed
        theirs = match.user_b_completed
    else:
        match.user_b_completed = completed
        theirs = match.user_a_completed

    final_status, has_conflict = resolve_completion(completed, theirs)
    if final_status is not None:
        match.status = final_status
        match.has_conflict = has_conflict
        _log_transition(match, MatchStatus.CONFIRMED.value, user_id)

    if final_status == MatchStatus.COMPLETED.value:
        notification_type, content = NotificationType.TRADE_COMPLETED, "Trade completed."
    elif final_status == MatchStatus.CANCELLED.value and has_conflict:
        notification_type = NotificationType.TRADE_CANCELLED
        content = "You and your counterpart disagree about this trade. It was cancelled."
    elif final_status == MatchStatus.CANCELLED.value:
        notification_type, content = NotificationType.TRADE_CANCELLED, "Trade cancelled."
    else:
        notification_type = NotificationType.TRADE_COMPLETED
        content = (
            "Your counterpart marked the trade as done."
            if completed
            else "Your counterpart marked the trade as not done."
        )
    notify(
        session,
        match.other_user(user_id),
        notification_type,
        match_id=match.id,
        from_user_id=user_id,
        content=content,
    )

    match_pk = match.id
    await session.commit()

    if final_status == MatchStatus.COMPLETED.value:
        try:
            await settle_trade(session, match_pk)
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Settlement of match %s failed", match_pk)

    return CompletionResult(
        final_status=final_status,
        has_conflict=has_conflict,
        waiting_for_other=final_status is None,
    )


# --- Card edits ---


async def _after_edit(
    session: AsyncSession, match: MatchDB, user_id: str
) -> ExclusionResult:
    match.is_user_modified = True
    invalidated = invalidate_counterpart_request(session, match, user_id)
    await session.flush()
    value_i_want, value_they_want = _active_values(
        await get_match_lines(session, match.id), match, user_id
    )
    return ExclusionResult(
        request_invalidated=invalidated,
        value_i_want=value_i_want,
        value_they_want=value_they_want,
    )


async def set_line_exclusion(
    session: AsyncSession, match_id: int, line_id: int, user_id: str, excluded: bool
) -> ExclusionResult:
    """
    Include or exclude one line.

    Raises:
        FinalizedTradeError: If the match is completed or cancelled
        NotFoundError: If the line is not part of the match
    """
    match = await require_participant_match(session, match_id, user_id)
    ensure_not_finalized(match)

    line = await get_match_line(session, match.id, line_id)
    if line is None:
        raise NotFoundError("Card not found in this trade.")

    line.is_excluded = excluded
    return await _after_edit(session, match, user_id)


async def bulk_set_exclusions(
    session: AsyncSession, match_id: int, user_id: str, excluded_line_ids: list[int]
) -> ExclusionResult:
    """
    Replace the match's exclusion set.

    Every line is included, then the listed ids are excluded. Ids that
    are not lines of this match are ignored.
    """
    match = await require_participant_match(session, match_id, user_id)
    ensure_not_finalized(match)

    excluded = set(excluded_line_ids)
    for line in await get_match_lines(session, match.id):
        line.is_excluded = line.id in excluded
    return await _after_edit(session, match, user_id)


async def restore_exclusions(session: AsyncSession, match_id: int, user_id: str) -> ExclusionResult:
    """Include every line of the match again."""
    return await bulk_set_exclusions(session, match_id, user_id, [])


async def add_custom_card(
    session: AsyncSession,
    match_id: int,
    user_id: str,
    collection_id: int,
    quantity: int = 1,
    catalog: CardCatalog | None = None,
) -> CustomCardResult:
    """
    Add a card from the counterpart's collection to what the caller receives.

    An excluded line for the same entry is included again instead of being
    duplicated.

    Raises:
        InvalidStateError: If the match is not active, contacted or dismissed
        NotFoundError: If the collection entry doesn't exist
        OwnershipError: If the entry doesn't belong to the counterpart
        InvalidInputError: If the entry is already in the trade
        InvalidQuantityError: If the resolved quantity is not positive
    """
    catalog = catalog or CardCatalog(session)
    match = await require_participant_match(session, match_id, user_id)
    ensure_not_finalized(match)
    if match.status not in LATERAL_STATUSES:
        raise InvalidStateError(
            f'Cards cannot be added in status "{match.status}".', status=match.status
        )

    entry = await get_collection_entry(session, collection_id)
    if entry is None:
        raise NotFoundError("Card not found in the collection.")
    other_id = match.other_user(user_id)
    if entry.user_id != other_id:
        raise OwnershipError("This card does not belong to the other user.", status_code=400)

    direction = receive_direction(user_id == match.user_a_id).value
    for line in await get_match_lines(session, match.id):
        if line.collection_id != entry.id or line.direction != direction:
            continue
        if not line.is_excluded:
            raise InvalidInputError("This card is already in the trade.")
        line.is_excluded = False
        edit = await _after_edit(session, match, user_id)
        return CustomCardResult(
            action="unexcluded",
            line_id=line.id,
            quantity=line.quantity_wanted,
            request_invalidated=edit.request_invalidated,
        )

    actual = min(quantity, entry.quantity)
    if actual <= 0:
        raise InvalidQuantityError(actual)

    card = await catalog.lookup_by_printing_id(entry.card_id)
    if card is None:
        raise NotFoundError("Card not found in the catalog.")

    prefs = await get_preferences(session, other_id)
    asking = calculate_asking_price(
        entry.price_mode,
        entry.price_percentage,
        entry.price_fixed,
        card.reference_price(entry.foil),
        prefs.minimum_price if prefs is not None else 0.0,
    )
    snapshot = card.snapshot()
    line = MatchCardDB(
        match_id=match.id,
        direction=direction,
        wishlist_id=None,
        collection_id=entry.id,
        card_id=snapshot.card_id,
        card_name=snapshot.name,
        card_set_code=snapshot.set_code,
        card_image_uri=snapshot.image_uri,
        asking_price=asking,
        max_price=None,
        price_exceeds_max=False,
        collection_condition=entry.condition,
        wishlist_min_condition="HP",
        is_foil=entry.foil,
        quantity_available=entry.quantity,
        quantity_wanted=actual,
        is_excluded=False,
        is_custom=True,
        added_by_user_id=user_id,
    )
    session.add(line)
    await session.flush()
    edit = await _after_edit(session, match, user_id)
    logger.info("Match %s: %s added custom card %s x%d", match.id, user_id, card.name, actual)
    return CustomCardResult(
        action="added",
        line_id=line.id,
        quantity=actual,
        request_invalidated=edit.request_invalidated,
    )


async def delete_custom_card(
    session: AsyncSession, match_id: int, line_id: int, user_id: str
) -> ExclusionResult:
    """
    Remove a custom line the caller added.

    Raises:
        FinalizedTradeError: If the match is completed or cancelled
        NotFoundError: If the line is not part of the match
        InvalidInputError: If the line was matched from a wishlist
        OwnershipError: If another user added the line
    """
    match = await require_participant_match(session, match_id, user_id)
    ensure_not_finalized(match)

    line = await get_match_line(session, match.id, line_id)
    if line is None:
        raise NotFoundError("Card not found in this trade.")
    if not line.is_custom:
        raise InvalidInputError("Only manually added cards can be deleted.")
    if line.added_by_user_id != user_id:
        raise OwnershipError("You can only delete cards you added.")

    await session.delete(line)
    await session.flush()
    return await _after_edit(session, match, user_id)


# --- Reads ---


async def get_match_view(session: AsyncSession, match_id: int, user_id: str) -> MatchView:
    match = await require_participant_match(session, match_id, user_id)
    return to_perspective(match, await get_match_lines(session, match.id), user_id)


def _sort_views(views: list[MatchView], sort_by: str) -> list[MatchView]:
    if sort_by == "distance":
        return sorted(
            views, key=lambda v: (v.distance_km is None, v.distance_km or 0.0, -v.match_score)
        )
    if sort_by == "value":
        return sorted(views, key=lambda v: v.value_i_want + v.value_they_want, reverse=True)
    if sort_by == "recent":
        return sorted(
            views, key=lambda v: (v.updated_at or v.created_at).timestamp(), reverse=True
        )
    return sorted(views, key=lambda v: v.match_score, reverse=True)


async def list_matches(
    session: AsyncSession,
    user_id: str,
    statuses: list[str] | None = None,
    sort_by: str = "score",
) -> MatchListing:
    """
    List the caller's matches, oriented to them.

    Raises:
        InvalidInputError: If ``sort_by`` or a status is unknown
    """
    if sort_by not in SORT_KEYS:
        raise InvalidInputError(f"sort_by must be one of: {', '.join(SORT_KEYS)}.")
    known = {s.value for s in MatchStatus}
    unknown = [s for s in statuses or [] if s not in known]
    if unknown:
        raise InvalidInputError(f"Unknown status: {', '.join(unknown)}.")

    matches = await get_matches_for_user(session, user_id, statuses)
    lines = await get_lines_for_matches(session, [m.id for m in matches])
    views = [to_perspective(m, lines.get(m.id, []), user_id) for m in matches]
    counts = await count_matches_by_status(session, user_id)
    return MatchListing(matches=_sort_views(views, sort_by), counts=counts)


async def list_counterpart_collection(
    session: AsyncSession,
    match_id: int,
    user_id: str,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> CounterpartPage:
    """
    Browse the counterpart's collection to pick custom cards.

    Entries already included on the caller's receive side are flagged.
    """
    if page < 1:
        raise InvalidInputError("Page must be 1 or more.")
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    match = await require_participant_match(session, match_id, user_id)
    other_id = match.other_user(user_id)
    direction = receive_direction(user_id == match.user_a_id).value
    in_trade = {
        line.collection_id
        for line in await get_match_lines(session, match.id, include_excluded=False)
        if line.direction == direction and line.collection_id is not None
    }

    prefs = await get_preferences(session, other_id)
    minimum = prefs.minimum_price if prefs is not None else 0.0
    rows, total = await search_collection(
        session, other_id, search, limit=limit, offset=(page - 1) * limit
    )

    cards: list[CounterpartCard] = []
    for entry, db_card in rows:
        card = card_to_model(db_card)
        cards.append(
            CounterpartCard(
                collection_id=entry.id,
                card=card,
                quantity=entry.quantity,
                condition=entry.condition,
                is_foil=entry.foil,
                asking_price=calculate_asking_price(
                    entry.price_mode,
                    entry.price_percentage,
                    entry.price_fixed,
                    card.reference_price(entry.foil),
                    minimum,
                ),
                already_in_trade=entry.id in in_trade,
            )
        )
    return CounterpartPage(cards=cards, total=total, page=page, limit=limit)
