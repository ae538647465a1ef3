"""
Database CRUD operations.

Provides async functions for reading and writing inventory, locations,
preferences, matches, match lines, comments and notifications. Functions
return ``None`` for missing rows; raising domain errors is left to the
services.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cardswap.models.card import CatalogCard
from cardswap.models.db import (
    CardDB,
    CollectionEntryDB,
    LocationDB,
    MatchCardDB,
    MatchCommentDB,
    MatchDB,
    NotificationDB,
    UserPreferencesDB,
    WishlistEntryDB,
)
from cardswap.models.enums import MatchStatus

# --- Catalog Operations ---


async def get_card(session: AsyncSession, scryfall_id: str) -> CardDB | None:
    return await session.get(CardDB, scryfall_id)


async def upsert_card(session: AsyncSession, card: CatalogCard) -> CardDB:
    """
    Insert or update a catalog printing.

    If a row with the same printing id exists, updates it.
    Otherwise creates a new record.
    """
    existing = await get_card(session, card.scryfall_id)
    values = {
        "oracle_id": card.oracle_id,
        "name": card.name,
        "set_code": card.set_code,
        "set_name": card.set_name,
        "collector_number": card.collector_number,
        "image_uri": card.image_uri,
        "image_uri_small": card.image_uri_small,
        "prices_usd": card.prices_usd,
        "prices_usd_foil": card.prices_usd_foil,
        "rarity": card.rarity,
        "type_line": card.type_line,
        "mana_cost": card.mana_cost,
        "colors": list(card.colors),
        "color_identity": list(card.color_identity),
        "cmc": card.cmc,
        "legalities": dict(card.legalities),
        "released_at": card.released_at,
    }

    if existing:
        for key, value in values.items():
            setattr(existing, key, value)
        await session.flush()
        return existing

    db_card = CardDB(scryfall_id=card.scryfall_id, **values)
    session.add(db_card)
    await session.flush()
    return db_card


def card_to_model(db_card: CardDB) -> CatalogCard:
    """Convert a database catalog row to a domain model."""
    return CatalogCard(
        scryfall_id=db_card.scryfall_id,
        oracle_id=db_card.oracle_id,
        name=db_card.name,
        set_code=db_card.set_code,
        set_name=db_card.set_name or "",
        collector_number=db_card.collector_number,
        image_uri=db_card.image_uri,
        image_uri_small=db_card.image_uri_small,
        prices_usd=db_card.prices_usd,
        prices_usd_foil=db_card.prices_usd_foil,
        rarity=db_card.rarity,
        type_line=db_card.type_line,
        mana_cost=db_card.mana_cost,
        colors=tuple(db_card.colors or ()),
        color_identity=tuple(db_card.color_identity or ()),
        cmc=db_card.cmc,
        legalities=dict(db_card.legalities or {}),
        released_at=db_card.released_at,
    )


# --- Location Operations ---


async def get_active_location(session: AsyncSession, user_id: str) -> LocationDB | None:
    """Get a user's active location, or None if they have none."""
    result = await session.execute(
        select(LocationDB)
        .where(LocationDB.user_id == user_id, LocationDB.is_active.is_(True))
        .order_by(LocationDB.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_other_active_locations(session: AsyncSession, user_id: str) -> list[LocationDB]:
    """Get the active location of every user except ``user_id``."""
    result = await session.execute(
        select(LocationDB)
        .where(LocationDB.user_id != user_id, LocationDB.is_active.is_(True))
        .order_by(LocationDB.user_id, LocationDB.id.desc())
    )
    # One location per user even if a user has several flagged active
    by_user: dict[str, LocationDB] = {}
    for location in result.scalars():
        by_user.setdefault(location.user_id, location)
    return list(by_user.values())


async def set_active_location(
    session: AsyncSession,
    user_id: str,
    latitude: float,
    longitude: float,
    radius_km: float | None = None,
    name: str = "Home",
) -> LocationDB:
    """
    Make a new location the user's only active one.

    Previously active locations are kept but deactivated.
    """
    await session.execute(
        update(LocationDB).where(LocationDB.user_id == user_id).values(is_active=False)
    )
    location = LocationDB(
        user_id=user_id,
        name=name,
        latitude=latitude,
        longitude=longitude,
        radius_km=radius_km,
        is_active=True,
    )
    session.add(location)
    await session.flush()
    return location


# --- Preference Operations ---


async def get_preferences(session: AsyncSession, user_id: str) -> UserPreferencesDB | None:
    result = await session.execute(
        select(UserPreferencesDB).where(UserPreferencesDB.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def get_preferences_map(
    session: AsyncSession, user_ids: Iterable[str]
) -> dict[str, UserPreferencesDB]:
    """Get preferences rows keyed by user id. Users without a row are absent."""
    ids = list(user_ids)
    if not ids:
        return {}
    result = await session.execute(
        select(UserPreferencesDB).where(UserPreferencesDB.user_id.in_(ids))
    )
    return {prefs.user_id: prefs for prefs in result.scalars()}


async def upsert_preferences(
    session: AsyncSession,
    user_id: str,
    trade_mode: str | None = None,
    default_price_percentage: float | None = None,
    minimum_price: float | None = None,
    collection_paused: bool | None = None,
) -> UserPreferencesDB:
    """
    Insert or update a user's preferences.

    Only the arguments that are not None are written.
    """
    prefs = await get_preferences(session, user_id)
    if prefs is None:
        prefs = UserPreferencesDB(user_id=user_id)
        session.add(prefs)

    if trade_mode is not None:
        prefs.trade_mode = trade_mode
    if default_price_percentage is not None:
        prefs.default_price_percentage = default_price_percentage
    if minimum_price is not None:
        prefs.minimum_price = minimum_price
    if collection_paused is not None:
        prefs.collection_paused = collection_paused

    await session.flush()
    return prefs


# --- Collection Operations ---


async def create_collection_entry(
    session: AsyncSession,
    user_id: str,
    card_id: str,
    quantity: int = 1,
    condition: str = "NM",
    foil: bool = False,
    price_mode: str = "percentage",
    price_percentage: float = 80.0,
    price_fixed: float | None = None,
    price_override: bool = False,
    is_paused: bool = False,
) -> CollectionEntryDB:
    """Create a collection entry. Quantity must be positive."""
    if quantity <= 0:
        msg = f"Collection quantity must be positive, got {quantity}"
        raise ValueError(msg)

    entry = CollectionEntryDB(
        user_id=user_id,
        card_id=card_id,
        quantity=quantity,
        condition=condition,
        foil=foil,
        price_mode=price_mode,
        price_percentage=price_percentage,
        price_fixed=price_fixed,
        price_override=price_override,
        is_paused=is_paused,
    )
    session.add(entry)
    await session.flush()
    return entry


async def get_collection_entry(session: AsyncSession, entry_id: int) -> CollectionEntryDB | None:
    return await session.get(CollectionEntryDB, entry_id)


async def get_collection_entries(
    session: AsyncSession,
    user_ids: Sequence[str],
    include_paused: bool = False,
) -> list[CollectionEntryDB]:
    """Get collection entries for the given users, oldest first."""
    if not user_ids:
        return []
    query = select(CollectionEntryDB).where(CollectionEntryDB.user_id.in_(list(user_ids)))
    if not include_paused:
        query = query.where(CollectionEntryDB.is_paused.is_(False))
    result = await session.execute(query.order_by(CollectionEntryDB.id))
    return list(result.scalars().all())


async def count_collection_entries(session: AsyncSession, user_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(CollectionEntryDB).where(
            CollectionEntryDB.user_id == user_id
        )
    )
    return int(result.scalar_one())


async def delete_collection_entry(session: AsyncSession, entry: CollectionEntryDB) -> None:
    """Delete a collection entry and unlink match lines that pointed at it."""
    await session.execute(
        update(MatchCardDB)
        .where(MatchCardDB.collection_id == entry.id)
        .values(collection_id=None)
    )
    await session.delete(entry)
    await session.flush()


# --- Wishlist Operations ---


async def create_wishlist_entry(
    session: AsyncSession,
    user_id: str,
    oracle_id: str,
    quantity: int = 1,
    max_price: float | None = None,
    min_condition: str = "LP",
    foil_preference: str = "any",
    edition_preference: str = "any",
    specific_editions: list[str] | None = None,
    priority: int = 5,
    card_id: str | None = None,
) -> WishlistEntryDB:
    """Create a wishlist entry. Quantity must be positive and priority 1-10."""
    if quantity <= 0:
        msg = f"Wishlist quantity must be positive, got {quantity}"
        raise ValueError(msg)
    if not 1 <= priority <= 10:
        msg = f"Priority must be between 1 and 10, got {priority}"
        raise ValueError(msg)

    entry = WishlistEntryDB(
        user_id=user_id,
        oracle_id=oracle_id,
        card_id=card_id,
        quantity=quantity,
        max_price=max_price,
        min_condition=min_condition,
        foil_preference=foil_preference,
        edition_preference=edition_preference,
        specific_editions=list(specific_editions or []),
        priority=priority,
    )
    session.add(entry)
    await session.flush()
    return entry


async def get_wishlist_entry(session: AsyncSession, entry_id: int) -> WishlistEntryDB | None:
    return await session.get(WishlistEntryDB, entry_id)


async def get_wishlist_entries(
    session: AsyncSession, user_ids: Sequence[str]
) -> list[WishlistEntryDB]:
    """Get wishlist entries for the given users, oldest first."""
    if not user_ids:
        return []
    result = await session.execute(
        select(WishlistEntryDB)
        .where(WishlistEntryDB.user_id.in_(list(user_ids)))
        .order_by(WishlistEntryDB.id)
    )
    return list(result.scalars().all())


async def count_wishlist_entries(session: AsyncSession, user_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(WishlistEntryDB).where(WishlistEntryDB.user_id == user_id)
    )
    return int(result.scalar_one())


async def delete_wishlist_entry(session: AsyncSession, entry: WishlistEntryDB) -> None:
    """Delete a wishlist entry and unlink match lines that pointed at it."""
    await session.execute(
        update(MatchCardDB).where(MatchCardDB.wishlist_id == entry.id).values(wishlist_id=None)
    )
    await session.delete(entry)
    await session.flush()


# --- Match Operations ---


async def get_match(
    session: AsyncSession, match_id: int, for_update: bool = False
) -> MatchDB | None:
    """
    Get a match by id.

    With ``for_update`` the row is locked (where the backend supports it) and
    re-read from the store even if it is already in the identity map.
    """
    query = select(MatchDB).where(MatchDB.id == match_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_match_by_pair(
    session: AsyncSession, user_a_id: str, user_b_id: str
) -> MatchDB | None:
    """Get the match of a canonical (user_a, user_b) pair."""
    result = await session.execute(
        select(MatchDB).where(MatchDB.user_a_id == user_a_id, MatchDB.user_b_id == user_b_id)
    )
    return result.scalar_one_or_none()


async def get_matches_for_user(
    session: AsyncSession,
    user_id: str,
    statuses: Sequence[str] | None = None,
) -> list[MatchDB]:
    """Get every match the user participates in, optionally filtered by status."""
    query = select(MatchDB).where(or_(MatchDB.user_a_id == user_id, MatchDB.user_b_id == user_id))
    if statuses:
        query = query.where(MatchDB.status.in_(list(statuses)))
    result = await session.execute(query.order_by(MatchDB.id))
    return list(result.scalars().all())


async def count_matches_by_status(session: AsyncSession, user_id: str) -> dict[str, int]:
    """Count a user's matches per status."""
    result = await session.execute(
        select(MatchDB.status, func.count())
        .where(or_(MatchDB.user_a_id == user_id, MatchDB.user_b_id == user_id))
        .group_by(MatchDB.status)
    )
    counts = {status.value: 0 for status in MatchStatus}
    for status, count in result.all():
        counts[status] = int(count)
    return counts


async def delete_matches(session: AsyncSession, match_ids: Sequence[int]) -> int:
    """
    Delete matches with their lines and comments.

    Returns the number of deleted matches.
    """
    if not match_ids:
        return 0
    ids = list(match_ids)
    await session.execute(delete(MatchCommentDB).where(MatchCommentDB.match_id.in_(ids)))
    await session.execute(delete(MatchCardDB).where(MatchCardDB.match_id.in_(ids)))
    result = await session.execute(delete(MatchDB).where(MatchDB.id.in_(ids)))
    # rowcount is available on DELETE results; type stubs incomplete for async
    return int(result.rowcount)  # type: ignore[attr-defined]


# --- Match Line Operations ---


async def get_match_lines(
    session: AsyncSession,
    match_id: int,
    include_excluded: bool = True,
) -> list[MatchCardDB]:
    """Get a match's lines, cheapest first."""
    query = select(MatchCardDB).where(MatchCardDB.match_id == match_id)
    if not include_excluded:
        query = query.where(MatchCardDB.is_excluded.is_(False))
    result = await session.execute(
        query.order_by(MatchCardDB.asking_price.asc().nulls_last(), MatchCardDB.id)
    )
    return list(result.scalars().all())


async def get_lines_for_matches(
    session: AsyncSession, match_ids: Sequence[int]
) -> dict[int, list[MatchCardDB]]:
    """Get lines for several matches, grouped by match id."""
    grouped: dict[int, list[MatchCardDB]] = {match_id: [] for match_id in match_ids}
    if not match_ids:
        return grouped
    result = await session.execute(
        select(MatchCardDB)
        .where(MatchCardDB.match_id.in_(list(match_ids)))
        .order_by(MatchCardDB.asking_price.desc().nulls_last(), MatchCardDB.id)
    )
    for line in result.scalars():
        grouped[line.match_id].append(line)
    return grouped


async def get_match_line(session: AsyncSession, match_id: int, line_id: int) -> MatchCardDB | None:
    result = await session.execute(
        select(MatchCardDB).where(MatchCardDB.id == line_id, MatchCardDB.match_id == match_id)
    )
    return result.scalar_one_or_none()


async def delete_match_lines(
    session: AsyncSession, match_id: int, keep_custom: bool = True
) -> int:
    """
    Delete a match's lines.

    With ``keep_custom`` only algorithmically matched lines are removed.
    Returns the number of deleted lines.
    """
    query = delete(MatchCardDB).where(MatchCardDB.match_id == match_id)
    if keep_custom:
        query = query.where(MatchCardDB.is_custom.is_(False))
    result = await session.execute(query)
    return int(result.rowcount)  # type: ignore[attr-defined]


async def count_custom_lines(session: AsyncSession, match_id: int) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(MatchCardDB)
        .where(MatchCardDB.match_id == match_id, MatchCardDB.is_custom.is_(True))
    )
    return int(result.scalar_one())


async def get_escrowed_collection_ids(session: AsyncSession) -> set[int]:
    """
    Collection entries committed to a confirmed trade.

    An entry is escrowed when a non-excluded line of a confirmed match links to it.
    """
    result = await session.execute(
        select(MatchCardDB.collection_id)
        .join(MatchDB, MatchDB.id == MatchCardDB.match_id)
        .where(
            MatchDB.status == MatchStatus.CONFIRMED.value,
            MatchCardDB.is_excluded.is_(False),
            MatchCardDB.collection_id.is_not(None),
        )
    )
    return {collection_id for collection_id in result.scalars() if collection_id is not None}


async def search_collection(
    session: AsyncSession,
    user_id: str,
    search: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[tuple[CollectionEntryDB, CardDB]], int]:
    """
    Page through a user's in-stock collection joined to the catalog.

    Args:
        user_id: Collection owner
        search: Case-insensitive substring of the card name
        limit: Page size
        offset: Rows to skip

    Returns:
        (rows, total) where rows are (entry, card) pairs, newest first.
    """
    query = (
        select(CollectionEntryDB, CardDB)
        .join(CardDB, CardDB.scryfall_id == CollectionEntryDB.card_id)
        .where(CollectionEntryDB.user_id == user_id, CollectionEntryDB.quantity > 0)
    )
    if search and search.strip():
        query = query.where(CardDB.name.ilike(f"%{search.strip()}%"))

    total = await session.execute(select(func.count()).select_from(query.subquery()))
    result = await session.execute(
        query.order_by(CollectionEntryDB.created_at.desc(), CollectionEntryDB.id.desc())
        .limit(limit)
        .offset(offset)
    )
    rows = [(entry, card) for entry, card in result.all()]
    return rows, int(total.scalar_one())


# --- Comment Operations ---


async def create_comment(
    session: AsyncSession, match_id: int, user_id: str, content: str
) -> MatchCommentDB:
    comment = MatchCommentDB(match_id=match_id, user_id=user_id, content=content)
    session.add(comment)
    await session.flush()
    return comment


async def get_comment(
    session: AsyncSession, match_id: int, comment_id: int
) -> MatchCommentDB | None:
    result = await session.execute(
        select(MatchCommentDB).where(
            MatchCommentDB.id == comment_id, MatchCommentDB.match_id == match_id
        )
    )
    return result.scalar_one_or_none()


async def get_comments(session: AsyncSession, match_id: int) -> list[MatchCommentDB]:
    """Get a match's comments, oldest first."""
    result = await session.execute(
        select(MatchCommentDB)
        .where(MatchCommentDB.match_id == match_id)
        .order_by(MatchCommentDB.created_at, MatchCommentDB.id)
    )
    return list(result.scalars().all())


async def count_comments_since(
    session: AsyncSession, match_id: int, user_id: str, since: datetime
) -> int:
    """Count the comments a user posted on a match at or after ``since``."""
    result = await session.execute(
        select(func.count())
        .select_from(MatchCommentDB)
        .where(
            MatchCommentDB.match_id == match_id,
            MatchCommentDB.user_id == user_id,
            MatchCommentDB.created_at >= since,
        )
    )
    return int(result.scalar_one())


# --- Notification Operations ---


async def get_notifications(
    session: AsyncSession,
    user_id: str,
    unread_only: bool = False,
    limit: int = 50,
) -> list[NotificationDB]:
    """Get a user's notifications, newest first."""
    query = select(NotificationDB).where(NotificationDB.user_id == user_id)
    if unread_only:
        query = query.where(NotificationDB.is_read.is_(False))
    result = await session.execute(
        query.order_by(NotificationDB.created_at.desc(), NotificationDB.id.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def count_unread_notifications(session: AsyncSession, user_id: str) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(NotificationDB)
        .where(NotificationDB.user_id == user_id, NotificationDB.is_read.is_(False))
    )
    return int(result.scalar_one())


async def mark_notifications_read(
    session: AsyncSession,
    user_id: str,
    notification_ids: Sequence[int] | None = None,
) -> int:
    """
    Mark a user's notifications read.

    With ``notification_ids`` only those are marked; ids belonging to other
    users are ignored. Without, every unread notification is marked.

    Returns the number of notifications that changed.
    """
    query = (
        update(NotificationDB)
        .where(NotificationDB.user_id == user_id, NotificationDB.is_read.is_(False))
        .values(is_read=True)
    )
    if notification_ids is not None:
        if not notification_ids:
            return 0
        query = query.where(NotificationDB.id.in_(list(notification_ids)))
    result = await session.execute(query)
    return int(result.rowcount)  # type: ignore[attr-defined]
