"""
Inventory-changed outbox.

Inventory mutations record an ``inventory_events`` row instead of kicking
off a recompute directly. ``process_inventory_events`` drains the outbox,
running one recompute per affected user.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardswap.config import settings
from cardswap.db.operations import get_collection_entry, upsert_preferences
from cardswap.models.db import CollectionEntryDB, InventoryEventDB, UserPreferencesDB, utcnow
from cardswap.models.enums import EventStatus, PriceMode
from cardswap.models.failure import (
    InvalidInputError,
    NoInventoryError,
    NoLocationError,
    NotFoundError,
)
from cardswap.services.match_engine import compute_matches

logger = logging.getLogger(__name__)

MIN_DISCOUNT_PERCENTAGE = 1
MAX_DISCOUNT_PERCENTAGE = 200


@dataclass
class ProcessingReport:
    """Outcome of one outbox drain."""

    users_processed: int = 0
    events_done: int = 0
    events_skipped: int = 0
    events_failed: int = 0
    events_retrying: int = 0


def emit_inventory_changed(session: AsyncSession, user_id: str, reason: str) -> InventoryEventDB:
    """Record that a user's inventory changed. Persisted with the caller's transaction."""
    event = InventoryEventDB(
        user_id=user_id,
        reason=reason,
        status=EventStatus.PENDING.value,
        attempts=0,
    )
    session.add(event)
    return event


async def process_inventory_events(session: AsyncSession, limit: int = 500) -> ProcessingReport:
    """
    Drain pending inventory events, oldest first.

    Events of the same user are coalesced into a single recompute. Each
    user's recompute is committed on its own so one failure does not undo
    the others.
    """
    result = await session.execute(
        select(InventoryEventDB)
        .where(InventoryEventDB.status == EventStatus.PENDING.value)
        .order_by(InventoryEventDB.id)
        .limit(limit)
    )
    by_user: OrderedDict[str, list[int]] = OrderedDict()
    for event in result.scalars():
        by_user.setdefault(event.user_id, []).append(event.id)

    report = ProcessingReport()
    for user_id, event_ids in by_user.items():
        report.users_processed += 1
        try:
            await compute_matches(session, user_id)
        except (NoLocationError, NoInventoryError) as e:
            await session.rollback()
            await _mark(session, event_ids, EventStatus.SKIPPED, last_error=e.message)
            report.events_skipped += len(event_ids)
            logger.info("Skipped recompute for %s: %s", user_id, e.kind.value)
        except SQLAlchemyError as e:
            await session.rollback()
            failed = await _record_failure(session, event_ids, str(e))
            report.events_failed += failed
            report.events_retrying += len(event_ids) - failed
            logger.error("Recompute for %s failed: %s", user_id, e)
        else:
            await _mark(session, event_ids, EventStatus.DONE)
            report.events_done += len(event_ids)
        await session.commit()

    if by_user:
        logger.info(
            "Processed inventory events: %d users, %d done, %d skipped, %d failed",
            report.users_processed,
            report.events_done,
            report.events_skipped,
            report.events_failed,
        )
    return report


async def _mark(
    session: AsyncSession,
    event_ids: list[int],
    status: EventStatus,
    last_error: str | None = None,
) -> None:
    await session.execute(
        update(InventoryEventDB)
        .where(InventoryEventDB.id.in_(event_ids))
        .values(
            status=status.value,
            attempts=InventoryEventDB.attempts + 1,
            last_error=last_error,
            processed_at=utcnow(),
        )
    )


async def _record_failure(session: AsyncSession, event_ids: list[int], error: str) -> int:
    """
    Count a failed attempt; events at the attempt ceiling become failed.

    Returns:
        Number of events marked failed.
    """
    result = await session.execute(
        select(InventoryEventDB).where(InventoryEventDB.id.in_(event_ids))
    )
    failed = 0
    for event in result.scalars():
        event.attempts += 1
        event.last_error = error[:1000]
        if event.attempts >= settings.inventory_event_max_attempts:
            event.status = EventStatus.FAILED.value
            event.processed_at = utcnow()
            failed += 1
    await session.flush()
    return failed


# --- Inventory mutations that emit events ---


async def toggle_pause(session: AsyncSession, user_id: str, entry_id: int) -> CollectionEntryDB:
    """
    Flip the paused flag of one of the user's collection entries.

    Raises:
        NotFoundError: If the entry doesn't exist or belongs to someone else
    """
    entry = await get_collection_entry(session, entry_id)
    if entry is None or entry.user_id != user_id:
        raise NotFoundError("Card not found.")

    entry.is_paused = not entry.is_paused
    emit_inventory_changed(session, user_id, "collection_paused")
    await session.flush()
    return entry


async def apply_global_discount(session: AsyncSession, user_id: str, percentage: float) -> int:
    """
    Reprice every non-override collection entry at ``percentage`` of reference.

    Also stores the percentage as the user's default.

    Returns:
        Number of entries updated.

    Raises:
        InvalidInputError: If percentage is outside 1..200
    """
    if not MIN_DISCOUNT_PERCENTAGE <= percentage <= MAX_DISCOUNT_PERCENTAGE:
        raise InvalidInputError(
            f"Percentage must be between {MIN_DISCOUNT_PERCENTAGE} and {MAX_DISCOUNT_PERCENTAGE}."
        )

    result = await session.execute(
        update(CollectionEntryDB)
        .where(
            CollectionEntryDB.user_id == user_id,
            CollectionEntryDB.price_override.is_(False),
        )
        .values(
            price_percentage=percentage,
            price_mode=PriceMode.PERCENTAGE.value,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session="fetch")
    )
    updated = int(result.rowcount)  # type: ignore[attr-defined]

    await upsert_preferences(session, user_id, default_price_percentage=percentage)
    emit_inventory_changed(session, user_id, "global_discount")
    await session.flush()
    logger.info("Applied %.0f%% to %d collection entries of %s", percentage, updated, user_id)
    return updated


async def update_preferences(
    session: AsyncSession,
    user_id: str,
    default_price_percentage: float | None = None,
    minimum_price: float | None = None,
    collection_paused: bool | None = None,
    trade_mode: str | None = None,
) -> UserPreferencesDB:
    """
    Update pricing and matching preferences.

    Any change that affects what the user offers emits an inventory event.

    Raises:
        InvalidInputError: If a value is out of range
    """
    if default_price_percentage is not None and not (
        MIN_DISCOUNT_PERCENTAGE <= default_price_percentage <= MAX_DISCOUNT_PERCENTAGE
    ):
        raise InvalidInputError(
            f"Percentage must be between {MIN_DISCOUNT_PERCENTAGE} and {MAX_DISCOUNT_PERCENTAGE}."
        )
    if minimum_price is not None and minimum_price < 0:
        raise InvalidInputError("Minimum price must be zero or more.")

    prefs = await upsert_preferences(
        session,
        user_id,
        trade_mode=trade_mode,
        default_price_percentage=default_price_percentage,
        minimum_price=minimum_price,
        collection_paused=collection_paused,
    )
    if any(v is not None for v in (minimum_price, collection_paused, trade_mode)):
        emit_inventory_changed(session, user_id, "preferences")
        await session.flush()
    return prefs
