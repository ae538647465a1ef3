"""
Inventory settlement for completed trades.

Each non-excluded line moves ``min(quantity_available, quantity_wanted)``
copies: the giver's collection entry and the receiver's wishlist entry are
decremented, and deleted once they reach zero.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cardswap.db.operations import (
    delete_collection_entry,
    delete_wishlist_entry,
    get_collection_entry,
    get_match,
    get_match_lines,
    get_wishlist_entry,
)
from cardswap.models.match import SettlementResult
from cardswap.services.inventory_events import emit_inventory_changed

logger = logging.getLogger(__name__)


async def settle_trade(session: AsyncSession, match_id: int) -> SettlementResult:
    """
    Apply a completed trade to both users' inventory.

    Lines whose collection or wishlist link is gone are skipped for that
    side. The traded quantity comes from the line snapshot; when current
    stock is lower a warning is logged and the entry is removed.
    """
    result = SettlementResult()
    match = await get_match(session, match_id)
    if match is None:
        return result

    for line in await get_match_lines(session, match_id, include_excluded=False):
        traded = line.traded_quantity
        touched = False

        if line.collection_id is not None:
            entry = await get_collection_entry(session, line.collection_id)
            if entry is not None:
                touched = True
                if entry.quantity < traded:
                    logger.warning(
                        "Match %s line %s: trading %d but collection entry %s holds %d",
                        match_id,
                        line.id,
                        traded,
                        entry.id,
                        entry.quantity,
                    )
                remaining = entry.quantity - traded
                if remaining <= 0:
                    await delete_collection_entry(session, entry)
                    result.collection_deleted += 1
                else:
                    entry.quantity = remaining
                    result.collection_updated += 1

        if line.wishlist_id is not None:
            wish = await get_wishlist_entry(session, line.wishlist_id)
            if wish is not None:
                touched = True
                remaining = wish.quantity - traded
                if remaining <= 0:
                    await delete_wishlist_entry(session, wish)
                    result.wishlist_deleted += 1
                else:
                    wish.quantity = remaining
                    result.wishlist_updated += 1

        if touched:
            result.lines_settled += 1
        else:
            result.lines_skipped += 1

    for user_id in (match.user_a_id, match.user_b_id):
        emit_inventory_changed(session, user_id, "trade_settled")
    await session.flush()

    logger.info(
        "Settled match %s: %d lines, collection -%d/~%d, wishlist -%d/~%d",
        match_id,
        result.lines_settled,
        result.collection_deleted,
        result.collection_updated,
        result.wishlist_deleted,
        result.wishlist_updated,
    )
    return result
