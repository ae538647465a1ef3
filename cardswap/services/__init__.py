"""
CardSwap services.

Matching, trade lifecycle, settlement and their side effects.
"""

from cardswap.services.card_catalog import CardCatalog
from cardswap.services.inventory_events import emit_inventory_changed, process_inventory_events
from cardswap.services.match_engine import compute_matches, recalculate_match
from cardswap.services.notifications import notify
from cardswap.services.settlement import settle_trade

__all__ = [
    "CardCatalog",
    "compute_matches",
    "emit_inventory_changed",
    "notify",
    "process_inventory_events",
    "recalculate_match",
    "settle_trade",
]
