"""
Enumerations shared by the matching engine and the trade lifecycle.

Values are persisted as plain strings; compare stored columns against
``.value`` or the frozensets below.
"""

from enum import Enum


class Condition(str, Enum):
    """Physical card condition, best first."""

    NM = "NM"
    LP = "LP"
    MP = "MP"
    HP = "HP"
    DMG = "DMG"


# Best → worst. Lower index is better.
CONDITION_ORDER: tuple[str, ...] = tuple(c.value for c in Condition)


class FoilPreference(str, Enum):
    ANY = "any"
    FOIL_ONLY = "foil_only"
    NON_FOIL = "non_foil"


class EditionPreference(str, Enum):
    ANY = "any"
    SPECIFIC = "specific"


class PriceMode(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class TradeMode(str, Enum):
    """Which kinds of matches a user wants to see."""

    BOTH = "both"
    TRADE = "trade"  # two-way only
    SELL = "sell"
    BUY = "buy"


class MatchType(str, Enum):
    """Match classification, relative to the user it is computed for."""

    TWO_WAY = "two_way"
    ONE_WAY_BUY = "one_way_buy"
    ONE_WAY_SELL = "one_way_sell"

    def flipped(self) -> "MatchType":
        """The same match seen from the other participant."""
        if self is MatchType.ONE_WAY_BUY:
            return MatchType.ONE_WAY_SELL
        if self is MatchType.ONE_WAY_SELL:
            return MatchType.ONE_WAY_BUY
        return self


class MatchStatus(str, Enum):
    ACTIVE = "active"
    CONTACTED = "contacted"
    DISMISSED = "dismissed"
    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Direction(str, Enum):
    """Which canonical participant receives the card on a match line."""

    A_WANTS = "a_wants"
    B_WANTS = "b_wants"


class NotificationType(str, Enum):
    TRADE_REQUESTED = "trade_requested"
    TRADE_CONFIRMED = "trade_confirmed"
    TRADE_COMPLETED = "trade_completed"
    TRADE_CANCELLED = "trade_cancelled"
    REQUEST_INVALIDATED = "request_invalidated"
    REQUEST_REJECTED = "request_rejected"
    REQUEST_UPDATED = "request_updated"
    NEW_COMMENT = "new_comment"


class EventStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


# Statuses either participant may set directly
LATERAL_STATUSES = frozenset(
    {MatchStatus.ACTIVE.value, MatchStatus.CONTACTED.value, MatchStatus.DISMISSED.value}
)

# Statuses that keep a match out of global recompute
PROTECTED_STATUSES = frozenset(
    {
        MatchStatus.REQUESTED.value,
        MatchStatus.CONFIRMED.value,
        MatchStatus.COMPLETED.value,
        MatchStatus.CANCELLED.value,
    }
)

# Statuses in which a single match may not be recalculated
NON_RECALCULABLE_STATUSES = frozenset(
    {MatchStatus.CONFIRMED.value, MatchStatus.COMPLETED.value, MatchStatus.CANCELLED.value}
)

FINALIZED_STATUSES = frozenset({MatchStatus.COMPLETED.value, MatchStatus.CANCELLED.value})
