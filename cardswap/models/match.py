from dataclasses import dataclass, field
from datetime import datetime

from cardswap.models.card import CatalogCard, CardSnapshot
from cardswap.models.db import CollectionEntryDB, WishlistEntryDB
from cardswap.models.enums import MatchType


@dataclass
class CandidateLine:
    """
    A wishlist entry paired with a collection entry that satisfies it.

    Attributes:
        wishlist: The receiver's wishlist entry
        collection: The giver's collection entry
        card: Catalog printing of the collection entry
        asking_price: Seller's price for one copy, None when unpriceable
        price_exceeds_max: Asking price is above the wishlist ceiling
    """

    wishlist: WishlistEntryDB
    collection: CollectionEntryDB
    card: CatalogCard
    asking_price: float | None
    price_exceeds_max: bool = False


@dataclass
class PairComputation:
    """
    Matching result for one (self, counterpart) pair, oriented to self.

    ``cards_i_want`` are lines self receives; ``cards_they_want`` are lines
    the counterpart receives.
    """

    self_user_id: str
    other_user_id: str
    cards_i_want: list[CandidateLine] = field(default_factory=list)
    cards_they_want: list[CandidateLine] = field(default_factory=list)
    distance_km: float | None = None

    @property
    def is_empty(self) -> bool:
        return not self.cards_i_want and not self.cards_they_want

    @property
    def match_type(self) -> MatchType:
        if self.cards_i_want and self.cards_they_want:
            return MatchType.TWO_WAY
        if self.cards_i_want:
            return MatchType.ONE_WAY_BUY
        return MatchType.ONE_WAY_SELL

    @property
    def value_i_want(self) -> float:
        return round(sum(line.asking_price or 0.0 for line in self.cards_i_want), 2)

    @property
    def value_they_want(self) -> float:
        return round(sum(line.asking_price or 0.0 for line in self.cards_they_want), 2)

    @property
    def has_price_warnings(self) -> bool:
        return any(line.price_exceeds_max for line in self.cards_i_want + self.cards_they_want)


@dataclass(frozen=True)
class MatchSummary:
    """One entry of a compute response, oriented to the caller."""

    id: int
    other_user_id: str
    match_type: MatchType
    cards_i_want: int
    cards_they_want: int
    distance: float | None
    score: float


@dataclass(frozen=True)
class RecalculationResult:
    """
    Outcome of recalculating a single match.

    ``outcome`` is "recalculated", "custom_only" (no wishlist lines left but
    manually added lines were kept) or "empty".
    """

    outcome: str
    match_type: MatchType | None = None
    cards_i_want: int = 0
    cards_they_want: int = 0
    value_i_want: float = 0.0
    value_they_want: float = 0.0
    match_score: float = 0.0
    custom_cards_preserved: int = 0


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of one participant reporting whether the trade happened."""

    final_status: str | None
    has_conflict: bool
    waiting_for_other: bool


@dataclass(frozen=True)
class ExclusionResult:
    """Outcome of a card-edit action."""

    request_invalidated: bool
    value_i_want: float = 0.0
    value_they_want: float = 0.0


@dataclass(frozen=True)
class MatchLineView:
    """A match line relabelled for one viewer."""

    id: int
    snapshot: CardSnapshot
    asking_price: float | None
    max_price: float | None
    price_exceeds_max: bool
    condition: str
    min_condition: str | None
    is_foil: bool
    quantity_available: int
    quantity_wanted: int
    is_excluded: bool
    is_custom: bool
    added_by_user_id: str | None


@dataclass(frozen=True)
class MatchView:
    """
    A match as seen by one participant.

    Produced by ``cardswap.analysis.perspective.to_perspective``; never stored.
    """

    id: int
    viewer_id: str
    other_user_id: str
    match_type: MatchType
    status: str
    distance_km: float | None
    match_score: float
    has_price_warnings: bool
    is_user_modified: bool
    cards_i_want_count: int
    cards_they_want_count: int
    value_i_want: float
    value_they_want: float
    requested_by: str | None
    requested_at: datetime | None
    confirmed_at: datetime | None
    escrow_expires_at: datetime | None
    has_conflict: bool
    i_requested: bool
    they_requested: bool
    i_completed: bool | None
    they_completed: bool | None
    created_at: datetime | None
    updated_at: datetime | None
    cards_i_want: list[MatchLineView] = field(default_factory=list)
    cards_they_want: list[MatchLineView] = field(default_factory=list)

    @property
    def active_value_i_want(self) -> float:
        """Value of the non-excluded lines the viewer receives."""
        return round(sum(c.asking_price or 0.0 for c in self.cards_i_want if not c.is_excluded), 2)

    @property
    def active_value_they_want(self) -> float:
        return round(
            sum(c.asking_price or 0.0 for c in self.cards_they_want if not c.is_excluded), 2
        )


@dataclass
class SettlementResult:
    """Inventory changes made when a trade completes."""

    lines_settled: int = 0
    collection_updated: int = 0
    collection_deleted: int = 0
    wishlist_updated: int = 0
    wishlist_deleted: int = 0
    lines_skipped: int = 0


@dataclass(frozen=True)
class CustomCardResult:
    """Outcome of adding a card from the counterpart's collection."""

    action: str  # "added" or "unexcluded"
    line_id: int
    quantity: int
    request_invalidated: bool = False


@dataclass(frozen=True)
class MatchListing:
    """A viewer's matches plus how many they have in each status."""

    matches: list[MatchView]
    counts: dict[str, int]


@dataclass(frozen=True)
class CounterpartCard:
    """One entry of the counterpart's collection as offered to the viewer."""

    collection_id: int
    card: CatalogCard
    quantity: int
    condition: str
    is_foil: bool
    asking_price: float | None
    already_in_trade: bool


@dataclass(frozen=True)
class CounterpartPage:
    cards: list[CounterpartCard]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


@dataclass(frozen=True)
class CommentView:
    """A match comment as seen by one participant."""

    id: int
    user_id: str
    content: str
    created_at: datetime
    updated_at: datetime | None
    is_mine: bool

    @property
    def is_edited(self) -> bool:
        return self.updated_at is not None


@dataclass(frozen=True)
class CommentThread:
    """
    A match's comments, oldest first, plus the viewer's monthly allowance.

    Attributes:
        comments: Every comment on the match
        my_count_this_month: Comments the viewer posted on this match this month
        max_per_month: Monthly allowance per participant and match
    """

    comments: list[CommentView]
    my_count_this_month: int
    max_per_month: int

    @property
    def can_comment(self) -> bool:
        return self.my_count_this_month < self.max_per_month
