from cardswap.models.card import CardSnapshot, CatalogCard
from cardswap.models.enums import (
    CONDITION_ORDER,
    FINALIZED_STATUSES,
    LATERAL_STATUSES,
    NON_RECALCULABLE_STATUSES,
    PROTECTED_STATUSES,
    Condition,
    Direction,
    EditionPreference,
    EventStatus,
    FoilPreference,
    MatchStatus,
    MatchType,
    NotificationType,
    PriceMode,
    TradeMode,
)
from cardswap.models.failure import (
    EmptyTradeError,
    FailureDetail,
    FailureKind,
    FinalizedTradeError,
    InvalidInputError,
    InvalidQuantityError,
    InvalidStateError,
    KnownError,
    NoInventoryError,
    NoLocationError,
    NotFoundError,
    NotParticipantError,
    OwnershipError,
    UpstreamError,
)
from cardswap.models.match import (
    CandidateLine,
    CompletionResult,
    CounterpartCard,
    CounterpartPage,
    CustomCardResult,
    ExclusionResult,
    MatchLineView,
    MatchListing,
    MatchSummary,
    MatchView,
    PairComputation,
    RecalculationResult,
    SettlementResult,
)

__all__ = [
    "CONDITION_ORDER",
    "CandidateLine",
    "CardSnapshot",
    "CatalogCard",
    "CompletionResult",
    "Condition",
    "CounterpartCard",
    "CounterpartPage",
    "CustomCardResult",
    "Direction",
    "EditionPreference",
    "EmptyTradeError",
    "EventStatus",
    "ExclusionResult",
    "FINALIZED_STATUSES",
    "FailureDetail",
    "FailureKind",
    "FinalizedTradeError",
    "FoilPreference",
    "InvalidInputError",
    "InvalidQuantityError",
    "InvalidStateError",
    "KnownError",
    "LATERAL_STATUSES",
    "MatchLineView",
    "MatchListing",
    "MatchStatus",
    "MatchSummary",
    "MatchType",
    "MatchView",
    "NON_RECALCULABLE_STATUSES",
    "NoInventoryError",
    "NoLocationError",
    "NotFoundError",
    "NotParticipantError",
    "NotificationType",
    "OwnershipError",
    "PROTECTED_STATUSES",
    "PairComputation",
    "PriceMode",
    "RecalculationResult",
    "SettlementResult",
    "TradeMode",
    "UpstreamError",
]
