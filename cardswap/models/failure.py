"""
Failure classification for the matching engine and trade lifecycle.

Every failure a caller can act on is a ``KnownError`` subclass carrying a
``FailureKind`` and an HTTP status code. Services raise these; the API
layer renders them through a single exception handler.

Not-found and not-a-participant share a 404 so that a caller cannot probe
for the existence of matches they are not part of.
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Compute preconditions
    MISSING_LOCATION = "missing_location"
    MISSING_INVENTORY = "missing_inventory"

    # Lifecycle violations
    INVALID_STATE = "invalid_state"
    TRADE_FINALIZED = "trade_finalized"
    EMPTY_TRADE = "empty_trade"

    # Input validation failures
    INVALID_INPUT = "invalid_input"
    INVALID_QUANTITY = "invalid_quantity"
    COMMENT_LIMIT = "comment_limit"

    # Resource / access failures
    NOT_FOUND = "not_found"
    OWNERSHIP = "ownership"

    # Store or catalog failures
    UPSTREAM = "upstream"


class FailureDetail(BaseModel):
    """Wire shape of a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    detail: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_detail(self) -> FailureDetail:
        """Convert to the wire shape."""
        return FailureDetail(kind=self.kind, detail=self.message, suggestion=self.suggestion)


class NoLocationError(KnownError):
    """The user has no active location and cannot be matched."""

    def __init__(self, user_id: str, message: str | None = None):
        self.user_id = user_id
        super().__init__(
            kind=FailureKind.MISSING_LOCATION,
            message=message or "You need to set a location to see trades.",
            suggestion="Add an active location to your profile.",
        )


class NoInventoryError(KnownError):
    """The user has neither collection nor wishlist entries."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(
            kind=FailureKind.MISSING_INVENTORY,
            message="You need cards in your collection or wishlist to see trades.",
            suggestion="Add cards to your collection or wishlist.",
        )


class InvalidStateError(KnownError):
    """An action was attempted in a lifecycle state that forbids it."""

    def __init__(
        self,
        message: str,
        status: str | None = None,
        kind: FailureKind = FailureKind.INVALID_STATE,
    ):
        self.status = status
        super().__init__(kind=kind, message=message, detail=status)


class FinalizedTradeError(InvalidStateError):
    """The match is completed or cancelled and can no longer be edited."""

    def __init__(self, status: str):
        super().__init__(
            "A finalized trade cannot be modified.",
            status=status,
            kind=FailureKind.TRADE_FINALIZED,
        )


class EmptyTradeError(KnownError):
    """A trade request was made with every line excluded."""

    def __init__(self) -> None:
        super().__init__(
            kind=FailureKind.EMPTY_TRADE,
            message="There are no active cards in this trade.",
            suggestion="Include at least one card before requesting the trade.",
        )


class InvalidQuantityError(KnownError):
    """A resolved quantity was not positive."""

    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__(
            kind=FailureKind.INVALID_QUANTITY,
            message="Invalid quantity.",
            detail=f"resolved quantity {quantity}",
        )


class InvalidInputError(KnownError):
    """A request carried a value outside its accepted range."""

    def __init__(self, message: str):
        super().__init__(kind=FailureKind.INVALID_INPUT, message=message)


class CommentLimitError(KnownError):
    """The caller used up their monthly comments on a match."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(
            kind=FailureKind.COMMENT_LIMIT,
            message=f"You reached the limit of {limit} comments per month on this trade.",
            suggestion="Try again next month.",
        )


class NotFoundError(KnownError):
    """A referenced record does not exist."""

    def __init__(self, message: str = "Match not found."):
        super().__init__(kind=FailureKind.NOT_FOUND, message=message, status_code=404)


class NotParticipantError(NotFoundError):
    """The caller is not user_a or user_b of the match. Rendered as 404."""

    def __init__(self, match_id: int, user_id: str):
        self.match_id = match_id
        self.user_id = user_id
        super().__init__("Match not found.")


class OwnershipError(KnownError):
    """The caller does not own the record they tried to change."""

    def __init__(self, message: str, status_code: int = 403):
        super().__init__(kind=FailureKind.OWNERSHIP, message=message, status_code=status_code)


class UpstreamError(KnownError):
    """The store or the catalog failed."""

    def __init__(self, detail: str | None = None):
        super().__init__(
            kind=FailureKind.UPSTREAM,
            message="An internal error occurred. Please try again.",
            detail=detail,
            suggestion="If this persists, please report the issue.",
            status_code=500,
        )
