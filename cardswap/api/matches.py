"""
Match API endpoints.

Computing, listing and reading matches from the caller's perspective.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from cardswap.analysis.scoring import display_score
from cardswap.api.deps import CurrentUser, SessionDep
from cardswap.models.match import MatchLineView, MatchView
from cardswap.services.match_engine import compute_matches, recalculate_match
from cardswap.services.trade_lifecycle import (
    get_match_view,
    list_counterpart_collection,
    list_matches,
    set_status,
)

router = APIRouter(prefix="/matches", tags=["matches"])

SortBy = Literal["score", "distance", "value", "recent"]


class MatchSummaryResponse(BaseModel):
    """One computed match."""

    id: int
    other_user_id: str
    match_type: str
    cards_i_want: int
    cards_they_want: int
    distance: float | None
    score: float


class ComputeResponse(BaseModel):
    matches: list[MatchSummaryResponse] = Field(default_factory=list)
    total: int = 0


class MatchLineResponse(BaseModel):
    """A card line relabelled for the caller."""

    id: int
    card_id: str
    card_name: str
    card_set_code: str
    card_image_uri: str | None = None
    asking_price: float | None = None
    max_price: float | None = None
    price_exceeds_max: bool = False
    condition: str
    min_condition: str | None = None
    is_foil: bool = False
    quantity_available: int
    quantity_wanted: int
    is_excluded: bool = False
    is_custom: bool = False
    added_by_user_id: str | None = None


class MatchDetailResponse(BaseModel):
    """A match as seen by the caller."""

    id: int
    other_user_id: str
    match_type: str
    status: str
    distance_km: float | None = None
    match_score: float
    display_score: float
    has_price_warnings: bool
    is_user_modified: bool
    cards_i_want_count: int
    cards_they_want_count: int
    requested_by: str | None = None
    requested_at: datetime | None = None
    confirmed_at: datetime | None = None
    escrow_expires_at: datetime | None = None
    has_conflict: bool = False
    i_requested: bool = False
    they_requested: bool = False
    i_completed: bool | None = None
    they_completed: bool | None = None
    created_at: datetime | None = None
    cards_i_want: list[MatchLineResponse] = Field(default_factory=list)
    cards_they_want: list[MatchLineResponse] = Field(default_factory=list)
    total_value_i_want: float = Field(description="Value of non-excluded cards the caller receives")
    total_value_they_want: float = Field(description="Value of non-excluded cards the caller gives")


class MatchListResponse(BaseModel):
    matches: list[MatchDetailResponse] = Field(default_factory=list)
    total: int = 0
    counts: dict[str, int] = Field(default_factory=dict)


class StatusUpdateRequest(BaseModel):
    status: Literal["active", "contacted", "dismissed"]


class StatusResponse(BaseModel):
    id: int
    status: str


class RecalculateResponse(BaseModel):
    """Outcome of recalculating one match."""

    outcome: Literal["recalculated", "custom_only", "empty"]
    match_type: str | None = None
    cards_i_want: int = 0
    cards_they_want: int = 0
    value_i_want: float = 0.0
    value_they_want: float = 0.0
    match_score: float = 0.0
    custom_cards_preserved: int = 0


class CounterpartCardResponse(BaseModel):
    collection_id: int
    card_id: str
    name: str
    set_code: str
    set_name: str
    image_uri: str | None = None
    image_uri_small: str | None = None
    quantity: int
    condition: str
    is_foil: bool
    asking_price: float | None = None
    already_in_trade: bool = False


class CounterpartCollectionResponse(BaseModel):
    cards: list[CounterpartCardResponse] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    total_pages: int = 0


def line_response(line: MatchLineView) -> MatchLineResponse:
    return MatchLineResponse(
        id=line.id,
        card_id=line.snapshot.card_id,
        card_name=line.snapshot.name,
        card_set_code=line.snapshot.set_code,
        card_image_uri=line.snapshot.image_uri,
        asking_price=line.asking_price,
        max_price=line.max_price,
        price_exceeds_max=line.price_exceeds_max,
        condition=line.condition,
        min_condition=line.min_condition,
        is_foil=line.is_foil,
        quantity_available=line.quantity_available,
        quantity_wanted=line.quantity_wanted,
        is_excluded=line.is_excluded,
        is_custom=line.is_custom,
        added_by_user_id=line.added_by_user_id,
    )


def detail_response(view: MatchView) -> MatchDetailResponse:
    return MatchDetailResponse(
        id=view.id,
        other_user_id=view.other_user_id,
        match_type=view.match_type.value,
        status=view.status,
        distance_km=view.distance_km,
        match_score=view.match_score,
        display_score=display_score(view.match_score),
        has_price_warnings=view.has_price_warnings,
        is_user_modified=view.is_user_modified,
        cards_i_want_count=view.cards_i_want_count,
        cards_they_want_count=view.cards_they_want_count,
        requested_by=view.requested_by,
        requested_at=view.requested_at,
        confirmed_at=view.confirmed_at,
        escrow_expires_at=view.escrow_expires_at,
        has_conflict=view.has_conflict,
        i_requested=view.i_requested,
        they_requested=view.they_requested,
        i_completed=view.i_completed,
        they_completed=view.they_completed,
        created_at=view.created_at,
        cards_i_want=[line_response(line) for line in view.cards_i_want],
        cards_they_want=[line_response(line) for line in view.cards_they_want],
        total_value_i_want=view.active_value_i_want,
        total_value_they_want=view.active_value_they_want,
    )


@router.post("/compute", response_model=ComputeResponse)
async def compute(user_id: CurrentUser, session: SessionDep) -> ComputeResponse:
    """
    Recompute the caller's matches against every nearby user.

    Fails with 400 when the caller has no active location or no inventory.
    """
    summaries = await compute_matches(session, user_id)
    return ComputeResponse(
        matches=[
            MatchSummaryResponse(
                id=s.id,
                other_user_id=s.other_user_id,
                match_type=s.match_type.value,
                cards_i_want=s.cards_i_want,
                cards_they_want=s.cards_they_want,
                distance=s.distance,
                score=s.score,
            )
            for s in summaries
        ],
        total=len(summaries),
    )


@router.get("", response_model=MatchListResponse)
async def get_matches(
    user_id: CurrentUser,
    session: SessionDep,
    status: list[str] | None = Query(default=None),
    sort_by: SortBy = "score",
) -> MatchListResponse:
    """List the caller's matches with per-status counts."""
    listing = await list_matches(session, user_id, statuses=status, sort_by=sort_by)
    return MatchListResponse(
        matches=[detail_response(view) for view in listing.matches],
        total=len(listing.matches),
        counts=listing.counts,
    )


@router.get("/{match_id}", response_model=MatchDetailResponse)
async def get_match_detail(
    match_id: int, user_id: CurrentUser, session: SessionDep
) -> MatchDetailResponse:
    """Get one match oriented to the caller. 404 if the caller is not a participant."""
    return detail_response(await get_match_view(session, match_id, user_id))


@router.patch("/{match_id}/status", response_model=StatusResponse)
async def update_status(
    match_id: int,
    request: StatusUpdateRequest,
    user_id: CurrentUser,
    session: SessionDep,
) -> StatusResponse:
    match = await set_status(session, match_id, user_id, request.status)
    return StatusResponse(id=match.id, status=match.status)


@router.post("/{match_id}/recalculate", response_model=RecalculateResponse)
async def recalculate(
    match_id: int, user_id: CurrentUser, session: SessionDep
) -> RecalculateResponse:
    """
    Refresh one match against current inventory.

    Custom cards are kept. Not allowed on confirmed, completed or cancelled matches.
    """
    result = await recalculate_match(session, match_id, user_id)
    return RecalculateResponse(
        outcome=result.outcome,
        match_type=result.match_type.value if result.match_type is not None else None,
        cards_i_want=result.cards_i_want,
        cards_they_want=result.cards_they_want,
        value_i_want=result.value_i_want,
        value_they_want=result.value_they_want,
        match_score=result.match_score,
        custom_cards_preserved=result.custom_cards_preserved,
    )


@router.get("/{match_id}/counterpart-collection", response_model=CounterpartCollectionResponse)
async def counterpart_collection(
    match_id: int,
    user_id: CurrentUser,
    session: SessionDep,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1),
) -> CounterpartCollectionResponse:
    """Browse the other participant's collection. Page size is capped at 50."""
    result = await list_counterpart_collection(
        session, match_id, user_id, search=search, page=page, limit=limit
    )
    return CounterpartCollectionResponse(
        cards=[
            CounterpartCardResponse(
                collection_id=c.collection_id,
                card_id=c.card.scryfall_id,
                name=c.card.name,
                set_code=c.card.set_code,
                set_name=c.card.set_name,
                image_uri=c.card.image_uri,
                image_uri_small=c.card.image_uri_small,
                quantity=c.quantity,
                condition=c.condition,
                is_foil=c.is_foil,
                asking_price=c.asking_price,
                already_in_trade=c.already_in_trade,
            )
            for c in result.cards
        ],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )
