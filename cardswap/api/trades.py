"""
Trade API endpoints.

Card edits and the request / confirm / complete handshake on a match.
"""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from cardswap.api.deps import CurrentUser, SessionDep
from cardswap.models.match import ExclusionResult
from cardswap.services.trade_lifecycle import (
    add_custom_card,
    bulk_set_exclusions,
    cancel_request,
    confirm_trade,
    delete_custom_card,
    mark_completed,
    request_trade,
    restore_exclusions,
    set_line_exclusion,
)

router = APIRouter(prefix="/matches", tags=["trades"])


class ExclusionRequest(BaseModel):
    is_excluded: bool


class BulkExclusionRequest(BaseModel):
    excluded_card_ids: list[int] = Field(
        default_factory=list,
        description="Lines to exclude; every other line is included",
    )


class EditResponse(BaseModel):
    """Result of a card edit, with the caller's active totals."""

    success: bool = True
    request_invalidated: bool = False
    total_value_i_want: float = 0.0
    total_value_they_want: float = 0.0


class CustomCardRequest(BaseModel):
    collection_id: int
    quantity: int = Field(default=1, description="Capped at the copies available")


class CustomCardResponse(BaseModel):
    success: bool = True
    action: str
    line_id: int
    quantity: int
    request_invalidated: bool = False


class TradeStateResponse(BaseModel):
    """Lifecycle fields of a match after a handshake step."""

    id: int
    status: str
    requested_by: str | None = None
    requested_at: datetime | None = None
    confirmed_at: datetime | None = None
    escrow_expires_at: datetime | None = None


class CompleteRequest(BaseModel):
    completed: bool


class CompleteResponse(BaseModel):
    success: bool = True
    final_status: str | None = None
    has_conflict: bool = False
    waiting_for_other: bool = False


def edit_response(result: ExclusionResult) -> EditResponse:
    return EditResponse(
        request_invalidated=result.request_invalidated,
        total_value_i_want=result.value_i_want,
        total_value_they_want=result.value_they_want,
    )


@router.patch("/{match_id}/cards/{line_id}", response_model=EditResponse)
async def toggle_card(
    match_id: int,
    line_id: int,
    request: ExclusionRequest,
    user_id: CurrentUser,
    session: SessionDep,
) -> EditResponse:
    """Include or exclude one card of the trade."""
    result = await set_line_exclusion(session, match_id, line_id, user_id, request.is_excluded)
    return edit_response(result)


@router.put("/{match_id}/cards", response_model=EditResponse)
async def save_exclusions(
    match_id: int,
    request: BulkExclusionRequest,
    user_id: CurrentUser,
    session: SessionDep,
) -> EditResponse:
    """Replace the set of excluded cards."""
    result = await bulk_set_exclusions(session, match_id, user_id, request.excluded_card_ids)
    return edit_response(result)


@router.post("/{match_id}/restore", response_model=EditResponse)
async def restore_cards(match_id: int, user_id: CurrentUser, session: SessionDep) -> EditResponse:
    """Include every card of the trade again."""
    return edit_response(await restore_exclusions(session, match_id, user_id))


@router.post("/{match_id}/cards/custom", response_model=CustomCardResponse)
async def add_custom(
    match_id: int,
    request: CustomCardRequest,
    user_id: CurrentUser,
    session: SessionDep,
) -> CustomCardResponse:
    """Add a card from the other participant's collection."""
    result = await add_custom_card(
        session, match_id, user_id, request.collection_id, request.quantity
    )
    return CustomCardResponse(
        action=result.action,
        line_id=result.line_id,
        quantity=result.quantity,
        request_invalidated=result.request_invalidated,
    )


@router.delete("/{match_id}/cards/{line_id}", response_model=EditResponse)
async def delete_custom(
    match_id: int, line_id: int, user_id: CurrentUser, session: SessionDep
) -> EditResponse:
    """Delete a card the caller added manually."""
    return edit_response(await delete_custom_card(session, match_id, line_id, user_id))


@router.post("/{match_id}/request", response_model=TradeStateResponse)
async def create_request(
    match_id: int, user_id: CurrentUser, session: SessionDep
) -> TradeStateResponse:
    match = await request_trade(session, match_id, user_id)
    return TradeStateResponse(
        id=match.id,
        status=match.status,
        requested_by=match.requested_by,
        requested_at=match.requested_at,
    )


@router.delete("/{match_id}/request", response_model=TradeStateResponse)
async def withdraw_request(
    match_id: int, user_id: CurrentUser, session: SessionDep
) -> TradeStateResponse:
    """Withdraw the caller's request, or reject the other participant's."""
    match = await cancel_request(session, match_id, user_id)
    return TradeStateResponse(id=match.id, status=match.status)


@router.post("/{match_id}/confirm", response_model=TradeStateResponse)
async def confirm(match_id: int, user_id: CurrentUser, session: SessionDep) -> TradeStateResponse:
    match = await confirm_trade(session, match_id, user_id)
    return TradeStateResponse(
        id=match.id,
        status=match.status,
        requested_by=match.requested_by,
        requested_at=match.requested_at,
        confirmed_at=match.confirmed_at,
        escrow_expires_at=match.escrow_expires_at,
    )


@router.post("/{match_id}/complete", response_model=CompleteResponse)
async def complete(
    match_id: int,
    request: CompleteRequest,
    user_id: CurrentUser,
    session: SessionDep,
) -> CompleteResponse:
    """
    Report whether the trade happened.

    The trade resolves once both participants have reported.
    """
    result = await mark_completed(session, match_id, user_id, request.completed)
    return CompleteResponse(
        final_status=result.final_status,
        has_conflict=result.has_conflict,
        waiting_for_other=result.waiting_for_other,
    )
