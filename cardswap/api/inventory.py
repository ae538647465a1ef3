"""
Inventory API endpoints.

Pausing collection entries, pricing preferences and the inventory-changed
outbox drain.
"""

from typing import Literal

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from cardswap.api.deps import CurrentUser, SessionDep
from cardswap.config import settings
from cardswap.db.operations import get_preferences
from cardswap.services.inventory_events import (
    apply_global_discount,
    process_inventory_events,
    toggle_pause,
    update_preferences,
)

router = APIRouter(tags=["inventory"])

TradeModeValue = Literal["both", "trade", "sell", "buy"]


class PauseResponse(BaseModel):
    id: int
    is_paused: bool


class GlobalDiscountRequest(BaseModel):
    percentage: float = Field(description="Percentage of the reference price, 1 to 200")


class GlobalDiscountResponse(BaseModel):
    success: bool = True
    updated: int = 0


class PreferencesResponse(BaseModel):
    trade_mode: str = "both"
    default_price_percentage: float
    minimum_price: float = 0.0
    collection_paused: bool = False


class PreferencesUpdateRequest(BaseModel):
    """Fields left out are unchanged."""

    trade_mode: TradeModeValue | None = None
    default_price_percentage: float | None = None
    minimum_price: float | None = None
    collection_paused: bool | None = None


class ProcessEventsResponse(BaseModel):
    users_processed: int
    events_done: int
    events_skipped: int
    events_failed: int
    events_retrying: int


@router.patch("/collection/{entry_id}/pause", response_model=PauseResponse)
async def pause_entry(entry_id: int, user_id: CurrentUser, session: SessionDep) -> PauseResponse:
    """Toggle whether a collection entry is offered for trade."""
    entry = await toggle_pause(session, user_id, entry_id)
    return PauseResponse(id=entry.id, is_paused=entry.is_paused)


@router.post("/preferences/global-discount", response_model=GlobalDiscountResponse)
async def global_discount(
    request: GlobalDiscountRequest, user_id: CurrentUser, session: SessionDep
) -> GlobalDiscountResponse:
    """
    Reprice the caller's collection at a percentage of reference.

    Entries with a manual price override are left alone.
    """
    updated = await apply_global_discount(session, user_id, request.percentage)
    return GlobalDiscountResponse(updated=updated)


@router.get("/preferences", response_model=PreferencesResponse)
async def read_preferences(user_id: CurrentUser, session: SessionDep) -> PreferencesResponse:
    prefs = await get_preferences(session, user_id)
    if prefs is None:
        return PreferencesResponse(default_price_percentage=settings.default_price_percentage)
    return PreferencesResponse(
        trade_mode=prefs.trade_mode,
        default_price_percentage=prefs.default_price_percentage,
        minimum_price=prefs.minimum_price,
        collection_paused=prefs.collection_paused,
    )


@router.put("/preferences", response_model=PreferencesResponse)
async def write_preferences(
    request: PreferencesUpdateRequest, user_id: CurrentUser, session: SessionDep
) -> PreferencesResponse:
    prefs = await update_preferences(
        session,
        user_id,
        default_price_percentage=request.default_price_percentage,
        minimum_price=request.minimum_price,
        collection_paused=request.collection_paused,
        trade_mode=request.trade_mode,
    )
    return PreferencesResponse(
        trade_mode=prefs.trade_mode,
        default_price_percentage=prefs.default_price_percentage,
        minimum_price=prefs.minimum_price,
        collection_paused=prefs.collection_paused,
    )


@router.post("/events/process", response_model=ProcessEventsResponse)
async def process_events(
    session: SessionDep,
    limit: int = Query(default=500, ge=1, le=5000),
) -> ProcessEventsResponse:
    """Drain pending inventory-changed events and recompute affected users."""
    report = await process_inventory_events(session, limit=limit)
    return ProcessEventsResponse(
        users_processed=report.users_processed,
        events_done=report.events_done,
        events_skipped=report.events_skipped,
        events_failed=report.events_failed,
        events_retrying=report.events_retrying,
    )
