"""
Notification inbox endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from cardswap.api.deps import CurrentUser, SessionDep
from cardswap.db.operations import (
    count_unread_notifications,
    get_notifications,
    mark_notifications_read,
)
from cardswap.models.failure import InvalidInputError

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationResponse(BaseModel):
    id: int
    type: str
    match_id: int | None = None
    from_user_id: str | None = None
    content: str = ""
    is_read: bool = False
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse] = Field(default_factory=list)
    unread_count: int = 0


class MarkReadRequest(BaseModel):
    """Either list the notifications to mark or set ``mark_all_read``."""

    notification_ids: list[int] | None = None
    mark_all_read: bool = False


class MarkReadResponse(BaseModel):
    success: bool = True
    marked: int = 0


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    user_id: CurrentUser,
    session: SessionDep,
    unread: bool = False,
    limit: int = Query(default=50, ge=1, le=100),
) -> NotificationListResponse:
    """The caller's notifications, newest first, with the unread total."""
    notifications = await get_notifications(session, user_id, unread_only=unread, limit=limit)
    return NotificationListResponse(
        notifications=[
            NotificationResponse(
                id=n.id,
                type=n.type,
                match_id=n.match_id,
                from_user_id=n.from_user_id,
                content=n.content,
                is_read=n.is_read,
                created_at=n.created_at,
            )
            for n in notifications
        ],
        unread_count=await count_unread_notifications(session, user_id),
    )


@router.post("/read", response_model=MarkReadResponse)
async def mark_read(
    request: MarkReadRequest, user_id: CurrentUser, session: SessionDep
) -> MarkReadResponse:
    if request.mark_all_read:
        marked = await mark_notifications_read(session, user_id)
    elif request.notification_ids:
        marked = await mark_notifications_read(session, user_id, request.notification_ids)
    else:
        raise InvalidInputError("Give notification_ids or set mark_all_read.")
    return MarkReadResponse(marked=marked)
