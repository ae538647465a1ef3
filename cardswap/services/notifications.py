"""
Trade notifications.

Lifecycle transitions write a ``notifications`` row in the same session as
the transition and schedule a best-effort push. Push delivery runs as a
detached task; its failures are logged and never reach the caller.
"""

import asyncio
import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from cardswap.config import settings
from cardswap.models.db import NotificationDB
from cardswap.models.enums import NotificationType

logger = logging.getLogger(__name__)

PUSH_TITLES: dict[NotificationType, str] = {
    NotificationType.TRADE_REQUESTED: "New trade request",
    NotificationType.TRADE_CONFIRMED: "Trade confirmed",
    NotificationType.TRADE_COMPLETED: "Trade completed",
    NotificationType.TRADE_CANCELLED: "Trade cancelled",
    NotificationType.REQUEST_INVALIDATED: "Trade request invalidated",
    NotificationType.REQUEST_REJECTED: "Trade request rejected",
    NotificationType.REQUEST_UPDATED: "Trade request changed",
    NotificationType.NEW_COMMENT: "New comment",
}

# Strong references so pending pushes are not garbage collected
_pending_pushes: set[asyncio.Task[None]] = set()


async def send_push(user_id: str, title: str, body: str, url: str | None = None) -> bool:
    """
    Deliver one push through the push gateway.

    Returns:
        True if the gateway accepted it, False if push is disabled or failed.
    """
    if not settings.push_service_url:
        logger.warning("Push service not configured, skipping push for %s", user_id)
        return False

    headers = {}
    if settings.push_service_key:
        headers["Authorization"] = f"Bearer {settings.push_service_key}"

    payload = {"user_id": user_id, "title": title, "body": body, "url": url}
    try:
        async with httpx.AsyncClient(timeout=settings.push_timeout_seconds) as client:
            response = await client.post(settings.push_service_url, json=payload, headers=headers)
            response.raise_for_status()
    except httpx.HTTPError:
        logger.exception("Push delivery to %s failed", user_id)
        return False
    return True


def schedule_push(user_id: str, title: str, body: str, url: str | None = None) -> None:
    """Start a push in the background without awaiting it."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.warning("No running event loop, dropping push for %s", user_id)
        return

    task = loop.create_task(send_push(user_id, title, body, url))
    _pending_pushes.add(task)
    task.add_done_callback(_pending_pushes.discard)


async def drain_pushes() -> None:
    """Wait for every scheduled push to finish."""
    if _pending_pushes:
        await asyncio.gather(*list(_pending_pushes), return_exceptions=True)


def notify(
    session: AsyncSession,
    user_id: str,
    notification_type: NotificationType,
    match_id: int | None = None,
    from_user_id: str | None = None,
    content: str = "",
) -> NotificationDB:
    """
    Record a notification and schedule its push.

    The row is added to ``session`` and is persisted with the caller's
    transaction.
    """
    notification = NotificationDB(
        user_id=user_id,
        type=notification_type.value,
        match_id=match_id,
        from_user_id=from_user_id,
        content=content,
    )
    session.add(notification)

    url = f"/matches/{match_id}" if match_id is not None else None
    schedule_push(user_id, PUSH_TITLES[notification_type], content, url)
    return notification
