"""
Match comments.

Participants negotiate on a match through short comments. Each participant
may post a limited number of comments per match and calendar month (UTC);
edits do not count against the allowance. Every new comment notifies the
counterpart.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from cardswap.db.operations import count_comments_since, create_comment, get_comment, get_comments
from cardswap.models.db import MatchCommentDB, utcnow
from cardswap.models.enums import NotificationType
from cardswap.models.failure import (
    CommentLimitError,
    InvalidInputError,
    NotFoundError,
    OwnershipError,
)
from cardswap.models.match import CommentThread, CommentView
from cardswap.services.guards import require_participant_match
from cardswap.services.notifications import notify

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 300
MAX_COMMENTS_PER_MONTH = 10


def month_start(now: datetime | None = None) -> datetime:
    """Midnight on the first day of the month containing ``now``."""
    now = now or utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def clean_content(content: str) -> str:
    """
    Strip surrounding whitespace and check the length.

    Raises:
        InvalidInputError: If the comment is empty or too long
    """
    text = content.strip()
    if not text:
        raise InvalidInputError("A comment cannot be empty.")
    if len(text) > MAX_COMMENT_LENGTH:
        raise InvalidInputError(f"A comment cannot exceed {MAX_COMMENT_LENGTH} characters.")
    return text


def to_view(comment: MatchCommentDB, viewer_id: str) -> CommentView:
    return CommentView(
        id=comment.id,
        user_id=comment.user_id,
        content=comment.content,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        is_mine=comment.user_id == viewer_id,
    )


async def list_comments(session: AsyncSession, match_id: int, user_id: str) -> CommentThread:
    """
    Get a match's comments and the caller's remaining allowance.

    Raises:
        NotFoundError: If the match doesn't exist or the caller isn't in it
    """
    match = await require_participant_match(session, match_id, user_id)
    comments = await get_comments(session, match.id)
    used = await count_comments_since(session, match.id, user_id, month_start())
    return CommentThread(
        comments=[to_view(comment, user_id) for comment in comments],
        my_count_this_month=used,
        max_per_month=MAX_COMMENTS_PER_MONTH,
    )


async def post_comment(
    session: AsyncSession, match_id: int, user_id: str, content: str
) -> tuple[CommentView, int]:
    """
    Add a comment and notify the counterpart.

    Comments are allowed in every status, including finalized trades.

    Returns:
        (comment, comments the caller has left this month)

    Raises:
        InvalidInputError: If the comment is empty or too long
        NotFoundError: If the match doesn't exist or the caller isn't in it
        CommentLimitError: If the caller used up this month's comments
    """
    text = clean_content(content)
    match = await require_participant_match(session, match_id, user_id)

    used = await count_comments_since(session, match.id, user_id, month_start())
    if used >= MAX_COMMENTS_PER_MONTH:
        raise CommentLimitError(MAX_COMMENTS_PER_MONTH)

    comment = await create_comment(session, match.id, user_id, text)
    notify(
        session,
        match.other_user(user_id),
        NotificationType.NEW_COMMENT,
        match_id=match.id,
        from_user_id=user_id,
        content="The other trader commented on your trade.",
    )
    logger.info("Match %s: comment %s by %s", match.id, comment.id, user_id)
    return to_view(comment, user_id), MAX_COMMENTS_PER_MONTH - used - 1


async def edit_comment(
    session: AsyncSession, match_id: int, comment_id: int, user_id: str, content: str
) -> CommentView:
    """
    Replace the text of one of the caller's comments.

    Raises:
        InvalidInputError: If the new text is empty or too long
        NotFoundError: If the match or the comment doesn't exist
        OwnershipError: If the comment belongs to the counterpart
    """
    text = clean_content(content)
    match = await require_participant_match(session, match_id, user_id)

    comment = await get_comment(session, match.id, comment_id)
    if comment is None:
        raise NotFoundError("Comment not found.")
    if comment.user_id != user_id:
        raise OwnershipError("You can only edit your own comments.")

    comment.content = text
    comment.updated_at = utcnow()
    await session.flush()
    return to_view(comment, user_id)
