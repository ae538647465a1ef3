"""
Access and state guards shared by match operations.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from cardswap.db.operations import get_match
from cardswap.models.db import MatchDB
from cardswap.models.enums import FINALIZED_STATUSES, MatchStatus, NotificationType
from cardswap.models.failure import FinalizedTradeError, NotFoundError, NotParticipantError
from cardswap.services.notifications import notify

logger = logging.getLogger(__name__)


async def require_participant_match(
    session: AsyncSession,
    match_id: int,
    user_id: str,
    for_update: bool = False,
) -> MatchDB:
    """
    Load a match the caller takes part in.

    Raises:
        NotFoundError: If the match doesn't exist
        NotParticipantError: If the caller is neither user_a nor user_b
    """
    match = await get_match(session, match_id, for_update=for_update)
    if match is None:
        raise NotFoundError()
    if not match.is_participant(user_id):
        raise NotParticipantError(match_id, user_id)
    return match


def ensure_not_finalized(match: MatchDB) -> None:
    if match.status in FINALIZED_STATUSES:
        raise FinalizedTradeError(match.status)


def invalidate_counterpart_request(session: AsyncSession, match: MatchDB, editor_id: str) -> bool:
    """
    Revert a pending request made by the editor's counterpart.

    Editing the cards of a requested trade changes its terms, so a request
    the other participant made is withdrawn and they are told about it.
    Requests made by the editor themselves stand, but the counterpart who
    has to confirm them is told the cards changed.

    Returns:
        True if a request was invalidated.
    """
    if match.status != MatchStatus.REQUESTED.value:
        return False

    counterpart = match.other_user(editor_id)
    if match.requested_by != counterpart:
        notify(
            session,
            counterpart,
            NotificationType.REQUEST_UPDATED,
            match_id=match.id,
            from_user_id=editor_id,
            content="The cards of a trade request you received were changed.",
        )
        return False

    match.status = MatchStatus.ACTIVE.value
    match.requested_by = None
    match.requested_at = None
    logger.info(
        "Match %s: request by %s invalidated by edit from %s", match.id, counterpart, editor_id
    )
    notify(
        session,
        counterpart,
        NotificationType.REQUEST_INVALIDATED,
        match_id=match.id,
        from_user_id=editor_id,
        content="The cards of your trade request were changed. Review and request again.",
    )
    return True
