"""
Comment API endpoints.

Participants-only discussion thread on a match.
"""

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from cardswap.api.deps import CurrentUser, SessionDep
from cardswap.models.match import CommentView
from cardswap.services.comments import (
    MAX_COMMENT_LENGTH,
    edit_comment,
    list_comments,
    post_comment,
)

router = APIRouter(prefix="/matches", tags=["comments"])


class CommentRequest(BaseModel):
    content: str = Field(description=f"Up to {MAX_COMMENT_LENGTH} characters after trimming")


class CommentResponse(BaseModel):
    id: int
    user_id: str
    content: str
    created_at: datetime
    updated_at: datetime | None = None
    is_edited: bool = False
    is_mine: bool = False


class CommentListResponse(BaseModel):
    comments: list[CommentResponse] = Field(default_factory=list)
    my_comment_count_this_month: int = 0
    max_comments_per_month: int
    can_comment: bool = True


class PostCommentResponse(BaseModel):
    comment: CommentResponse
    remaining_comments: int


def comment_response(comment: CommentView) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        user_id=comment.user_id,
        content=comment.content,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        is_edited=comment.is_edited,
        is_mine=comment.is_mine,
    )


@router.get("/{match_id}/comments", response_model=CommentListResponse)
async def read_comments(
    match_id: int, user_id: CurrentUser, session: SessionDep
) -> CommentListResponse:
    thread = await list_comments(session, match_id, user_id)
    return CommentListResponse(
        comments=[comment_response(c) for c in thread.comments],
        my_comment_count_this_month=thread.my_count_this_month,
        max_comments_per_month=thread.max_per_month,
        can_comment=thread.can_comment,
    )


@router.post("/{match_id}/comments", response_model=PostCommentResponse)
async def add_comment(
    match_id: int,
    request: CommentRequest,
    user_id: CurrentUser,
    session: SessionDep,
) -> PostCommentResponse:
    """Post a comment; the other participant is notified."""
    comment, remaining = await post_comment(session, match_id, user_id, request.content)
    return PostCommentResponse(comment=comment_response(comment), remaining_comments=remaining)


@router.patch("/{match_id}/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    match_id: int,
    comment_id: int,
    request: CommentRequest,
    user_id: CurrentUser,
    session: SessionDep,
) -> CommentResponse:
    comment = await edit_comment(session, match_id, comment_id, user_id, request.content)
    return comment_response(comment)
