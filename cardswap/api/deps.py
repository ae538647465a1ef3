"""
Shared request dependencies.

Authentication happens upstream; the authenticated user id reaches the
service in the ``X-User-Id`` header and is passed explicitly to every
service call.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from cardswap.db.database import get_session


async def get_current_user(
    x_user_id: Annotated[str | None, Header(alias="X-User-Id")] = None,
) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return x_user_id.strip()


CurrentUser = Annotated[str, Depends(get_current_user)]
SessionDep = Annotated[AsyncSession, Depends(get_session)]
