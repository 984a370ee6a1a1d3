"""Shared API dependencies."""

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from autocat.core.database import get_db
from autocat.models.user import User


async def get_current_user(
    x_user_id: int | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the caller from the ``X-User-Id`` header set by the upstream gateway."""
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    user = await db.get(User, x_user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown or inactive user")
    return user


__all__ = ["get_db", "get_current_user"]
