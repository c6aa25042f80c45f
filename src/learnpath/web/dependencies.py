"""Request dependencies: acting user and role gate.

The caller identifies itself with the X-User-Id header. Authentication is
delegated to an upstream provider; this layer only checks roles.
"""

from __future__ import annotations

import asyncio

from fastapi import Depends, Header, HTTPException, status

from learnpath.core.models import UserProfile
from learnpath.core.session import LearningService, get_learning_service
from learnpath.db import users_repository


def get_service() -> LearningService:
    return get_learning_service()


async def get_caller(x_user_id: str = Header(..., alias="X-User-Id")) -> UserProfile:
    """Resolve the X-User-Id header to a registered profile."""
    profile = await asyncio.to_thread(users_repository.get_user, x_user_id)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown caller '{x_user_id}'",
        )
    return profile


async def require_teacher(caller: UserProfile = Depends(get_caller)) -> UserProfile:
    if caller.role != "teacher":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Teacher role required",
        )
    return caller


def require_owner(user_id: str, caller: UserProfile) -> None:
    """Only the user may act on their own documents."""
    if caller.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot act on another user's data",
        )


def require_owner_or_teacher(user_id: str, caller: UserProfile) -> None:
    """Owners read their own documents; teachers read everyone's."""
    if caller.user_id != user_id and caller.role != "teacher":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot read another user's data",
        )
