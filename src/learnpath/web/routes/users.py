"""User registration and profile endpoints."""

import asyncio

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from learnpath.core.models import UserProfile
from learnpath.db import users_repository
from learnpath.utils.validators import validate_email, validate_user_id
from learnpath.web.dependencies import get_caller, require_owner_or_teacher
from learnpath.web.schemas import UserCreate, UserResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(user_data: UserCreate) -> UserResponse:
    """Register a student or teacher."""
    if not validate_user_id(user_data.user_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid user id",
        )
    if not validate_email(user_data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid email format",
        )

    profile = UserProfile(
        user_id=user_data.user_id,
        role=user_data.role,
        full_name=user_data.full_name.strip(),
        email=user_data.email,
    )
    await asyncio.to_thread(users_repository.insert_user, profile)

    logger.info("user_registered", user_id=profile.user_id, role=profile.role)
    return UserResponse(**profile.to_dict())


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, caller: UserProfile = Depends(get_caller)) -> UserResponse:
    """Get a profile. Students see their own; teachers see anyone's."""
    require_owner_or_teacher(user_id, caller)
    profile = await asyncio.to_thread(users_repository.require_user, user_id)
    return UserResponse(**profile.to_dict())
