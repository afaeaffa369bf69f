"""
BeenThere — Users API

Account creation and the public user profile with roommate ratings.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.api.dependencies import get_aggregation_service, get_user_service
from beenthere.database import get_db
from beenthere.models.user import User
from beenthere.schemas.user import UserCreate, UserProfile, UserResponse
from beenthere.services.aggregation_service import AggregationService
from beenthere.services.user_service import UserService

logger = structlog.get_logger("beenthere.api.users")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# POST /: create a new user
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new user",
)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    users: UserService = Depends(get_user_service),
) -> User:
    """Register a new account; 409 when the email is already in use."""
    log = logger.bind(display_name=payload.display_name)
    log.info("create_user_start")
    user = await users.create_user(payload, db)
    log.info("create_user_complete", user_id=str(user.id))
    return user


# ──────────────────────────────────────────────────────────────────────────────
# GET /{user_id}/profile: profile with roommate ratings summary
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{user_id}/profile",
    response_model=UserProfile,
    summary="User profile with roommate ratings summary",
)
async def get_user_profile(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    aggregation: AggregationService = Depends(get_aggregation_service),
) -> UserProfile:
    return await aggregation.get_user_profile(user_id, db)
