"""
BeenThere — Swipes API
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.api.dependencies import (
    get_current_user_id,
    get_matching_service,
    get_swipe_service,
)
from beenthere.database import get_db
from beenthere.schemas.match import MatchStateOut, SwipeCreate, SwipeResponse, SwipeStats
from beenthere.services.matching_service import MatchingService
from beenthere.services.swipe_service import SwipeService

router = APIRouter()


@router.post(
    "",
    response_model=SwipeResponse,
    summary="LIKE or PASS a user or listing",
)
async def swipe(
    payload: SwipeCreate,
    caller_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    matching: MatchingService = Depends(get_matching_service),
) -> SwipeResponse:
    """Record the swipe; ``matchId`` is set only when this swipe created the match."""
    result = await matching.swipe(
        caller_id, payload.target_type, payload.target_id, payload.action, db
    )
    return SwipeResponse(match_id=result.match_id)


@router.get("/stats", response_model=SwipeStats, summary="Caller's swipe counts")
async def swipe_stats(
    caller_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    swipes: SwipeService = Depends(get_swipe_service),
) -> SwipeStats:
    return await swipes.get_swipe_stats(caller_id, db)


@router.get(
    "/state",
    response_model=MatchStateOut,
    summary="Where the caller and a target stand: no interest, one-sided like, or matched",
)
async def match_state(
    target_type: str = Query(..., alias="targetType"),
    target_id: uuid.UUID = Query(..., alias="targetId"),
    caller_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    matching: MatchingService = Depends(get_matching_service),
) -> MatchStateOut:
    state = await matching.match_state(caller_id, target_type, target_id, db)
    return MatchStateOut(state=state.value)
