"""
BeenThere — Rants API

Submitting landlord / apartment rating groups and roommate ratings, and the
landlord lookup by phone.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.api.dependencies import (
    get_aggregation_service,
    get_current_user_id,
    get_rating_service,
)
from beenthere.database import get_db
from beenthere.schemas.rating import (
    LandlordSummary,
    RantGroupCreated,
    RatingGroupSubmission,
    RoommateRatingCreated,
    RoommateRatingSubmission,
)
from beenthere.services.aggregation_service import AggregationService
from beenthere.services.rating_service import RatingService

router = APIRouter()


@router.post(
    "",
    response_model=RantGroupCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Submit landlord and/or apartment ratings for a place",
)
async def submit_rant(
    payload: RatingGroupSubmission,
    caller_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    ratings: RatingService = Depends(get_rating_service),
) -> RantGroupCreated:
    rant_group_id = await ratings.submit_rating_group(caller_id, payload, db)
    return RantGroupCreated(rant_group_id=rant_group_id)


@router.post(
    "/roommate",
    response_model=RoommateRatingCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Rate a roommate",
)
async def submit_roommate_rating(
    payload: RoommateRatingSubmission,
    caller_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    ratings: RatingService = Depends(get_rating_service),
) -> RoommateRatingCreated:
    rating_id = await ratings.submit_roommate_rating(caller_id, payload, db)
    return RoommateRatingCreated(rating_id=rating_id)


@router.get(
    "/landlord",
    response_model=LandlordSummary,
    summary="Landlord scores across all places sharing a phone number",
)
async def landlord_summary(
    phone: str = Query(..., min_length=1),
    _caller: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    aggregation: AggregationService = Depends(get_aggregation_service),
) -> LandlordSummary:
    return await aggregation.get_landlord_summary(phone, db)
