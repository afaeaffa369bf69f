"""
BeenThere — Listings API

Creating and reading listings, the listings discovery feed, and the owner's
responses to candidates who liked a listing.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.api.dependencies import (
    get_aggregation_service,
    get_current_user_id,
    get_feed_service,
    get_listing_service,
    get_matching_service,
)
from beenthere.database import get_db
from beenthere.models.listing import Listing
from beenthere.schemas.common import Page
from beenthere.schemas.listing import ListingCreate, ListingFeedItem, ListingOut
from beenthere.schemas.match import ListingResponseCreate, SwipeResponse
from beenthere.services.aggregation_service import AggregationService
from beenthere.services.feed_service import FeedService
from beenthere.services.listing_service import ListingService
from beenthere.services.matching_service import MatchingService

logger = structlog.get_logger("beenthere.api.listings")

router = APIRouter()


@router.get(
    "/feed",
    response_model=Page[ListingFeedItem],
    summary="Active listings the caller has not swiped yet, with place rating stats",
)
async def listings_feed(
    cursor: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    caller_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    feeds: FeedService = Depends(get_feed_service),
    aggregation: AggregationService = Depends(get_aggregation_service),
) -> Page[ListingFeedItem]:
    listings, next_cursor = await feeds.listings_feed(caller_id, cursor, limit, db)
    stats = await aggregation.get_place_stats(
        {listing.place_id for listing in listings}, db
    )
    return Page[ListingFeedItem](
        items=[
            ListingFeedItem(
                **ListingOut.model_validate(listing).model_dump(),
                counts=stats[listing.place_id].counts,
                averages=stats[listing.place_id].averages,
            )
            for listing in listings
        ],
        next_cursor=next_cursor,
    )


@router.post(
    "",
    response_model=ListingOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a listing",
)
async def create_listing(
    payload: ListingCreate,
    caller_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    listings: ListingService = Depends(get_listing_service),
) -> Listing:
    return await listings.create_listing(caller_id, payload, db)


@router.get("/{listing_id}", response_model=ListingOut, summary="Get a listing")
async def get_listing(
    listing_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    listings: ListingService = Depends(get_listing_service),
) -> Listing:
    return await listings.get_listing(listing_id, db)


@router.post(
    "/{listing_id}/responses",
    response_model=SwipeResponse,
    summary="Owner accepts (LIKE) or declines (PASS) a candidate",
)
async def respond_to_candidate(
    listing_id: uuid.UUID,
    payload: ListingResponseCreate,
    caller_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    matching: MatchingService = Depends(get_matching_service),
) -> SwipeResponse:
    log = logger.bind(listing_id=str(listing_id), candidate_id=str(payload.candidate_id))
    result = await matching.respond_to_listing_like(
        caller_id, listing_id, payload.candidate_id, payload.action, db
    )
    log.info("listing_response_handled", match_created=result.created)
    return SwipeResponse(match_id=result.match_id)
