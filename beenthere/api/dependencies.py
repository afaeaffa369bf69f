"""
BeenThere — Shared API dependencies

Service singletons wired once per process, and the caller identity header.
Authentication happens in front of the core; the gateway forwards the
authenticated user id as ``X-User-Id``.
"""

from __future__ import annotations

import uuid

from fastapi import Header, HTTPException, status

from beenthere.config import get_settings
from beenthere.services.aggregation_service import AggregationService
from beenthere.services.feed_service import FeedService
from beenthere.services.listing_service import ListingService
from beenthere.services.matching_service import MatchingService
from beenthere.services.messaging_service import MessagingService
from beenthere.services.place_service import PlaceService
from beenthere.services.rating_service import RatingService
from beenthere.services.swipe_service import SwipeService
from beenthere.services.user_service import UserService
from beenthere.utils.phone import PhoneHasher

# ── Caller identity ───────────────────────────────────────────────────────────


async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> uuid.UUID:
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id must be a UUID",
        ) from None


# ── Service singletons ────────────────────────────────────────────────────────

_phone_hasher: PhoneHasher | None = None
_place_service: PlaceService | None = None
_rating_service: RatingService | None = None
_aggregation_service: AggregationService | None = None
_swipe_service: SwipeService | None = None
_matching_service: MatchingService | None = None
_messaging_service: MessagingService | None = None
_listing_service: ListingService | None = None
_feed_service: FeedService | None = None
_user_service: UserService | None = None


def get_phone_hasher() -> PhoneHasher:
    global _phone_hasher
    if _phone_hasher is None:
        _phone_hasher = PhoneHasher(get_settings().PHONE_HASH_SECRET)
    return _phone_hasher


def get_place_service() -> PlaceService:
    global _place_service
    if _place_service is None:
        _place_service = PlaceService()
    return _place_service


def get_rating_service() -> RatingService:
    global _rating_service
    if _rating_service is None:
        _rating_service = RatingService(get_place_service(), get_phone_hasher())
    return _rating_service


def get_aggregation_service() -> AggregationService:
    global _aggregation_service
    if _aggregation_service is None:
        _aggregation_service = AggregationService(get_place_service(), get_phone_hasher())
    return _aggregation_service


def get_swipe_service() -> SwipeService:
    global _swipe_service
    if _swipe_service is None:
        _swipe_service = SwipeService()
    return _swipe_service


def get_matching_service() -> MatchingService:
    global _matching_service
    if _matching_service is None:
        _matching_service = MatchingService(get_swipe_service())
    return _matching_service


def get_messaging_service() -> MessagingService:
    global _messaging_service
    if _messaging_service is None:
        _messaging_service = MessagingService()
    return _messaging_service


def get_listing_service() -> ListingService:
    global _listing_service
    if _listing_service is None:
        _listing_service = ListingService(get_place_service())
    return _listing_service


def get_feed_service() -> FeedService:
    global _feed_service
    if _feed_service is None:
        _feed_service = FeedService()
    return _feed_service


def get_user_service() -> UserService:
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
