from datetime import datetime
from typing import Optional
from uuid import UUID

from beenthere.schemas.common import CamelModel, ClosedModel


class PlaceRef(ClosedModel):
    """External provider id, or a coordinate pair, plus an optional address."""

    external_id: Optional[str] = None
    formatted_address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class PlaceResolveResponse(CamelModel):
    place_id: UUID


class PlaceOut(CamelModel):
    id: UUID
    external_id: Optional[str] = None
    formatted_address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class RatingCounts(CamelModel):
    landlord: int = 0
    apartment: int = 0


class RatingAverages(CamelModel):
    landlord: Optional[float] = None
    apartment: Optional[float] = None
    extras: dict[str, float] = {}


class PlaceStats(CamelModel):
    """Counts and averages without the recent list, for feed cards."""

    counts: RatingCounts = RatingCounts()
    averages: RatingAverages = RatingAverages()


class RecentRating(CamelModel):
    rant_group_id: UUID
    at: datetime
    landlord_scores: Optional[dict[str, int]] = None
    apartment_scores: Optional[dict[str, int]] = None
    extras: Optional[dict[str, int]] = None
    comment: Optional[str] = None


class PlaceRatings(CamelModel):
    counts: RatingCounts
    averages: RatingAverages
    recent: list[RecentRating] = []


class PlaceProfile(CamelModel):
    place: PlaceOut
    ratings: PlaceRatings
