from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import Field

from beenthere.schemas.common import CamelModel, ClosedModel
from beenthere.schemas.place import PlaceRef, RatingAverages, RatingCounts


class ListingCreate(ClosedModel):
    """Either ``place`` (resolved on the fly) or an existing ``place_id``."""

    place: Optional[PlaceRef] = None
    place_id: Optional[UUID] = None
    title: str = Field(min_length=1, max_length=200)
    price: int = Field(ge=0)
    attrs: Optional[dict[str, Any]] = None
    auto_accept: bool = False


class ListingOut(CamelModel):
    id: UUID
    owner_user_id: UUID
    place_id: UUID
    title: str
    price: int
    attrs: Optional[dict[str, Any]] = None
    auto_accept: bool
    created_at: datetime


class ListingFeedItem(ListingOut):
    """A feed card: the listing plus its place's rating counts and averages."""

    counts: RatingCounts
    averages: RatingAverages
