from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from beenthere.schemas.common import CamelModel, ClosedModel


class UserCreate(ClosedModel):
    email: str = Field(min_length=3)
    display_name: str = Field(min_length=1)
    bio: Optional[str] = None
    photo_url: Optional[str] = None
    has_apartment: bool = False


class PublicUser(CamelModel):
    """What any caller may see about another account; no contact details."""

    id: UUID
    display_name: str
    bio: Optional[str] = None
    photo_url: Optional[str] = None
    has_apartment: bool
    created_at: datetime


class UserResponse(PublicUser):
    email: str


class RatingsSummary(CamelModel):
    roommate_avg: Optional[float] = None
    count: int = 0


class UserProfile(CamelModel):
    user: PublicUser
    ratings_summary: RatingsSummary


class RoommateFeedItem(CamelModel):
    user_id: UUID
    display_name: str
    photo_url: Optional[str] = None
    bio: Optional[str] = None
    has_apartment: bool
