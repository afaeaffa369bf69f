from datetime import datetime
from typing import Optional
from uuid import UUID

from beenthere.schemas.common import CamelModel, ClosedModel


class SwipeCreate(ClosedModel):
    target_type: str  # USER / LISTING
    target_id: UUID
    action: str  # LIKE / PASS


class SwipeResponse(CamelModel):
    match_id: Optional[UUID] = None


class SwipeStats(CamelModel):
    total: int
    likes: int
    passes: int


class ListingResponseCreate(ClosedModel):
    candidate_id: UUID
    action: str  # LIKE / PASS


class MatchListItem(CamelModel):
    id: UUID
    target_type: str
    other_user_id: UUID
    other_user_name: str
    other_user_photo_url: Optional[str] = None
    listing_id: Optional[UUID] = None
    created_at: datetime
    last_message_at: Optional[datetime] = None
    last_message: Optional[str] = None


class MatchStateOut(CamelModel):
    state: str  # NO_INTEREST / ONE_SIDED_LIKE / MATCHED
