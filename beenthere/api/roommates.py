"""
BeenThere — Roommates API
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.api.dependencies import get_current_user_id, get_feed_service
from beenthere.database import get_db
from beenthere.schemas.common import Page
from beenthere.schemas.user import RoommateFeedItem
from beenthere.services.feed_service import FeedService

router = APIRouter()


@router.get(
    "/feed",
    response_model=Page[RoommateFeedItem],
    summary="Users the caller has not swiped yet, newest first",
)
async def roommates_feed(
    cursor: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    has_apartment: Optional[bool] = Query(default=None, alias="hasApartment"),
    caller_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    feeds: FeedService = Depends(get_feed_service),
) -> Page[RoommateFeedItem]:
    users, next_cursor = await feeds.roommates_feed(
        caller_id, cursor, limit, db, has_apartment=has_apartment
    )
    return Page[RoommateFeedItem](
        items=[
            RoommateFeedItem(
                user_id=u.id,
                display_name=u.display_name,
                photo_url=u.photo_url,
                bio=u.bio,
                has_apartment=u.has_apartment,
            )
            for u in users
        ],
        next_cursor=next_cursor,
    )
