"""
BeenThere — Discovery feeds

Newest-first, cursor-paged candidates for swiping.  Anything the caller has
already swiped (LIKE or PASS) is left out, as are the caller themselves and
their own listings.
"""

from __future__ import annotations

import uuid

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.config import Settings, get_settings
from beenthere.database import store_operation
from beenthere.exceptions import InvalidCursor
from beenthere.models.listing import Listing
from beenthere.models.match import Swipe, TargetType
from beenthere.models.user import User
from beenthere.utils.cursor import before_anchor, decode_cursor, encode_cursor

MAX_PAGE_SIZE = 100


class FeedService:
    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.page_size: int = settings.FEED_PAGE_SIZE
        self.operation_timeout: float = settings.DB_OPERATION_TIMEOUT_SECONDS

    @store_operation
    async def roommates_feed(
        self,
        user_id: uuid.UUID,
        cursor: str | None,
        limit: int | None,
        db: AsyncSession,
        has_apartment: bool | None = None,
    ) -> tuple[list[User], str | None]:
        """``has_apartment`` narrows the feed to users who do (or do not) have a
        place to share; ``None`` keeps everyone."""
        already_swiped = exists().where(
            Swipe.actor_id == user_id,
            Swipe.target_type == TargetType.USER.value,
            Swipe.target_id == User.id,
        )
        stmt = select(User).where(
            User.id != user_id,
            User.is_active.is_(True),
            ~already_swiped,
        )
        if has_apartment is not None:
            stmt = stmt.where(User.has_apartment.is_(has_apartment))
        return await self._page(stmt, User, cursor, limit, db)

    @store_operation
    async def listings_feed(
        self,
        user_id: uuid.UUID,
        cursor: str | None,
        limit: int | None,
        db: AsyncSession,
    ) -> tuple[list[Listing], str | None]:
        already_swiped = exists().where(
            Swipe.actor_id == user_id,
            Swipe.target_type == TargetType.LISTING.value,
            Swipe.target_id == Listing.id,
        )
        stmt = select(Listing).where(
            Listing.owner_user_id != user_id,
            Listing.is_active.is_(True),
            ~already_swiped,
        )
        return await self._page(stmt, Listing, cursor, limit, db)

    async def _page(self, stmt, model, cursor, limit, db):
        limit = min(max(limit or self.page_size, 1), MAX_PAGE_SIZE)
        if cursor:
            anchor_id = decode_cursor(cursor)
            anchor = (
                await db.execute(
                    select(model.created_at, model.id).where(model.id == anchor_id)
                )
            ).one_or_none()
            if anchor is None:
                raise InvalidCursor("Unknown cursor", field="cursor")
            stmt = stmt.where(
                before_anchor(model.created_at, model.id, anchor.created_at, anchor.id)
            )

        stmt = stmt.order_by(model.created_at.desc(), model.id.desc()).limit(limit + 1)
        rows = list((await db.execute(stmt)).scalars().all())

        next_cursor = None
        if len(rows) > limit:
            rows = rows[:limit]
            next_cursor = encode_cursor(rows[-1].id)
        return rows, next_cursor
