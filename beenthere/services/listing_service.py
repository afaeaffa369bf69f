"""
BeenThere — Listings

Apartment listings offered by a user.  A listing is pinned to a Place,
resolved on creation from a place reference or taken from an existing
place id.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.config import Settings, get_settings
from beenthere.database import store_operation, utcnow
from beenthere.exceptions import (
    InvalidListing,
    InvalidReference,
    ListingNotFound,
    UserNotFound,
)
from beenthere.models.listing import Listing
from beenthere.models.user import User
from beenthere.schemas.listing import ListingCreate
from beenthere.services.place_service import PlaceService

logger = structlog.get_logger("beenthere.listing_service")


class ListingService:
    def __init__(
        self, place_service: PlaceService, settings: Settings | None = None
    ) -> None:
        settings = settings or get_settings()
        self.place_service = place_service
        self.operation_timeout: float = settings.DB_OPERATION_TIMEOUT_SECONDS

    @store_operation
    async def create_listing(
        self, owner_id: uuid.UUID, payload: ListingCreate, db: AsyncSession
    ) -> Listing:
        title = payload.title.strip()
        if not title:
            raise InvalidListing("Listing title must not be blank", field="title")
        if payload.price < 0:
            raise InvalidListing("Listing price must not be negative", field="price")
        if payload.place is None and payload.place_id is None:
            raise InvalidReference("A listing needs a place or a placeId", field="place")
        if payload.place is not None:
            self.place_service.dedup_key(payload.place)

        owner = (
            await db.execute(select(User).where(User.id == owner_id))
        ).scalar_one_or_none()
        if owner is None or not owner.is_active:
            raise UserNotFound(f"User {owner_id} not found", field="ownerId")

        if payload.place is not None:
            place_id = await self.place_service.resolve(payload.place, db)
        else:
            place_id = (await self.place_service.get_place(payload.place_id, db)).id

        listing = Listing(
            owner_user_id=owner_id,
            place_id=place_id,
            title=title,
            price=payload.price,
            attrs=payload.attrs,
            auto_accept=payload.auto_accept,
            created_at=utcnow(),
        )
        db.add(listing)
        owner.has_apartment = True
        await db.flush()

        logger.info(
            "listing_created",
            listing_id=str(listing.id),
            owner_id=str(owner_id),
            place_id=str(place_id),
            auto_accept=listing.auto_accept,
        )
        return listing

    @store_operation
    async def get_listing(self, listing_id: uuid.UUID, db: AsyncSession) -> Listing:
        listing = (
            await db.execute(select(Listing).where(Listing.id == listing_id))
        ).scalar_one_or_none()
        if listing is None:
            raise ListingNotFound(f"Listing {listing_id} not found", field="listingId")
        return listing
