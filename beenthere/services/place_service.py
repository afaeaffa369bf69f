"""
BeenThere — Place Resolver

Turns a client place reference into a stable ``Place`` id.  Two shapes of
reference are accepted:

  * an external provider id (e.g. a Google Places id)  →  ``ext:<id>``
  * a coordinate pair                                   →  ``geo:<lat>:<lng>``

Coordinates are rounded to ``PLACE_COORD_PRECISION`` decimals before the key
is built, so two pins dropped a few centimetres apart land on the same Place.
Creation is a single ``INSERT … ON CONFLICT`` on the unique ``dedup_key``
followed by a keyed read, so concurrent resolutions of the same reference
converge on one row without any application-level locking.
"""

from __future__ import annotations

import math
import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.config import Settings, get_settings
from beenthere.database import store_operation, upsert, utcnow
from beenthere.exceptions import InvalidReference, PlaceNotFound
from beenthere.models.place import Place
from beenthere.schemas.place import PlaceRef

logger = structlog.get_logger("beenthere.place_service")


def _valid_coordinates(lat: float | None, lng: float | None) -> bool:
    if lat is None or lng is None:
        return False
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


class PlaceService:
    """Deduplicating get-or-create for places."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.precision: int = settings.PLACE_COORD_PRECISION
        self.operation_timeout: float = settings.DB_OPERATION_TIMEOUT_SECONDS

    # ── Identity ──────────────────────────────────────────────────────────

    def round_coordinate(self, value: float) -> float:
        # Adding 0.0 folds -0.0 into 0.0 so both render the same key.
        return round(value, self.precision) + 0.0

    def dedup_key(self, ref: PlaceRef) -> str:
        """Return the deterministic identity key for ``ref``.

        Raises
        ------
        InvalidReference
            When the reference carries neither a non-blank external id nor
            a complete, in-range coordinate pair.
        """
        external_id = (ref.external_id or "").strip()
        if external_id:
            return f"ext:{external_id}"

        if _valid_coordinates(ref.lat, ref.lng):
            p = self.precision
            lat = self.round_coordinate(ref.lat)
            lng = self.round_coordinate(ref.lng)
            return f"geo:{lat:.{p}f}:{lng:.{p}f}"

        raise InvalidReference(
            "A place needs an external id or a valid lat/lng pair",
            field="place",
        )

    # ── Public API ────────────────────────────────────────────────────────

    @store_operation
    async def resolve(self, ref: PlaceRef, db: AsyncSession) -> uuid.UUID:
        """Resolve ``ref`` to a Place id, creating the Place at most once.

        For external ids a non-null ``formatted_address`` overwrites the
        stored one (last write wins).  For coordinate references the first
        resolution's address and rounded coordinates are kept.
        """
        key = self.dedup_key(ref)
        address = (ref.formatted_address or "").strip() or None
        now = utcnow()

        lat = lng = None
        if _valid_coordinates(ref.lat, ref.lng):
            lat = self.round_coordinate(ref.lat)
            lng = self.round_coordinate(ref.lng)

        stmt = upsert(db, Place.__table__).values(
            id=uuid.uuid4(),
            dedup_key=key,
            external_id=(ref.external_id or "").strip() or None,
            formatted_address=address,
            lat=lat,
            lng=lng,
            created_at=now,
        )
        if key.startswith("ext:") and address is not None:
            stmt = stmt.on_conflict_do_update(
                index_elements=["dedup_key"],
                set_={
                    "formatted_address": stmt.excluded.formatted_address,
                    "updated_at": now,
                },
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=["dedup_key"])
        await db.execute(stmt)

        result = await db.execute(select(Place.id).where(Place.dedup_key == key))
        place_id = result.scalar_one()

        logger.info("place_resolved", place_id=str(place_id), key_kind=key[:3])
        return place_id

    @store_operation
    async def get_place(self, place_id: uuid.UUID, db: AsyncSession) -> Place:
        stmt = (
            select(Place)
            .where(Place.id == place_id)
            .execution_options(populate_existing=True)
        )
        place = (await db.execute(stmt)).scalar_one_or_none()
        if place is None:
            raise PlaceNotFound(f"Place {place_id} not found", field="placeId")
        return place
