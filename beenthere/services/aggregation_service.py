"""
BeenThere — Ratings Aggregator

Read-time summaries over the append-only rating tables.

Place profile
-------------
  counts.landlord / counts.apartment
      Number of rant groups at the place carrying that kind of rating.
  averages.landlord / averages.apartment
      Mean over groups of each group's own facet mean, so a group counts
      once however many facets it scored.
  averages.extras
      Per-facet arithmetic mean across every group that supplied that facet
      (the four apartment facets and the optional extras alike).
  recent
      The newest ``RECENT_RATINGS_WINDOW`` groups, ``created_at DESC, id DESC``.

A place with no ratings yields zero counts, ``None`` averages and empty
``extras`` / ``recent``; that is a normal state, not an error.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.config import Settings, get_settings
from beenthere.database import store_operation
from beenthere.exceptions import UserNotFound
from beenthere.models.place import LandlordIdentity
from beenthere.models.rating import (
    ApartmentRating,
    LandlordRating,
    RantGroup,
    RoommateRating,
)
from beenthere.models.user import User
from beenthere.schemas.place import (
    PlaceOut,
    PlaceProfile,
    PlaceRatings,
    PlaceStats,
    RatingAverages,
    RatingCounts,
    RecentRating,
)
from beenthere.schemas.rating import LandlordSummary
from beenthere.schemas.user import PublicUser, RatingsSummary, UserProfile
from beenthere.services.place_service import PlaceService
from beenthere.utils.phone import PhoneHasher

logger = structlog.get_logger("beenthere.aggregation_service")

_DECIMALS = 2


def _mean(values: Iterable[float]) -> float | None:
    values = list(values)
    if not values:
        return None
    return sum(values) / len(values)


def _rounded(value: float | None) -> float | None:
    return None if value is None else round(value, _DECIMALS)


def _facet_means(score_sets: Iterable[dict[str, int]]) -> dict[str, float]:
    totals: dict[str, int] = defaultdict(int)
    counts: dict[str, int] = defaultdict(int)
    for scores in score_sets:
        for facet, value in scores.items():
            if value is None:
                continue
            totals[facet] += value
            counts[facet] += 1
    return {
        facet: round(totals[facet] / counts[facet], _DECIMALS)
        for facet in sorted(totals)
    }


def _summarize(rows) -> PlaceStats:
    """Counts and averages over rows carrying ``landlord_scores``,
    ``apartment_scores`` and ``extras``."""
    landlord_sets = [r.landlord_scores for r in rows if r.landlord_scores]
    apartment_rows = [r for r in rows if r.apartment_scores]
    return PlaceStats(
        counts=RatingCounts(landlord=len(landlord_sets), apartment=len(apartment_rows)),
        averages=RatingAverages(
            landlord=_rounded(_mean(_mean(s.values()) for s in landlord_sets)),
            apartment=_rounded(
                _mean(_mean(r.apartment_scores.values()) for r in apartment_rows)
            ),
            extras=_facet_means(
                {**r.apartment_scores, **(r.extras or {})} for r in apartment_rows
            ),
        ),
    )


class AggregationService:
    """Counts, averages and recent items computed from stored ratings."""

    def __init__(
        self,
        place_service: PlaceService,
        hasher: PhoneHasher,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.place_service = place_service
        self.hasher = hasher
        self.recent_window: int = settings.RECENT_RATINGS_WINDOW
        self.operation_timeout: float = settings.DB_OPERATION_TIMEOUT_SECONDS

    # ── Places ────────────────────────────────────────────────────────────

    @store_operation
    async def get_place_profile(
        self, place_id: uuid.UUID, db: AsyncSession
    ) -> PlaceProfile:
        """Return the place with its rating counts, averages and recent groups.

        Raises ``PlaceNotFound`` for an unknown ``place_id``.
        """
        place = await self.place_service.get_place(place_id, db)

        stmt = (
            select(
                RantGroup.id,
                RantGroup.created_at,
                RantGroup.comment,
                LandlordRating.scores.label("landlord_scores"),
                ApartmentRating.scores.label("apartment_scores"),
                ApartmentRating.extras.label("extras"),
            )
            .outerjoin(LandlordRating, LandlordRating.rant_group_id == RantGroup.id)
            .outerjoin(ApartmentRating, ApartmentRating.rant_group_id == RantGroup.id)
            .where(RantGroup.place_id == place_id)
            .order_by(RantGroup.created_at.desc(), RantGroup.id.desc())
        )
        rows = (await db.execute(stmt)).all()
        stats = _summarize(rows)
        recent = [
            RecentRating(
                rant_group_id=r.id,
                at=r.created_at,
                landlord_scores=r.landlord_scores,
                apartment_scores=r.apartment_scores,
                extras=r.extras,
                comment=r.comment,
            )
            for r in rows[: self.recent_window]
        ]

        logger.debug(
            "place_profile_aggregated",
            place_id=str(place_id),
            groups=len(rows),
        )
        return PlaceProfile(
            place=PlaceOut.model_validate(place),
            ratings=PlaceRatings(
                counts=stats.counts,
                averages=stats.averages,
                recent=recent,
            ),
        )

    @store_operation
    async def get_place_stats(
        self, place_ids: Iterable[uuid.UUID], db: AsyncSession
    ) -> dict[uuid.UUID, PlaceStats]:
        """Counts and averages for several places in one query.

        Every requested id gets an entry; a place without ratings (or an
        unknown id) maps to empty stats.
        """
        place_ids = set(place_ids)
        if not place_ids:
            return {}

        stmt = (
            select(
                RantGroup.place_id,
                LandlordRating.scores.label("landlord_scores"),
                ApartmentRating.scores.label("apartment_scores"),
                ApartmentRating.extras.label("extras"),
            )
            .outerjoin(LandlordRating, LandlordRating.rant_group_id == RantGroup.id)
            .outerjoin(ApartmentRating, ApartmentRating.rant_group_id == RantGroup.id)
            .where(RantGroup.place_id.in_(place_ids))
        )
        by_place = defaultdict(list)
        for row in (await db.execute(stmt)).all():
            by_place[row.place_id].append(row)

        return {place_id: _summarize(by_place[place_id]) for place_id in place_ids}

    # ── Landlords ─────────────────────────────────────────────────────────

    @store_operation
    async def get_landlord_summary(self, phone: str, db: AsyncSession) -> LandlordSummary:
        """Landlord scores across every place sharing one hashed phone identity.

        An unknown phone is an empty summary; ``InvalidPhone`` is raised for
        a number that cannot be normalized.
        """
        phone_hash = self.hasher.hash(phone)
        stmt = (
            select(RantGroup.place_id, LandlordRating.scores)
            .join(LandlordRating, LandlordRating.rant_group_id == RantGroup.id)
            .join(LandlordIdentity, LandlordIdentity.id == RantGroup.landlord_id)
            .where(LandlordIdentity.phone_hash == phone_hash)
        )
        rows = (await db.execute(stmt)).all()

        return LandlordSummary(
            count=len(rows),
            average=_rounded(_mean(_mean(r.scores.values()) for r in rows)),
            facets=_facet_means(r.scores for r in rows),
            place_count=len({r.place_id for r in rows}),
        )

    # ── Users ─────────────────────────────────────────────────────────────

    @store_operation
    async def get_user_ratings_summary(
        self, user_id: uuid.UUID, db: AsyncSession
    ) -> RatingsSummary:
        stmt = select(RoommateRating.scores).where(RoommateRating.ratee_user_id == user_id)
        score_sets = (await db.execute(stmt)).scalars().all()
        return RatingsSummary(
            roommate_avg=_rounded(_mean(_mean(s.values()) for s in score_sets)),
            count=len(score_sets),
        )

    @store_operation
    async def get_user_profile(self, user_id: uuid.UUID, db: AsyncSession) -> UserProfile:
        user = (
            await db.execute(select(User).where(User.id == user_id))
        ).scalar_one_or_none()
        if user is None or not user.is_active:
            raise UserNotFound(f"User {user_id} not found", field="userId")

        summary = await self.get_user_ratings_summary(user_id, db)
        return UserProfile(
            user=PublicUser.model_validate(user),
            ratings_summary=summary,
        )
