"""
BeenThere — Rating Store

Validates and persists rating submissions:

  * **Rant groups**: one submission against a Place bundling landlord
    scores and/or apartment scores (plus optional extras, a comment and the
    tenancy period).  The place is resolved, the landlord identity is
    get-or-created from the hashed phone, and the group with its rating
    rows is inserted inside a single SAVEPOINT, so either all of it lands
    or none of it does.
  * **Roommate ratings**: one rater scoring another account (or an
    unregistered person described by a free-form hint).

Every score is an integer in [1, 10].  Validation runs to completion before
the first write; a rejected submission leaves no rows behind.
"""

from __future__ import annotations

import uuid
from typing import Any, Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.config import Settings, get_settings
from beenthere.database import store_operation, upsert, utcnow
from beenthere.exceptions import (
    EmptyRating,
    InvalidComment,
    InvalidReference,
    InvalidScore,
    SelfRating,
    UserNotFound,
)
from beenthere.models.place import LandlordIdentity
from beenthere.models.rating import (
    ApartmentRating,
    LandlordRating,
    RantGroup,
    RoommateRating,
)
from beenthere.models.user import User
from beenthere.schemas.rating import (
    RateeUser,
    RatingGroupSubmission,
    RoommateRatingSubmission,
)
from beenthere.services.place_service import PlaceService
from beenthere.utils.phone import PhoneHasher

logger = structlog.get_logger("beenthere.rating_service")

# ──────────────────────────────────────────────────────────────────────────────
# Facets
# ──────────────────────────────────────────────────────────────────────────────

SCORE_MIN = 1
SCORE_MAX = 10

LANDLORD_FACETS: tuple[str, ...] = ("fairness", "response", "maintenance", "privacy")
APARTMENT_FACETS: tuple[str, ...] = ("condition", "noise", "utilities", "sunlight_mold")
APARTMENT_EXTRA_FACETS: tuple[str, ...] = (
    "neighbors_noise",
    "roof_common",
    "elevator_solar",
    "neigh_safety",
    "neigh_services",
    "neigh_transit",
    "price_fairness",
)
ROOMMATE_FACETS: tuple[str, ...] = (
    "cleanliness",
    "communication",
    "reliability",
    "respect",
    "cost_sharing",
)


def validate_scores(
    prefix: str,
    scores: dict[str, Any],
    facets: Iterable[str],
    *,
    required: bool = True,
) -> dict[str, int]:
    """Check a facet → score mapping and return a clean copy.

    Parameters
    ----------
    prefix:
        Facet path prefix used in error fields, e.g. ``"landlord"``.
    scores:
        Raw mapping from the submission.
    facets:
        Allowed facet names.
    required:
        When True every facet must be present; otherwise absent or ``None``
        facets are skipped.

    Raises
    ------
    InvalidScore
        Naming the first offending facet (``landlord.fairness`` …).
    """
    facets = tuple(facets)
    for name in scores:
        if name not in facets:
            raise InvalidScore(f"Unknown facet {prefix}.{name}", field=f"{prefix}.{name}")

    clean: dict[str, int] = {}
    for facet in facets:
        field = f"{prefix}.{facet}"
        value = scores.get(facet)
        if value is None:
            if required:
                raise InvalidScore(f"Missing score for {field}", field=field)
            continue
        # bool is an int subclass; True must not pass as a 1.
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidScore(f"{field} must be an integer", field=field)
        if not SCORE_MIN <= value <= SCORE_MAX:
            raise InvalidScore(
                f"{field} must be between {SCORE_MIN} and {SCORE_MAX}, got {value}",
                field=field,
            )
        clean[facet] = value
    return clean


class RatingService:
    """Validated, atomic writes of rant groups and roommate ratings."""

    def __init__(
        self,
        place_service: PlaceService,
        hasher: PhoneHasher,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.place_service = place_service
        self.hasher = hasher
        self.comment_max_length: int = settings.COMMENT_MAX_LENGTH
        self.operation_timeout: float = settings.DB_OPERATION_TIMEOUT_SECONDS

    # ── Public API ────────────────────────────────────────────────────────

    @store_operation
    async def submit_rating_group(
        self,
        author_id: uuid.UUID,
        submission: RatingGroupSubmission,
        db: AsyncSession,
    ) -> uuid.UUID:
        """Persist one rant group and return its id.

        Raises ``EmptyRating`` when neither landlord nor apartment scores are
        present, ``InvalidScore`` / ``InvalidComment`` / ``InvalidPhone`` /
        ``InvalidReference`` for malformed input, and ``UserNotFound`` for an
        unknown author.  None of these leave a row behind.
        """
        log = logger.bind(author_id=str(author_id))

        landlord_scores = None
        if submission.landlord_scores is not None:
            landlord_scores = validate_scores(
                "landlord", submission.landlord_scores.model_dump(), LANDLORD_FACETS
            )

        apartment_scores = None
        extras = None
        if submission.apartment_scores is not None:
            apartment_scores = validate_scores(
                "apartment", submission.apartment_scores.model_dump(), APARTMENT_FACETS
            )
            if submission.extras is not None:
                extras = validate_scores(
                    "apartment.extras",
                    submission.extras.model_dump(),
                    APARTMENT_EXTRA_FACETS,
                    required=False,
                ) or None

        if landlord_scores is None and apartment_scores is None:
            raise EmptyRating(
                "A rating needs landlord scores, apartment scores, or both"
            )
        if apartment_scores is None and submission.extras is not None:
            raise InvalidScore(
                "Apartment extras require apartment scores",
                field="apartment.extras",
            )

        comment = self._clean_comment(submission.comment)
        if (
            submission.period_start is not None
            and submission.period_end is not None
            and submission.period_end < submission.period_start
        ):
            raise InvalidReference(
                "periodEnd must not be before periodStart", field="periodEnd"
            )

        phone_hash = None
        if submission.landlord_phone:
            phone_hash = self.hasher.hash(submission.landlord_phone)

        # Reject a malformed place reference before anything is written.
        self.place_service.dedup_key(submission.place)
        await self._require_user(author_id, "authorId", db)

        async with db.begin_nested():
            place_id = await self.place_service.resolve(submission.place, db)
            landlord_id = None
            if phone_hash is not None:
                landlord_id = await self._landlord_id(phone_hash, db)

            group = RantGroup(
                rater_user_id=author_id,
                place_id=place_id,
                landlord_id=landlord_id,
                comment=comment,
                period_start=submission.period_start,
                period_end=submission.period_end,
                is_current_residence=submission.is_current_residence,
                created_at=utcnow(),
            )
            db.add(group)
            await db.flush()

            if landlord_scores is not None:
                db.add(LandlordRating(rant_group_id=group.id, scores=landlord_scores))
            if apartment_scores is not None:
                db.add(
                    ApartmentRating(
                        rant_group_id=group.id,
                        scores=apartment_scores,
                        extras=extras,
                    )
                )
            await db.flush()

        log.info(
            "rant_group_submitted",
            rant_group_id=str(group.id),
            place_id=str(place_id),
            has_landlord=landlord_scores is not None,
            has_apartment=apartment_scores is not None,
            has_landlord_identity=landlord_id is not None,
        )
        return group.id

    @store_operation
    async def submit_roommate_rating(
        self,
        rater_id: uuid.UUID,
        submission: RoommateRatingSubmission,
        db: AsyncSession,
    ) -> uuid.UUID:
        """Persist one roommate rating and return its id."""
        scores = validate_scores(
            "roommate", submission.scores.model_dump(), ROOMMATE_FACETS
        )
        comment = self._clean_comment(submission.comment)

        ratee_user_id = None
        ratee_hint = None
        ratee = submission.ratee
        if isinstance(ratee, RateeUser):
            if ratee.user_id == rater_id:
                raise SelfRating("You cannot rate yourself", field="ratee.userId")
            ratee_user_id = ratee.user_id
        else:
            ratee_hint = {k: v.strip() for k, v in ratee.hint.items() if v and v.strip()}
            if not ratee_hint:
                raise InvalidReference(
                    "A ratee hint needs at least one non-empty value",
                    field="ratee.hint",
                )

        await self._require_user(rater_id, "raterId", db)
        if ratee_user_id is not None:
            await self._require_user(ratee_user_id, "ratee.userId", db)

        rating = RoommateRating(
            rater_user_id=rater_id,
            ratee_user_id=ratee_user_id,
            ratee_hint=ratee_hint,
            scores=scores,
            comment=comment,
            created_at=utcnow(),
        )
        db.add(rating)
        await db.flush()

        logger.info(
            "roommate_rating_submitted",
            rating_id=str(rating.id),
            rater_id=str(rater_id),
            ratee_kind=ratee.kind,
        )
        return rating.id

    # ── Internals ─────────────────────────────────────────────────────────

    def _clean_comment(self, comment: str | None) -> str | None:
        if comment is None:
            return None
        comment = comment.strip()
        if not comment:
            return None
        if len(comment) > self.comment_max_length:
            raise InvalidComment(
                f"Comment must be at most {self.comment_max_length} characters",
                field="comment",
            )
        return comment

    @staticmethod
    async def _require_user(user_id: uuid.UUID, field: str, db: AsyncSession) -> None:
        found = await db.execute(
            select(User.id).where(User.id == user_id, User.is_active.is_(True))
        )
        if found.scalar_one_or_none() is None:
            raise UserNotFound(f"User {user_id} not found", field=field)

    @staticmethod
    async def _landlord_id(phone_hash: str, db: AsyncSession) -> uuid.UUID:
        stmt = upsert(db, LandlordIdentity.__table__).values(
            id=uuid.uuid4(),
            phone_hash=phone_hash,
            created_at=utcnow(),
        ).on_conflict_do_nothing(index_elements=["phone_hash"])
        await db.execute(stmt)
        result = await db.execute(
            select(LandlordIdentity.id).where(LandlordIdentity.phone_hash == phone_hash)
        )
        return result.scalar_one()
