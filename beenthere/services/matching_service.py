"""
BeenThere — Match Engine

Turns swipes into matches:

  * ``USER`` target: a match exists once both users have LIKEd each other,
    in either order.
  * ``LISTING`` target: a match exists once the user LIKEs the listing and
    the listing accepts them: either the listing is ``auto_accept`` or the
    owner has responded LIKE to that candidate.

Match identity is the pair key (``<low>:<high>`` user ids for USER,
``<user>:<listing>`` for LISTING) under a unique ``(target_type, pair_key)``
constraint.  Creation is ``INSERT … ON CONFLICT DO NOTHING`` and a conflict
counts as success, so repeated or racing LIKEs converge on one match.  On
PostgreSQL the swipe-and-check sequence for a single pair also runs under a
transaction-scoped advisory lock keyed on that pair, so two simultaneous
reciprocal LIKEs cannot both miss each other.

Matches are append-only: PASS never removes one.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.config import Settings, get_settings
from beenthere.database import lock_key, store_operation, upsert, utcnow
from beenthere.exceptions import (
    InvalidTarget,
    ListingNotFound,
    NotAMember,
    UserNotFound,
)
from beenthere.models.listing import Listing, ListingResponse
from beenthere.models.match import Match, MatchState, Swipe, SwipeAction, TargetType
from beenthere.models.message import Message
from beenthere.models.user import User
from beenthere.schemas.match import MatchListItem
from beenthere.services.swipe_service import SwipeService, parse_action, parse_target_type

logger = structlog.get_logger("beenthere.matching_service")


@dataclass(frozen=True)
class SwipeResult:
    """Outcome of a swipe: the id of the match this swipe created, if any."""

    match_id: uuid.UUID | None = None

    @property
    def created(self) -> bool:
        return self.match_id is not None


def user_pair_key(user_a: uuid.UUID, user_b: uuid.UUID) -> str:
    low, high = sorted((str(user_a), str(user_b)))
    return f"{low}:{high}"


def listing_pair_key(user_id: uuid.UUID, listing_id: uuid.UUID) -> str:
    return f"{user_id}:{listing_id}"


def _lock_name(target_type: TargetType, pair_key: str) -> str:
    return f"match:{target_type.value}:{pair_key}"


class MatchingService:
    """Mutual-like and listing-acceptance matching.

    The swipe ledger is injected so that the engine records swipes through
    the same upsert path as every other caller.
    """

    def __init__(
        self,
        swipe_service: SwipeService,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.swipe_service = swipe_service
        self.operation_timeout: float = settings.DB_OPERATION_TIMEOUT_SECONDS

    # ── Public API ────────────────────────────────────────────────────────

    @store_operation
    async def swipe(
        self,
        actor_id: uuid.UUID,
        target_type: TargetType | str,
        target_id: uuid.UUID,
        action: SwipeAction | str,
        db: AsyncSession,
    ) -> SwipeResult:
        """Record a swipe and create the match it completes, if any.

        Parameters
        ----------
        actor_id:
            The swiping user.
        target_type:
            ``USER`` or ``LISTING``.
        target_id:
            The swiped user or listing.
        action:
            ``LIKE`` or ``PASS``.

        Returns
        -------
        SwipeResult
            ``match_id`` is set only when this swipe created the match.  A
            repeat LIKE on a matched pair, a PASS, or a LIKE that lost the
            insert race returns ``None``.

        Raises
        ------
        UserNotFound
            The swiping user does not exist or is inactive.
        InvalidTarget
            Unknown target type, a self-swipe, an unknown user, an unknown
            or inactive listing, or the owner swiping their own listing.
        InvalidAction
            Unknown action.
        """
        target_type = parse_target_type(target_type)
        action = parse_action(action)

        log = logger.bind(
            actor_id=str(actor_id),
            target_type=target_type.value,
            target_id=str(target_id),
            action=action.value,
        )

        if not await self._active_user_exists(actor_id, db):
            raise UserNotFound(f"User {actor_id} not found")

        if target_type is TargetType.USER:
            if target_id == actor_id:
                raise InvalidTarget("You cannot swipe on yourself", field="targetId")
            if not await self._active_user_exists(target_id, db):
                raise InvalidTarget(f"User {target_id} does not exist", field="targetId")

            pair_key = user_pair_key(actor_id, target_id)
            await lock_key(db, _lock_name(target_type, pair_key))
            await self.swipe_service.record_swipe(
                actor_id, target_type, target_id, action, db
            )

            if action is SwipeAction.LIKE and await self._has_like(
                target_id, TargetType.USER, actor_id, db
            ):
                user_a, user_b = sorted((actor_id, target_id), key=str)
                result = await self._get_or_create_match(
                    target_type, pair_key, user_a, user_b, None, db
                )
            else:
                result = SwipeResult()

        else:
            listing = await self._get_listing(target_id, db)
            if listing is None or not listing.is_active:
                raise InvalidTarget(
                    f"Listing {target_id} does not exist or is inactive",
                    field="targetId",
                )
            if listing.owner_user_id == actor_id:
                raise InvalidTarget("You cannot swipe on your own listing", field="targetId")

            pair_key = listing_pair_key(actor_id, listing.id)
            await lock_key(db, _lock_name(target_type, pair_key))
            await self.swipe_service.record_swipe(
                actor_id, target_type, target_id, action, db
            )

            accepted = listing.auto_accept or await self._owner_liked(
                listing.id, actor_id, db
            )
            if action is SwipeAction.LIKE and accepted:
                result = await self._get_or_create_match(
                    target_type, pair_key, actor_id, listing.owner_user_id, listing.id, db
                )
            else:
                result = SwipeResult()

        log.info(
            "swipe_processed",
            match_id=str(result.match_id) if result.match_id else None,
            match_created=result.created,
        )
        return result

    @store_operation
    async def respond_to_listing_like(
        self,
        owner_id: uuid.UUID,
        listing_id: uuid.UUID,
        candidate_id: uuid.UUID,
        action: SwipeAction | str,
        db: AsyncSession,
    ) -> SwipeResult:
        """Record the listing owner's LIKE / PASS on a candidate.

        A LIKE on a candidate who already LIKEd the listing completes the
        match.  Only the owner may respond (``NotAMember`` otherwise).
        """
        action = parse_action(action)
        listing = await self._get_listing(listing_id, db)
        if listing is None:
            raise ListingNotFound(f"Listing {listing_id} not found", field="listingId")
        if listing.owner_user_id != owner_id:
            raise NotAMember("Only the listing owner can respond to likes")
        if candidate_id == owner_id:
            raise InvalidTarget("You cannot respond to yourself", field="candidateId")
        if not await self._active_user_exists(candidate_id, db):
            raise UserNotFound(f"User {candidate_id} not found", field="candidateId")

        pair_key = listing_pair_key(candidate_id, listing.id)
        await lock_key(db, _lock_name(TargetType.LISTING, pair_key))

        now = utcnow()
        stmt = upsert(db, ListingResponse.__table__).values(
            id=uuid.uuid4(),
            listing_id=listing.id,
            candidate_id=candidate_id,
            action=action.value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["listing_id", "candidate_id"],
            set_={
                "action": stmt.excluded.action,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await db.execute(stmt)

        if action is SwipeAction.LIKE and await self._has_like(
            candidate_id, TargetType.LISTING, listing.id, db
        ):
            result = await self._get_or_create_match(
                TargetType.LISTING, pair_key, candidate_id, owner_id, listing.id, db
            )
        else:
            result = SwipeResult()

        logger.info(
            "listing_response_recorded",
            listing_id=str(listing.id),
            candidate_id=str(candidate_id),
            action=action.value,
            match_created=result.created,
        )
        return result

    @store_operation
    async def match_state(
        self,
        user_id: uuid.UUID,
        target_type: TargetType | str,
        target_id: uuid.UUID,
        db: AsyncSession,
    ) -> MatchState:
        """Where the pair stands: no interest, a one-sided like, or matched."""
        target_type = parse_target_type(target_type)
        if target_type is TargetType.USER:
            pair_key = user_pair_key(user_id, target_id)
        else:
            pair_key = listing_pair_key(user_id, target_id)

        if await self._match_id(target_type, pair_key, db) is not None:
            return MatchState.MATCHED

        if await self._has_like(user_id, target_type, target_id, db):
            return MatchState.ONE_SIDED_LIKE
        if target_type is TargetType.USER:
            if await self._has_like(target_id, TargetType.USER, user_id, db):
                return MatchState.ONE_SIDED_LIKE
        elif await self._owner_liked(target_id, user_id, db):
            return MatchState.ONE_SIDED_LIKE
        return MatchState.NO_INTEREST

    @store_operation
    async def list_matches(
        self, user_id: uuid.UUID, db: AsyncSession
    ) -> list[MatchListItem]:
        """The user's matches, most recently active first."""
        last_body = (
            select(Message.body)
            .where(Message.match_id == Match.id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(1)
            .correlate(Match)
            .scalar_subquery()
        )
        stmt = (
            select(Match, last_body.label("last_message"))
            .where(or_(Match.user_a_id == user_id, Match.user_b_id == user_id))
            .order_by(
                func.coalesce(Match.last_message_at, Match.created_at).desc(),
                Match.id.desc(),
            )
        )
        rows = (await db.execute(stmt)).all()
        if not rows:
            return []

        other_ids = {match.other_member(user_id) for match, _ in rows}
        users = {
            u.id: u
            for u in (
                await db.execute(select(User).where(User.id.in_(other_ids)))
            ).scalars()
        }

        items: list[MatchListItem] = []
        for match, last_message in rows:
            other = users.get(match.other_member(user_id))
            if other is None:
                continue
            items.append(
                MatchListItem(
                    id=match.id,
                    target_type=match.target_type,
                    other_user_id=other.id,
                    other_user_name=other.display_name,
                    other_user_photo_url=other.photo_url,
                    listing_id=match.listing_id,
                    created_at=match.created_at,
                    last_message_at=match.last_message_at,
                    last_message=last_message,
                )
            )
        return items

    # ── Internals ─────────────────────────────────────────────────────────

    @staticmethod
    async def _active_user_exists(user_id: uuid.UUID, db: AsyncSession) -> bool:
        result = await db.execute(
            select(User.id).where(User.id == user_id, User.is_active.is_(True))
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def _get_listing(listing_id: uuid.UUID, db: AsyncSession) -> Listing | None:
        result = await db.execute(
            select(Listing)
            .where(Listing.id == listing_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _has_like(
        actor_id: uuid.UUID,
        target_type: TargetType,
        target_id: uuid.UUID,
        db: AsyncSession,
    ) -> bool:
        result = await db.execute(
            select(Swipe.id).where(
                Swipe.actor_id == actor_id,
                Swipe.target_type == target_type.value,
                Swipe.target_id == target_id,
                Swipe.action == SwipeAction.LIKE.value,
            )
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def _owner_liked(
        listing_id: uuid.UUID, candidate_id: uuid.UUID, db: AsyncSession
    ) -> bool:
        result = await db.execute(
            select(ListingResponse.id).where(
                ListingResponse.listing_id == listing_id,
                ListingResponse.candidate_id == candidate_id,
                ListingResponse.action == SwipeAction.LIKE.value,
            )
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def _match_id(
        target_type: TargetType, pair_key: str, db: AsyncSession
    ) -> uuid.UUID | None:
        result = await db.execute(
            select(Match.id).where(
                Match.target_type == target_type.value,
                Match.pair_key == pair_key,
            )
        )
        return result.scalar_one_or_none()

    async def _get_or_create_match(
        self,
        target_type: TargetType,
        pair_key: str,
        user_a_id: uuid.UUID,
        user_b_id: uuid.UUID,
        listing_id: uuid.UUID | None,
        db: AsyncSession,
    ) -> SwipeResult:
        table = Match.__table__
        stmt = (
            upsert(db, table)
            .values(
                id=uuid.uuid4(),
                target_type=target_type.value,
                pair_key=pair_key,
                user_a_id=user_a_id,
                user_b_id=user_b_id,
                listing_id=listing_id,
                created_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["target_type", "pair_key"])
            .returning(table.c.id)
        )
        created_id = (await db.execute(stmt)).scalar_one_or_none()
        if created_id is not None:
            logger.info(
                "match_created",
                match_id=str(created_id),
                target_type=target_type.value,
                listing_id=str(listing_id) if listing_id else None,
            )
            return SwipeResult(match_id=created_id)

        # Lost the insert race or the pair was already matched.
        return SwipeResult()
