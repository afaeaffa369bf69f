"""Tests for the Match Engine."""
import asyncio
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from beenthere.database import utcnow
from beenthere.exceptions import (
    InvalidAction,
    InvalidTarget,
    ListingNotFound,
    NotAMember,
    UserNotFound,
)
from beenthere.models.match import Match, MatchState, Swipe
from beenthere.models.message import Message
from beenthere.models.user import User
from beenthere.services.matching_service import (
    MatchingService,
    listing_pair_key,
    user_pair_key,
)
from beenthere.services.swipe_service import SwipeService


async def _match_count(db) -> int:
    return (await db.execute(select(func.count()).select_from(Match))).scalar_one()


class TestPairKeys:
    def test_user_pair_key_is_order_independent(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        assert user_pair_key(a, b) == user_pair_key(b, a)

    def test_listing_pair_key_is_directional(self):
        user, listing = uuid.uuid4(), uuid.uuid4()
        assert listing_pair_key(user, listing) == f"{user}:{listing}"


class TestUserMatching:
    @pytest.mark.asyncio
    async def test_single_like_does_not_match(self, matching_service, make_user, db):
        alice, bob = await make_user("Alice"), await make_user("Bob")

        result = await matching_service.swipe(alice.id, "USER", bob.id, "LIKE", db)

        assert result.match_id is None
        assert result.created is False
        assert await _match_count(db) == 0

    @pytest.mark.asyncio
    async def test_mutual_like_creates_match(self, matching_service, make_user, db):
        alice, bob = await make_user("Alice"), await make_user("Bob")

        await matching_service.swipe(alice.id, "USER", bob.id, "LIKE", db)
        result = await matching_service.swipe(bob.id, "USER", alice.id, "LIKE", db)

        assert result.match_id is not None
        assert result.created is True
        match = (await db.execute(select(Match))).scalar_one()
        assert match.id == result.match_id
        assert {match.user_a_id, match.user_b_id} == {alice.id, bob.id}
        assert match.listing_id is None

    @pytest.mark.asyncio
    async def test_order_of_likes_is_irrelevant(self, matching_service, make_user, db):
        alice, bob = await make_user("Alice"), await make_user("Bob")

        await matching_service.swipe(bob.id, "USER", alice.id, "LIKE", db)
        result = await matching_service.swipe(alice.id, "USER", bob.id, "LIKE", db)

        match = (await db.execute(select(Match))).scalar_one()
        assert result.match_id == match.id
        assert match.pair_key == user_pair_key(alice.id, bob.id)

    @pytest.mark.asyncio
    async def test_repeat_like_on_matched_pair_reports_no_new_match(
        self, matching_service, make_user, db
    ):
        alice, bob = await make_user("Alice"), await make_user("Bob")
        await matching_service.swipe(alice.id, "USER", bob.id, "LIKE", db)
        first = await matching_service.swipe(bob.id, "USER", alice.id, "LIKE", db)

        again = await matching_service.swipe(alice.id, "USER", bob.id, "LIKE", db)

        assert first.created is True
        assert again.match_id is None
        assert again.created is False
        assert await _match_count(db) == 1

    @pytest.mark.asyncio
    async def test_existing_match_is_not_duplicated(
        self, matching_service, make_user, db
    ):
        alice, bob = await make_user("Alice"), await make_user("Bob")
        user_a, user_b = sorted((alice.id, bob.id), key=str)
        existing = Match(
            target_type="USER",
            pair_key=user_pair_key(alice.id, bob.id),
            user_a_id=user_a,
            user_b_id=user_b,
        )
        db.add(existing)
        await db.flush()

        await matching_service.swipe(alice.id, "USER", bob.id, "LIKE", db)
        result = await matching_service.swipe(bob.id, "USER", alice.id, "LIKE", db)

        assert result.match_id is None
        assert result.created is False
        assert await _match_count(db) == 1

    @pytest.mark.asyncio
    async def test_like_after_pass_matches(self, matching_service, make_user, db):
        alice, bob = await make_user("Alice"), await make_user("Bob")
        await matching_service.swipe(alice.id, "USER", bob.id, "PASS", db)
        await matching_service.swipe(bob.id, "USER", alice.id, "LIKE", db)
        assert await _match_count(db) == 0

        result = await matching_service.swipe(alice.id, "USER", bob.id, "LIKE", db)
        assert result.created is True

    @pytest.mark.asyncio
    async def test_pass_never_removes_match(self, matching_service, make_user, db):
        alice, bob = await make_user("Alice"), await make_user("Bob")
        await matching_service.swipe(alice.id, "USER", bob.id, "LIKE", db)
        matched = await matching_service.swipe(bob.id, "USER", alice.id, "LIKE", db)

        result = await matching_service.swipe(alice.id, "USER", bob.id, "PASS", db)

        assert matched.created is True
        assert result.match_id is None
        match = (await db.execute(select(Match))).scalar_one()
        assert match.id == matched.match_id

    @pytest.mark.asyncio
    async def test_self_swipe_rejected(self, matching_service, make_user, db):
        alice = await make_user("Alice")
        with pytest.raises(InvalidTarget):
            await matching_service.swipe(alice.id, "USER", alice.id, "LIKE", db)

    @pytest.mark.asyncio
    async def test_unknown_user_rejected(self, matching_service, make_user, db):
        alice = await make_user("Alice")
        with pytest.raises(InvalidTarget):
            await matching_service.swipe(alice.id, "USER", uuid.uuid4(), "LIKE", db)

    @pytest.mark.asyncio
    async def test_unknown_actor_rejected_before_recording(
        self, matching_service, make_user, db
    ):
        bob = await make_user("Bob")

        with pytest.raises(UserNotFound):
            await matching_service.swipe(uuid.uuid4(), "USER", bob.id, "LIKE", db)

        swipes = (await db.execute(select(func.count()).select_from(Swipe))).scalar_one()
        assert swipes == 0

    @pytest.mark.asyncio
    async def test_inactive_actor_rejected(self, matching_service, make_user, make_listing, db):
        owner = await make_user("Owner")
        listing = await make_listing(owner, auto_accept=True)
        ghost = await make_user("Ghost", is_active=False)

        with pytest.raises(UserNotFound):
            await matching_service.swipe(ghost.id, "LISTING", listing.id, "LIKE", db)
        assert await _match_count(db) == 0

    @pytest.mark.asyncio
    async def test_unknown_action_rejected(self, matching_service, make_user, db):
        alice, bob = await make_user("Alice"), await make_user("Bob")
        with pytest.raises(InvalidAction):
            await matching_service.swipe(alice.id, "USER", bob.id, "WINK", db)


class TestSimultaneousLikes:
    @pytest.mark.asyncio
    async def test_reciprocal_likes_in_parallel_create_one_match(self, file_engine, settings):
        factory = async_sessionmaker(file_engine, expire_on_commit=False)
        service = MatchingService(SwipeService(settings), settings)

        async with factory() as session:
            alice = User(email="alice@example.com", display_name="Alice")
            bob = User(email="bob@example.com", display_name="Bob")
            session.add_all([alice, bob])
            await session.commit()

        async def like(actor, target):
            async with factory() as session:
                result = await service.swipe(actor.id, "USER", target.id, "LIKE", session)
                await session.commit()
                return result

        results = await asyncio.gather(like(alice, bob), like(bob, alice))

        async with factory() as session:
            matches = (await session.execute(select(Match))).scalars().all()
        assert len(matches) == 1
        assert [r.created for r in results].count(True) == 1
        assert matches[0].id in {r.match_id for r in results}


class TestListingMatching:
    @pytest.mark.asyncio
    async def test_auto_accept_matches_immediately(
        self, matching_service, make_user, make_listing, db
    ):
        owner, seeker = await make_user("Owner"), await make_user("Seeker")
        listing = await make_listing(owner, auto_accept=True)

        result = await matching_service.swipe(seeker.id, "LISTING", listing.id, "LIKE", db)

        assert result.created is True
        match = (await db.execute(select(Match))).scalar_one()
        assert match.user_a_id == seeker.id
        assert match.user_b_id == owner.id
        assert match.listing_id == listing.id
        assert match.pair_key == listing_pair_key(seeker.id, listing.id)

    @pytest.mark.asyncio
    async def test_auto_accept_pass_does_not_match(
        self, matching_service, make_user, make_listing, db
    ):
        owner, seeker = await make_user("Owner"), await make_user("Seeker")
        listing = await make_listing(owner, auto_accept=True)

        result = await matching_service.swipe(seeker.id, "LISTING", listing.id, "PASS", db)

        assert result.match_id is None
        assert await _match_count(db) == 0

    @pytest.mark.asyncio
    async def test_like_waits_for_owner(self, matching_service, make_user, make_listing, db):
        owner, seeker = await make_user("Owner"), await make_user("Seeker")
        listing = await make_listing(owner)

        pending = await matching_service.swipe(seeker.id, "LISTING", listing.id, "LIKE", db)
        assert pending.match_id is None

        accepted = await matching_service.respond_to_listing_like(
            owner.id, listing.id, seeker.id, "LIKE", db
        )
        assert accepted.created is True
        assert await _match_count(db) == 1

        repeated = await matching_service.respond_to_listing_like(
            owner.id, listing.id, seeker.id, "LIKE", db
        )
        assert repeated.match_id is None
        assert await _match_count(db) == 1

    @pytest.mark.asyncio
    async def test_owner_like_before_candidate_like(
        self, matching_service, make_user, make_listing, db
    ):
        owner, seeker = await make_user("Owner"), await make_user("Seeker")
        listing = await make_listing(owner)

        early = await matching_service.respond_to_listing_like(
            owner.id, listing.id, seeker.id, "LIKE", db
        )
        assert early.match_id is None

        result = await matching_service.swipe(seeker.id, "LISTING", listing.id, "LIKE", db)
        assert result.created is True

    @pytest.mark.asyncio
    async def test_owner_pass_blocks_match(self, matching_service, make_user, make_listing, db):
        owner, seeker = await make_user("Owner"), await make_user("Seeker")
        listing = await make_listing(owner)

        await matching_service.respond_to_listing_like(owner.id, listing.id, seeker.id, "PASS", db)
        result = await matching_service.swipe(seeker.id, "LISTING", listing.id, "LIKE", db)

        assert result.match_id is None
        assert await _match_count(db) == 0

    @pytest.mark.asyncio
    async def test_one_listing_match_per_candidate(
        self, matching_service, make_user, make_listing, db
    ):
        owner = await make_user("Owner")
        first, second = await make_user("First"), await make_user("Second")
        listing = await make_listing(owner, auto_accept=True)

        await matching_service.swipe(first.id, "LISTING", listing.id, "LIKE", db)
        await matching_service.swipe(second.id, "LISTING", listing.id, "LIKE", db)
        await matching_service.swipe(first.id, "LISTING", listing.id, "LIKE", db)

        assert await _match_count(db) == 2

    @pytest.mark.asyncio
    async def test_owner_cannot_swipe_own_listing(
        self, matching_service, make_user, make_listing, db
    ):
        owner = await make_user("Owner")
        listing = await make_listing(owner, auto_accept=True)
        with pytest.raises(InvalidTarget):
            await matching_service.swipe(owner.id, "LISTING", listing.id, "LIKE", db)

    @pytest.mark.asyncio
    async def test_inactive_or_unknown_listing_rejected(
        self, matching_service, make_user, make_listing, db
    ):
        owner, seeker = await make_user("Owner"), await make_user("Seeker")
        listing = await make_listing(owner, is_active=False)
        with pytest.raises(InvalidTarget):
            await matching_service.swipe(seeker.id, "LISTING", listing.id, "LIKE", db)
        with pytest.raises(InvalidTarget):
            await matching_service.swipe(seeker.id, "LISTING", uuid.uuid4(), "LIKE", db)

    @pytest.mark.asyncio
    async def test_only_owner_can_respond(self, matching_service, make_user, make_listing, db):
        owner, seeker, stranger = (
            await make_user("Owner"),
            await make_user("Seeker"),
            await make_user("Stranger"),
        )
        listing = await make_listing(owner)
        with pytest.raises(NotAMember):
            await matching_service.respond_to_listing_like(
                stranger.id, listing.id, seeker.id, "LIKE", db
            )

    @pytest.mark.asyncio
    async def test_respond_validation(self, matching_service, make_user, make_listing, db):
        owner = await make_user("Owner")
        listing = await make_listing(owner)
        with pytest.raises(ListingNotFound):
            await matching_service.respond_to_listing_like(
                owner.id, uuid.uuid4(), uuid.uuid4(), "LIKE", db
            )
        with pytest.raises(InvalidTarget):
            await matching_service.respond_to_listing_like(
                owner.id, listing.id, owner.id, "LIKE", db
            )
        with pytest.raises(UserNotFound):
            await matching_service.respond_to_listing_like(
                owner.id, listing.id, uuid.uuid4(), "LIKE", db
            )


class TestMatchState:
    @pytest.mark.asyncio
    async def test_user_states(self, matching_service, make_user, db):
        alice, bob = await make_user("Alice"), await make_user("Bob")
        assert await matching_service.match_state(alice.id, "USER", bob.id, db) is (
            MatchState.NO_INTEREST
        )

        await matching_service.swipe(bob.id, "USER", alice.id, "LIKE", db)
        assert await matching_service.match_state(alice.id, "USER", bob.id, db) is (
            MatchState.ONE_SIDED_LIKE
        )

        await matching_service.swipe(alice.id, "USER", bob.id, "LIKE", db)
        assert await matching_service.match_state(alice.id, "USER", bob.id, db) is (
            MatchState.MATCHED
        )
        assert await matching_service.match_state(bob.id, "USER", alice.id, db) is (
            MatchState.MATCHED
        )

    @pytest.mark.asyncio
    async def test_listing_states(self, matching_service, make_user, make_listing, db):
        owner, seeker = await make_user("Owner"), await make_user("Seeker")
        listing = await make_listing(owner)

        await matching_service.respond_to_listing_like(owner.id, listing.id, seeker.id, "LIKE", db)
        assert await matching_service.match_state(seeker.id, "LISTING", listing.id, db) is (
            MatchState.ONE_SIDED_LIKE
        )

        await matching_service.swipe(seeker.id, "LISTING", listing.id, "LIKE", db)
        assert await matching_service.match_state(seeker.id, "LISTING", listing.id, db) is (
            MatchState.MATCHED
        )


class TestListMatches:
    @pytest.mark.asyncio
    async def test_lists_other_member_and_last_message(
        self, matching_service, make_user, db
    ):
        alice, bob, carol = (
            await make_user("Alice"),
            await make_user("Bob"),
            await make_user("Carol", photo_url="https://img.example/carol.jpg"),
        )
        for other in (bob, carol):
            await matching_service.swipe(alice.id, "USER", other.id, "LIKE", db)
            await matching_service.swipe(other.id, "USER", alice.id, "LIKE", db)

        bob_match = (
            await db.execute(
                select(Match).where(Match.pair_key == user_pair_key(alice.id, bob.id))
            )
        ).scalar_one()
        db.add(Message(match_id=bob_match.id, sender_user_id=bob.id, body="Still free?"))
        bob_match.last_message_at = utcnow()
        await db.flush()

        items = await matching_service.list_matches(alice.id, db)

        assert len(items) == 2
        by_name = {item.other_user_name: item for item in items}
        assert by_name["Bob"].last_message == "Still free?"
        assert by_name["Bob"].other_user_id == bob.id
        assert by_name["Carol"].last_message is None
        assert by_name["Carol"].other_user_photo_url == "https://img.example/carol.jpg"

    @pytest.mark.asyncio
    async def test_no_matches(self, matching_service, make_user, db):
        alice = await make_user("Alice")
        assert await matching_service.list_matches(alice.id, db) == []

    @pytest.mark.asyncio
    async def test_listing_match_visible_to_both(
        self, matching_service, make_user, make_listing, db
    ):
        owner, seeker = await make_user("Owner"), await make_user("Seeker")
        listing = await make_listing(owner, auto_accept=True)
        await matching_service.swipe(seeker.id, "LISTING", listing.id, "LIKE", db)

        owner_items = await matching_service.list_matches(owner.id, db)
        seeker_items = await matching_service.list_matches(seeker.id, db)

        assert owner_items[0].other_user_id == seeker.id
        assert seeker_items[0].other_user_id == owner.id
        assert owner_items[0].listing_id == listing.id
        assert owner_items[0].target_type == "LISTING"
