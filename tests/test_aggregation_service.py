"""Tests for the Ratings Aggregator."""
import uuid

import pytest

from beenthere.exceptions import InvalidScore, PlaceNotFound, UserNotFound
from beenthere.schemas.place import PlaceRef
from beenthere.schemas.rating import (
    ApartmentExtras,
    ApartmentScores,
    LandlordScores,
    RateeUser,
    RatingGroupSubmission,
    RoommateRatingSubmission,
    RoommateScores,
)
from beenthere.services.aggregation_service import AggregationService

PLACE = PlaceRef(external_id="ChIJagg", formatted_address="Allenby 10, Tel Aviv")


def apartment(value):
    return ApartmentScores(condition=value, noise=value, utilities=value, sunlight_mold=value)


def landlord(fairness, response, maintenance, privacy):
    return LandlordScores(
        fairness=fairness, response=response, maintenance=maintenance, privacy=privacy
    )


def roommate(value):
    return RoommateScores(
        cleanliness=value, communication=value, reliability=value, respect=value,
        cost_sharing=value,
    )


@pytest.fixture
async def author(make_user):
    return await make_user("Author")


async def submit(rating_service, author, db, **kwargs):
    return await rating_service.submit_rating_group(
        author.id, RatingGroupSubmission(place=PLACE, **kwargs), db
    )


class TestPlaceProfile:
    @pytest.mark.asyncio
    async def test_three_apartment_groups_average(
        self, rating_service, aggregation_service, place_service, author, db
    ):
        """Groups averaging 6, 7 and 8 give an apartment average of 7.0."""
        for value in (6, 7, 8):
            await submit(rating_service, author, db, apartment_scores=apartment(value))
        place_id = await place_service.resolve(PLACE, db)

        profile = await aggregation_service.get_place_profile(place_id, db)

        assert profile.ratings.averages.apartment == 7.0
        assert profile.ratings.counts.apartment == 3
        assert profile.ratings.counts.landlord == 0
        assert profile.ratings.averages.landlord is None

    @pytest.mark.asyncio
    async def test_group_mean_then_mean_of_groups(
        self, rating_service, aggregation_service, place_service, author, db
    ):
        # Group means: (2+4+6+8)/4 = 5 and 10; headline = 7.5.
        await submit(rating_service, author, db, landlord_scores=landlord(2, 4, 6, 8))
        await submit(rating_service, author, db, landlord_scores=landlord(10, 10, 10, 10))
        place_id = await place_service.resolve(PLACE, db)

        profile = await aggregation_service.get_place_profile(place_id, db)
        assert profile.ratings.averages.landlord == 7.5
        assert profile.ratings.counts.landlord == 2

    @pytest.mark.asyncio
    async def test_empty_place(self, aggregation_service, place_service, db):
        place_id = await place_service.resolve(PlaceRef(external_id="ChIJempty"), db)

        profile = await aggregation_service.get_place_profile(place_id, db)

        assert profile.ratings.counts.landlord == 0
        assert profile.ratings.counts.apartment == 0
        assert profile.ratings.averages.landlord is None
        assert profile.ratings.averages.apartment is None
        assert profile.ratings.averages.extras == {}
        assert profile.ratings.recent == []
        assert profile.place.id == place_id

    @pytest.mark.asyncio
    async def test_unknown_place(self, aggregation_service, db):
        with pytest.raises(PlaceNotFound):
            await aggregation_service.get_place_profile(uuid.uuid4(), db)

    @pytest.mark.asyncio
    async def test_extras_are_per_facet_means(
        self, rating_service, aggregation_service, place_service, author, db
    ):
        await submit(
            rating_service, author, db,
            apartment_scores=apartment(6),
            extras=ApartmentExtras(neigh_safety=8, price_fairness=3),
        )
        await submit(
            rating_service, author, db,
            apartment_scores=apartment(8),
            extras=ApartmentExtras(neigh_safety=4),
        )
        await submit(rating_service, author, db, apartment_scores=apartment(10))
        place_id = await place_service.resolve(PLACE, db)

        extras = (await aggregation_service.get_place_profile(place_id, db)).ratings.averages.extras

        assert extras["condition"] == 8.0
        assert extras["neigh_safety"] == 6.0
        assert extras["price_fairness"] == 3.0
        assert "neigh_transit" not in extras

    @pytest.mark.asyncio
    async def test_recent_window_newest_first(
        self, rating_service, place_service, hasher, settings, author, db
    ):
        service = AggregationService(
            place_service, hasher, settings.model_copy(update={"RECENT_RATINGS_WINDOW": 2})
        )
        ids = []
        for value in (5, 6, 7):
            ids.append(
                await submit(
                    rating_service, author, db,
                    apartment_scores=apartment(value), comment=f"stay {value}",
                )
            )
        place_id = await place_service.resolve(PLACE, db)

        recent = (await service.get_place_profile(place_id, db)).ratings.recent

        assert [r.rant_group_id for r in recent] == [ids[2], ids[1]]
        assert recent[0].comment == "stay 7"
        assert recent[0].apartment_scores["condition"] == 7

    @pytest.mark.asyncio
    async def test_rejected_submission_leaves_counts_unchanged(
        self, rating_service, aggregation_service, place_service, author, db
    ):
        await submit(rating_service, author, db, apartment_scores=apartment(7))
        with pytest.raises(InvalidScore):
            await submit(
                rating_service, author, db,
                apartment_scores=ApartmentScores(
                    condition=0, noise=7, utilities=7, sunlight_mold=7
                ),
            )
        place_id = await place_service.resolve(PLACE, db)

        profile = await aggregation_service.get_place_profile(place_id, db)
        assert profile.ratings.counts.apartment == 1
        assert profile.ratings.averages.apartment == 7.0


class TestPlaceStats:
    @pytest.mark.asyncio
    async def test_batch_matches_profile(
        self, rating_service, aggregation_service, place_service, author, db
    ):
        await submit(
            rating_service, author, db,
            landlord_scores=landlord(8, 7, 6, 9),
            apartment_scores=apartment(6),
        )
        await submit(rating_service, author, db, apartment_scores=apartment(8))
        rated = await place_service.resolve(PLACE, db)
        unrated = await place_service.resolve(PlaceRef(external_id="ChIJquiet"), db)

        stats = await aggregation_service.get_place_stats([rated, unrated], db)
        profile = await aggregation_service.get_place_profile(rated, db)

        assert stats[rated].counts == profile.ratings.counts
        assert stats[rated].averages == profile.ratings.averages
        assert stats[rated].counts.landlord == 1
        assert stats[rated].averages.apartment == 7.0
        assert stats[unrated].counts.apartment == 0
        assert stats[unrated].averages.landlord is None

    @pytest.mark.asyncio
    async def test_no_ids(self, aggregation_service, db):
        assert await aggregation_service.get_place_stats([], db) == {}


class TestLandlordSummary:
    @pytest.mark.asyncio
    async def test_summary_spans_places(self, rating_service, aggregation_service, author, db):
        for place, scores in (("ChIJa", landlord(4, 4, 4, 4)), ("ChIJb", landlord(8, 8, 8, 8))):
            await rating_service.submit_rating_group(
                author.id,
                RatingGroupSubmission(
                    place=PlaceRef(external_id=place),
                    landlord_phone="052-765-4321",
                    landlord_scores=scores,
                ),
                db,
            )

        summary = await aggregation_service.get_landlord_summary("+972527654321", db)

        assert summary.count == 2
        assert summary.place_count == 2
        assert summary.average == 6.0
        assert summary.facets["fairness"] == 6.0

    @pytest.mark.asyncio
    async def test_unknown_landlord_is_empty(self, aggregation_service, db):
        summary = await aggregation_service.get_landlord_summary("0509999999", db)
        assert summary.count == 0
        assert summary.average is None
        assert summary.facets == {}


class TestUserProfile:
    @pytest.mark.asyncio
    async def test_roommate_summary(self, rating_service, aggregation_service, make_user, db):
        ratee = await make_user("Ratee")
        for value in (6, 9):
            rater = await make_user()
            await rating_service.submit_roommate_rating(
                rater.id,
                RoommateRatingSubmission(ratee=RateeUser(user_id=ratee.id), scores=roommate(value)),
                db,
            )

        profile = await aggregation_service.get_user_profile(ratee.id, db)

        assert profile.user.id == ratee.id
        assert profile.ratings_summary.count == 2
        assert profile.ratings_summary.roommate_avg == 7.5

    @pytest.mark.asyncio
    async def test_unrated_user(self, aggregation_service, make_user, db):
        user = await make_user()
        profile = await aggregation_service.get_user_profile(user.id, db)
        assert profile.ratings_summary.count == 0
        assert profile.ratings_summary.roommate_avg is None

    @pytest.mark.asyncio
    async def test_unknown_user(self, aggregation_service, db):
        with pytest.raises(UserNotFound):
            await aggregation_service.get_user_profile(uuid.uuid4(), db)
