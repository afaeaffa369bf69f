"""Seed a handful of demo users, places, rants and listings for local development."""
import asyncio

from sqlalchemy import select

from beenthere.api.dependencies import (
    get_listing_service,
    get_rating_service,
    get_user_service,
)
from beenthere.database import async_session_factory
from beenthere.models.user import User
from beenthere.schemas.listing import ListingCreate
from beenthere.schemas.place import PlaceRef
from beenthere.schemas.rating import (
    ApartmentScores,
    LandlordScores,
    RatingGroupSubmission,
)
from beenthere.schemas.user import UserCreate

DEMO_USERS = [
    {"email": "noa@demo.beenthere", "display_name": "Noa", "bio": "Night owl, tidy kitchen"},
    {"email": "amit@demo.beenthere", "display_name": "Amit", "bio": "Cyclist, early riser"},
    {"email": "yael@demo.beenthere", "display_name": "Yael", "bio": "Has a cat named Tahini"},
]

DEMO_PLACES = [
    PlaceRef(external_id="demo-dizengoff-50", formatted_address="Dizengoff 50, Tel Aviv"),
    PlaceRef(lat=31.7767, lng=35.2345, formatted_address="Jaffa Rd 1, Jerusalem"),
]


async def _get_or_create_user(session, data) -> User:
    existing = (
        await session.execute(select(User).where(User.email == data["email"]))
    ).scalar_one_or_none()
    if existing is not None:
        print(f"  User {data['email']} already exists, skipping.")
        return existing
    user = await get_user_service().create_user(UserCreate(**data), session)
    print(f"  Seeded user {user.display_name}")
    return user


async def seed():
    async with async_session_factory() as session:
        users = [await _get_or_create_user(session, data) for data in DEMO_USERS]

        ratings = get_rating_service()
        for i, place in enumerate(DEMO_PLACES):
            await ratings.submit_rating_group(
                users[i].id,
                RatingGroupSubmission(
                    place=place,
                    landlord_phone="052-555-0100",
                    landlord_scores=LandlordScores(
                        fairness=7, response=5 + i, maintenance=6, privacy=8
                    ),
                    apartment_scores=ApartmentScores(
                        condition=8, noise=4 + i, utilities=7, sunlight_mold=6
                    ),
                    comment="Seeded demo rating",
                ),
                session,
            )
            print(f"  Seeded rant at {place.formatted_address}")

        listing = await get_listing_service().create_listing(
            users[0].id,
            ListingCreate(
                place=DEMO_PLACES[0],
                title="Sunny room in a 3BR",
                price=3200,
                attrs={"rooms": 3, "balcony": True},
                auto_accept=True,
            ),
            session,
        )
        print(f"  Seeded listing {listing.title!r}")

        await session.commit()
    print("Done seeding demo data.")


if __name__ == "__main__":
    asyncio.run(seed())
