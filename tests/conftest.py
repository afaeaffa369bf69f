"""Shared pytest fixtures for BeenThere core tests."""
import os

# Settings are read at import time by beenthere.database.
os.environ.setdefault("PHONE_HASH_SECRET", "test-phone-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import uuid

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import beenthere.models  # noqa: F401  (registers every table on Base.metadata)
from beenthere.config import get_settings
from beenthere.database import Base, enable_sqlite_transactions
from beenthere.models.listing import Listing
from beenthere.models.place import Place
from beenthere.models.user import User
from beenthere.services.aggregation_service import AggregationService
from beenthere.services.feed_service import FeedService
from beenthere.services.listing_service import ListingService
from beenthere.services.matching_service import MatchingService
from beenthere.services.messaging_service import MessagingService
from beenthere.services.place_service import PlaceService
from beenthere.services.rating_service import RatingService
from beenthere.services.swipe_service import SwipeService
from beenthere.services.user_service import UserService
from beenthere.utils.phone import PhoneHasher

TEST_SECRET = "test-phone-secret"


async def _build_engine(url: str, **kwargs):
    engine = create_async_engine(url, **kwargs)
    enable_sqlite_transactions(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


# ── Database ──────────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = await _build_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """File-backed database so several sessions can hold their own connections."""
    engine = await _build_engine(f"sqlite+aiosqlite:///{tmp_path / 'beenthere.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ── Settings & services ───────────────────────────────────────────────────────


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def hasher():
    return PhoneHasher(TEST_SECRET)


@pytest.fixture
def place_service(settings):
    return PlaceService(settings)


@pytest.fixture
def rating_service(place_service, hasher, settings):
    return RatingService(place_service, hasher, settings)


@pytest.fixture
def aggregation_service(place_service, hasher, settings):
    return AggregationService(place_service, hasher, settings)


@pytest.fixture
def swipe_service(settings):
    return SwipeService(settings)


@pytest.fixture
def matching_service(swipe_service, settings):
    return MatchingService(swipe_service, settings)


@pytest.fixture
def messaging_service(settings):
    return MessagingService(settings)


@pytest.fixture
def listing_service(place_service, settings):
    return ListingService(place_service, settings)


@pytest.fixture
def feed_service(settings):
    return FeedService(settings)


@pytest.fixture
def user_service(settings):
    return UserService(settings)


# ── Factories ─────────────────────────────────────────────────────────────────


@pytest.fixture
def make_user(db):
    async def _make(display_name: str = "Noa", **kwargs) -> User:
        user = User(
            email=f"{uuid.uuid4().hex[:12]}@example.com",
            display_name=display_name,
            **kwargs,
        )
        db.add(user)
        await db.flush()
        return user

    return _make


@pytest.fixture
def make_listing(db):
    async def _make(owner: User, auto_accept: bool = False, **kwargs) -> Listing:
        place = Place(
            dedup_key=f"ext:test-{uuid.uuid4().hex}",
            formatted_address="Dizengoff 50, Tel Aviv",
        )
        db.add(place)
        await db.flush()
        listing = Listing(
            owner_user_id=owner.id,
            place_id=place.id,
            title=kwargs.pop("title", "Sunny room in a 3BR"),
            price=kwargs.pop("price", 3200),
            auto_accept=auto_accept,
            **kwargs,
        )
        db.add(listing)
        await db.flush()
        return listing

    return _make
