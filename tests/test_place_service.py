"""Tests for the Place Resolver."""
import asyncio
import math

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from beenthere.exceptions import InvalidReference, PlaceNotFound
from beenthere.models.place import Place
from beenthere.schemas.place import PlaceRef
from beenthere.services.place_service import PlaceService


async def _place_count(db) -> int:
    return (await db.execute(select(func.count()).select_from(Place))).scalar_one()


class TestDedupKey:
    def test_external_id_key(self, place_service):
        assert place_service.dedup_key(PlaceRef(external_id="ChIJabc")) == "ext:ChIJabc"

    def test_external_id_wins_over_coordinates(self, place_service):
        ref = PlaceRef(external_id=" ChIJabc ", lat=32.1, lng=34.8)
        assert place_service.dedup_key(ref) == "ext:ChIJabc"

    def test_coordinates_rounded_to_precision(self, place_service):
        ref = PlaceRef(lat=32.0853123, lng=34.7817676)
        assert place_service.dedup_key(ref) == "geo:32.08531:34.78177"

    def test_negative_zero_folds_to_zero(self, place_service):
        a = place_service.dedup_key(PlaceRef(lat=-0.000001, lng=10.0))
        b = place_service.dedup_key(PlaceRef(lat=0.000001, lng=10.0))
        assert a == b == "geo:0.00000:10.00000"

    @pytest.mark.parametrize(
        "ref",
        [
            PlaceRef(),
            PlaceRef(external_id="   "),
            PlaceRef(lat=32.0),
            PlaceRef(lng=34.0),
            PlaceRef(lat=91.0, lng=34.0),
            PlaceRef(lat=32.0, lng=-181.0),
            PlaceRef(lat=math.nan, lng=34.0),
            PlaceRef(formatted_address="Somewhere nice"),
        ],
    )
    def test_invalid_references(self, place_service, ref):
        with pytest.raises(InvalidReference):
            place_service.dedup_key(ref)


class TestResolve:
    @pytest.mark.asyncio
    async def test_same_external_id_same_place(self, place_service, db):
        first = await place_service.resolve(PlaceRef(external_id="ChIJ1"), db)
        second = await place_service.resolve(PlaceRef(external_id="ChIJ1"), db)
        assert first == second
        assert await _place_count(db) == 1

    @pytest.mark.asyncio
    async def test_address_last_write_wins_for_external_id(self, place_service, db):
        place_id = await place_service.resolve(
            PlaceRef(external_id="ChIJ1", formatted_address="Old address"), db
        )
        await place_service.resolve(
            PlaceRef(external_id="ChIJ1", formatted_address="New address"), db
        )
        await place_service.resolve(PlaceRef(external_id="ChIJ1"), db)

        place = await place_service.get_place(place_id, db)
        assert place.formatted_address == "New address"
        assert place.updated_at is not None

    @pytest.mark.asyncio
    async def test_same_rounding_cell_same_place(self, place_service, db):
        a = await place_service.resolve(PlaceRef(lat=32.0853101, lng=34.7817601), db)
        b = await place_service.resolve(PlaceRef(lat=32.0853149, lng=34.7817649), db)
        assert a == b

    @pytest.mark.asyncio
    async def test_different_cells_different_places(self, place_service, db):
        a = await place_service.resolve(PlaceRef(lat=32.08531, lng=34.78176), db)
        b = await place_service.resolve(PlaceRef(lat=32.08541, lng=34.78176), db)
        assert a != b
        assert await _place_count(db) == 2

    @pytest.mark.asyncio
    async def test_geo_place_keeps_first_address_and_rounded_coordinates(
        self, place_service, db
    ):
        place_id = await place_service.resolve(
            PlaceRef(lat=32.0853123, lng=34.7817676, formatted_address="First"), db
        )
        await place_service.resolve(
            PlaceRef(lat=32.0853119, lng=34.7817679, formatted_address="Second"), db
        )
        place = await place_service.get_place(place_id, db)
        assert place.formatted_address == "First"
        assert place.lat == pytest.approx(32.08531)
        assert place.lng == pytest.approx(34.78177)

    @pytest.mark.asyncio
    async def test_invalid_reference_writes_nothing(self, place_service, db):
        with pytest.raises(InvalidReference):
            await place_service.resolve(PlaceRef(lat=32.0), db)
        assert await _place_count(db) == 0

    @pytest.mark.asyncio
    async def test_get_unknown_place(self, place_service, db):
        import uuid

        with pytest.raises(PlaceNotFound):
            await place_service.get_place(uuid.uuid4(), db)


class TestConcurrentResolve:
    @pytest.mark.asyncio
    async def test_concurrent_resolutions_create_one_place(self, file_engine, settings):
        factory = async_sessionmaker(file_engine, expire_on_commit=False)
        service = PlaceService(settings)

        async def resolve_once():
            async with factory() as session:
                place_id = await service.resolve(PlaceRef(external_id="ChIJrace"), session)
                await session.commit()
                return place_id

        ids = await asyncio.gather(*(resolve_once() for _ in range(5)))
        assert len(set(ids)) == 1

        async with factory() as session:
            assert await _place_count(session) == 1
