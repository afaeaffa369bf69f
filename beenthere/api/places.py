"""
BeenThere — Places API

Resolving place references and reading a place's rating profile.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.api.dependencies import (
    get_aggregation_service,
    get_current_user_id,
    get_place_service,
)
from beenthere.database import get_db
from beenthere.schemas.place import PlaceProfile, PlaceRef, PlaceResolveResponse
from beenthere.services.aggregation_service import AggregationService
from beenthere.services.place_service import PlaceService

router = APIRouter()


@router.post(
    "/resolve",
    response_model=PlaceResolveResponse,
    summary="Resolve a place reference to a stable place id",
)
async def resolve_place(
    payload: PlaceRef,
    _caller: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    place_service: PlaceService = Depends(get_place_service),
) -> PlaceResolveResponse:
    place_id = await place_service.resolve(payload, db)
    return PlaceResolveResponse(place_id=place_id)


@router.get(
    "/{place_id}/profile",
    response_model=PlaceProfile,
    summary="Rating counts, averages and recent ratings for a place",
)
async def get_place_profile(
    place_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    aggregation: AggregationService = Depends(get_aggregation_service),
) -> PlaceProfile:
    return await aggregation.get_place_profile(place_id, db)
