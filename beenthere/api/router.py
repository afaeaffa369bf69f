"""
BeenThere — Main API Router

Aggregates all sub-routers under a single prefix so that ``beenthere.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from beenthere.api import listings, matches, places, rants, roommates, swipes, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(places.router, prefix="/places", tags=["Places"])
router.include_router(rants.router, prefix="/rants", tags=["Rants"])
router.include_router(swipes.router, prefix="/swipes", tags=["Swipes"])
router.include_router(roommates.router, prefix="/roommates", tags=["Roommates"])
router.include_router(listings.router, prefix="/listings", tags=["Listings"])
router.include_router(matches.router, prefix="/matches", tags=["Matches"])
