"""
BeenThere — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from beenthere.models.user import User
from beenthere.models.place import LandlordIdentity, Place
from beenthere.models.rating import (
    ApartmentRating,
    LandlordRating,
    RantGroup,
    RoommateRating,
)
from beenthere.models.listing import Listing, ListingResponse
from beenthere.models.match import Match, MatchState, Swipe, SwipeAction, TargetType
from beenthere.models.message import Message

__all__ = [
    "User",
    "Place",
    "LandlordIdentity",
    "RantGroup",
    "LandlordRating",
    "ApartmentRating",
    "RoommateRating",
    "Listing",
    "ListingResponse",
    "Swipe",
    "Match",
    "MatchState",
    "SwipeAction",
    "TargetType",
    "Message",
]
