"""
Rating submission payloads.

Score sets accept any JSON value per facet, and unknown facet keys too.
``RatingService.validate_scores`` is the single place that checks them, so a
missing, non-integer, unknown or out-of-range facet is always reported as
``invalid_score`` naming the facet.
"""

from datetime import date
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID

from pydantic import ConfigDict, Field

from beenthere.schemas.common import CamelModel, ClosedModel
from beenthere.schemas.place import PlaceRef


class ScoreSet(CamelModel):
    """Facet → raw score; extra keys are kept so they can be rejected by name."""

    model_config = ConfigDict(extra="allow")


class LandlordScores(ScoreSet):
    fairness: Any = None
    response: Any = None
    maintenance: Any = None
    privacy: Any = None


class ApartmentScores(ScoreSet):
    condition: Any = None
    noise: Any = None
    utilities: Any = None
    sunlight_mold: Any = None


class ApartmentExtras(ScoreSet):
    neighbors_noise: Any = None
    roof_common: Any = None
    elevator_solar: Any = None
    neigh_safety: Any = None
    neigh_services: Any = None
    neigh_transit: Any = None
    price_fairness: Any = None


class RoommateScores(ScoreSet):
    cleanliness: Any = None
    communication: Any = None
    reliability: Any = None
    respect: Any = None
    cost_sharing: Any = None


class RatingGroupSubmission(ClosedModel):
    place: PlaceRef
    landlord_phone: Optional[str] = None
    landlord_scores: Optional[LandlordScores] = None
    apartment_scores: Optional[ApartmentScores] = None
    extras: Optional[ApartmentExtras] = None
    comment: Optional[str] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    is_current_residence: bool = False


class RateeUser(ClosedModel):
    kind: Literal["user"] = "user"
    user_id: UUID


class RateeHint(ClosedModel):
    kind: Literal["hint"] = "hint"
    hint: dict[str, str]


Ratee = Annotated[Union[RateeUser, RateeHint], Field(discriminator="kind")]


class RoommateRatingSubmission(ClosedModel):
    ratee: Ratee
    scores: RoommateScores
    comment: Optional[str] = None


class RantGroupCreated(CamelModel):
    rant_group_id: UUID


class RoommateRatingCreated(CamelModel):
    rating_id: UUID


class LandlordSummary(CamelModel):
    count: int
    average: Optional[float] = None
    facets: dict[str, float] = {}
    place_count: int = 0
