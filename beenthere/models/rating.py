"""
BeenThere — Rating models (rant groups, landlord / apartment / roommate ratings).

Rows in this module are append-only: nothing updates or deletes them.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from beenthere.database import Base, JSONType, utcnow


class RantGroup(Base):
    __tablename__ = "rant_groups"
    __table_args__ = (
        Index("ix_rant_groups_place_recent", "place_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    rater_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    place_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("places.id"), nullable=False
    )
    landlord_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("landlords.id"), nullable=True, index=True
    )
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_current_residence: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<RantGroup {self.id} place={self.place_id}>"


class LandlordRating(Base):
    __tablename__ = "ratings_landlord"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    rant_group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("rant_groups.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    scores: Mapped[dict] = mapped_column(
        JSONType,
        nullable=False,
        comment="fairness / response / maintenance / privacy, each 1-10",
    )


class ApartmentRating(Base):
    __tablename__ = "ratings_apartment"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    rant_group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("rant_groups.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    scores: Mapped[dict] = mapped_column(
        JSONType,
        nullable=False,
        comment="condition / noise / utilities / sunlight_mold, each 1-10",
    )
    extras: Mapped[dict | None] = mapped_column(
        JSONType, nullable=True, comment="Optional neighbourhood / building facets"
    )


class RoommateRating(Base):
    __tablename__ = "ratings_roommate"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    rater_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    ratee_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True
    )
    ratee_hint: Mapped[dict | None] = mapped_column(
        JSONType, nullable=True, comment='e.g. {"name": ..., "org": ...}'
    )
    scores: Mapped[dict] = mapped_column(JSONType, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<RoommateRating {self.rater_user_id} -> {self.ratee_user_id}>"
