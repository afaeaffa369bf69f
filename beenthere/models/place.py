"""
BeenThere — Place and LandlordIdentity models.

Both tables are keyed by a deterministic identity string with a unique
constraint, which is what makes get-or-create a single atomic upsert.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from beenthere.database import Base, utcnow


class Place(Base):
    __tablename__ = "places"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    dedup_key: Mapped[str] = mapped_column(
        String,
        unique=True,
        nullable=False,
        comment="ext:<provider id> or geo:<lat>:<lng> (rounded); immutable",
    )
    external_id: Mapped[str | None] = mapped_column(String, nullable=True)
    formatted_address: Mapped[str | None] = mapped_column(String, nullable=True)
    lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Place {self.dedup_key!r} id={self.id}>"


class LandlordIdentity(Base):
    __tablename__ = "landlords"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    phone_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        comment="HMAC-SHA256 of the E.164 phone; the raw number is never stored",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<LandlordIdentity {self.phone_hash[:12]}… id={self.id}>"
