"""
BeenThere — Swipe and Match models.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from beenthere.database import Base, utcnow


class TargetType(str, enum.Enum):
    USER = "USER"
    LISTING = "LISTING"


class SwipeAction(str, enum.Enum):
    LIKE = "LIKE"
    PASS = "PASS"


class MatchState(str, enum.Enum):
    NO_INTEREST = "NO_INTEREST"
    ONE_SIDED_LIKE = "ONE_SIDED_LIKE"
    MATCHED = "MATCHED"


class Swipe(Base):
    __tablename__ = "swipes"
    __table_args__ = (
        UniqueConstraint("actor_id", "target_type", "target_id", name="uq_swipe_target"),
        Index("ix_swipes_reciprocal", "target_type", "target_id", "actor_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    actor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    target_type: Mapped[str] = mapped_column(
        String(16), nullable=False, comment="USER / LISTING"
    )
    target_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    action: Mapped[str] = mapped_column(
        String(8), nullable=False, comment="LIKE / PASS, latest wins"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<Swipe {self.actor_id} -> {self.target_type}:{self.target_id} "
            f"action={self.action!r}>"
        )


class Match(Base):
    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("target_type", "pair_key", name="uq_match_pair"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    target_type: Mapped[str] = mapped_column(String(16), nullable=False)
    pair_key: Mapped[str] = mapped_column(
        String,
        nullable=False,
        comment="USER: <low>:<high> user ids; LISTING: <user>:<listing>",
    )
    user_a_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_b_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    listing_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("listings.id", ondelete="CASCADE"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    last_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def has_member(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.user_a_id, self.user_b_id)

    def other_member(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.user_b_id if self.user_a_id == user_id else self.user_a_id

    def __repr__(self) -> str:
        return f"<Match {self.target_type} {self.user_a_id} <-> {self.user_b_id}>"
