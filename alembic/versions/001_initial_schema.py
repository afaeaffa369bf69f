"""Initial schema with all 12 BeenThere core tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String, nullable=False),
        sa.Column("display_name", sa.String, nullable=False),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("photo_url", sa.String, nullable=True),
        sa.Column("has_apartment", sa.Boolean, server_default="false", nullable=False),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
        _created_at(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # ── 2. places ───────────────────────────────────────────────────
    op.create_table(
        "places",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "dedup_key",
            sa.String,
            nullable=False,
            comment="ext:<provider id> or geo:<lat>:<lng> (rounded); immutable",
        ),
        sa.Column("external_id", sa.String, nullable=True),
        sa.Column("formatted_address", sa.String, nullable=True),
        sa.Column("lat", sa.Float, nullable=True),
        sa.Column("lng", sa.Float, nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("dedup_key", name="uq_places_dedup_key"),
    )

    # ── 3. landlords ────────────────────────────────────────────────
    op.create_table(
        "landlords",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "phone_hash",
            sa.String(64),
            nullable=False,
            comment="HMAC-SHA256 of the E.164 phone; the raw number is never stored",
        ),
        _created_at(),
        sa.UniqueConstraint("phone_hash", name="uq_landlords_phone_hash"),
    )

    # ── 4. rant_groups ──────────────────────────────────────────────
    op.create_table(
        "rant_groups",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "rater_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "place_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("places.id"),
            nullable=False,
        ),
        sa.Column(
            "landlord_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("landlords.id"),
            nullable=True,
        ),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("period_start", sa.Date, nullable=True),
        sa.Column("period_end", sa.Date, nullable=True),
        sa.Column(
            "is_current_residence", sa.Boolean, server_default="false", nullable=False
        ),
        _created_at(),
    )
    op.create_index(
        "ix_rant_groups_place_recent", "rant_groups", ["place_id", "created_at"]
    )
    op.create_index("ix_rant_groups_landlord_id", "rant_groups", ["landlord_id"])

    # ── 5. ratings_landlord ─────────────────────────────────────────
    op.create_table(
        "ratings_landlord",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "rant_group_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("rant_groups.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
        ),
        sa.Column(
            "scores",
            postgresql.JSONB,
            nullable=False,
            comment="fairness / response / maintenance / privacy, each 1-10",
        ),
    )

    # ── 6. ratings_apartment ────────────────────────────────────────
    op.create_table(
        "ratings_apartment",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "rant_group_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("rant_groups.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
        ),
        sa.Column(
            "scores",
            postgresql.JSONB,
            nullable=False,
            comment="condition / noise / utilities / sunlight_mold, each 1-10",
        ),
        sa.Column(
            "extras",
            postgresql.JSONB,
            nullable=True,
            comment="Optional neighbourhood / building facets",
        ),
    )

    # ── 7. ratings_roommate ─────────────────────────────────────────
    op.create_table(
        "ratings_roommate",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "rater_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "ratee_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("ratee_hint", postgresql.JSONB, nullable=True),
        sa.Column("scores", postgresql.JSONB, nullable=False),
        sa.Column("comment", sa.Text, nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_ratings_roommate_ratee_user_id", "ratings_roommate", ["ratee_user_id"]
    )

    # ── 8. listings ─────────────────────────────────────────────────
    op.create_table(
        "listings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "owner_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "place_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("places.id"),
            nullable=False,
        ),
        sa.Column("title", sa.String, nullable=False),
        sa.Column("price", sa.Integer, nullable=False),
        sa.Column("attrs", postgresql.JSONB, nullable=True),
        sa.Column(
            "auto_accept",
            sa.Boolean,
            server_default="false",
            nullable=False,
            comment="A LIKE from any user matches immediately",
        ),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
        _created_at(),
    )
    op.create_index("ix_listings_owner_user_id", "listings", ["owner_user_id"])

    # ── 9. listing_responses ────────────────────────────────────────
    op.create_table(
        "listing_responses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "listing_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("listings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "candidate_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("action", sa.String(8), nullable=False, comment="LIKE / PASS"),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("listing_id", "candidate_id", name="uq_listing_response"),
    )

    # ── 10. swipes ──────────────────────────────────────────────────
    op.create_table(
        "swipes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "actor_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("target_type", sa.String(16), nullable=False, comment="USER / LISTING"),
        sa.Column("target_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "action", sa.String(8), nullable=False, comment="LIKE / PASS, latest wins"
        ),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "actor_id", "target_type", "target_id", name="uq_swipe_target"
        ),
    )
    op.create_index(
        "ix_swipes_reciprocal", "swipes", ["target_type", "target_id", "actor_id"]
    )

    # ── 11. matches ─────────────────────────────────────────────────
    op.create_table(
        "matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("target_type", sa.String(16), nullable=False),
        sa.Column(
            "pair_key",
            sa.String,
            nullable=False,
            comment="USER: <low>:<high> user ids; LISTING: <user>:<listing>",
        ),
        sa.Column(
            "user_a_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_b_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "listing_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("listings.id", ondelete="CASCADE"),
            nullable=True,
        ),
        _created_at(),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("target_type", "pair_key", name="uq_match_pair"),
    )
    op.create_index("ix_matches_user_a_id", "matches", ["user_a_id"])
    op.create_index("ix_matches_user_b_id", "matches", ["user_b_id"])

    # ── 12. messages ────────────────────────────────────────────────
    op.create_table(
        "messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "match_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("matches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "sender_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("body", sa.Text, nullable=False),
        _created_at(),
    )
    op.create_index(
        "ix_messages_match_created", "messages", ["match_id", "created_at", "id"]
    )


def downgrade() -> None:
    op.drop_table("messages")
    op.drop_table("matches")
    op.drop_table("swipes")
    op.drop_table("listing_responses")
    op.drop_table("listings")
    op.drop_table("ratings_roommate")
    op.drop_table("ratings_apartment")
    op.drop_table("ratings_landlord")
    op.drop_table("rant_groups")
    op.drop_table("landlords")
    op.drop_table("places")
    op.drop_table("users")
