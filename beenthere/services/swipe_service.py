"""
BeenThere — Swipe Ledger

One row per ``(actor, target_type, target_id)``.  Re-swiping overwrites the
action and ``updated_at`` through an upsert on that unique key; the ledger
never holds two rows for the same directional pair.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.config import Settings, get_settings
from beenthere.database import store_operation, upsert, utcnow
from beenthere.exceptions import InvalidAction, InvalidTarget
from beenthere.models.match import Swipe, SwipeAction, TargetType
from beenthere.schemas.match import SwipeStats

logger = structlog.get_logger("beenthere.swipe_service")


def parse_target_type(value: Any) -> TargetType:
    if isinstance(value, TargetType):
        return value
    try:
        return TargetType(str(value).strip().upper())
    except ValueError:
        raise InvalidTarget(
            f"Unknown target type {value!r}; expected USER or LISTING",
            field="targetType",
        ) from None


def parse_action(value: Any) -> SwipeAction:
    if isinstance(value, SwipeAction):
        return value
    try:
        return SwipeAction(str(value).strip().upper())
    except ValueError:
        raise InvalidAction(
            f"Unknown action {value!r}; expected LIKE or PASS",
            field="action",
        ) from None


class SwipeService:
    """Idempotent record of directional LIKE / PASS actions."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.operation_timeout: float = settings.DB_OPERATION_TIMEOUT_SECONDS

    @store_operation
    async def record_swipe(
        self,
        actor_id: uuid.UUID,
        target_type: TargetType | str,
        target_id: uuid.UUID,
        action: SwipeAction | str,
        db: AsyncSession,
    ) -> Swipe:
        """Upsert the actor's swipe on the target; the latest action wins.

        Raises ``InvalidTarget`` for an unknown target type and
        ``InvalidAction`` for an unknown action, before anything is written.
        """
        target_type = parse_target_type(target_type)
        action = parse_action(action)
        now = utcnow()

        stmt = upsert(db, Swipe.__table__).values(
            id=uuid.uuid4(),
            actor_id=actor_id,
            target_type=target_type.value,
            target_id=target_id,
            action=action.value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["actor_id", "target_type", "target_id"],
            set_={
                "action": stmt.excluded.action,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await db.execute(stmt)

        swipe = (
            await db.execute(
                select(Swipe)
                .where(
                    Swipe.actor_id == actor_id,
                    Swipe.target_type == target_type.value,
                    Swipe.target_id == target_id,
                )
                .execution_options(populate_existing=True)
            )
        ).scalar_one()

        logger.info(
            "swipe_recorded",
            actor_id=str(actor_id),
            target_type=target_type.value,
            target_id=str(target_id),
            action=action.value,
        )
        return swipe

    @store_operation
    async def get_swipe_stats(self, actor_id: uuid.UUID, db: AsyncSession) -> SwipeStats:
        stmt = (
            select(Swipe.action, func.count())
            .where(Swipe.actor_id == actor_id)
            .group_by(Swipe.action)
        )
        by_action = {action: count for action, count in (await db.execute(stmt)).all()}
        likes = by_action.get(SwipeAction.LIKE.value, 0)
        passes = by_action.get(SwipeAction.PASS.value, 0)
        return SwipeStats(total=likes + passes, likes=likes, passes=passes)
