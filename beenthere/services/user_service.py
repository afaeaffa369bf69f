"""
BeenThere — Users

Account records only; authentication happens upstream and hands the core a
user id.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.config import Settings, get_settings
from beenthere.database import store_operation, upsert, utcnow
from beenthere.exceptions import EmailTaken
from beenthere.models.user import User
from beenthere.schemas.user import UserCreate

logger = structlog.get_logger("beenthere.user_service")


class UserService:
    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.operation_timeout: float = settings.DB_OPERATION_TIMEOUT_SECONDS

    @store_operation
    async def create_user(self, payload: UserCreate, db: AsyncSession) -> User:
        """Create an account; ``EmailTaken`` if the email is already registered."""
        email = payload.email.strip().lower()
        table = User.__table__
        stmt = (
            upsert(db, table)
            .values(
                id=uuid.uuid4(),
                email=email,
                display_name=payload.display_name.strip(),
                bio=payload.bio,
                photo_url=payload.photo_url,
                has_apartment=payload.has_apartment,
                is_active=True,
                created_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["email"])
            .returning(table.c.id)
        )
        user_id = (await db.execute(stmt)).scalar_one_or_none()
        if user_id is None:
            raise EmailTaken("An account with this email already exists", field="email")

        user = (await db.execute(select(User).where(User.id == user_id))).scalar_one()
        logger.info("user_created", user_id=str(user_id))
        return user
