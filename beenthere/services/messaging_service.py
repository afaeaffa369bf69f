"""
BeenThere — Messaging Gateway

Messages live inside a match and are visible only to its two members.
History is served newest first in keyset pages; the cursor is opaque to
clients and carries the id of the last message returned.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.config import Settings, get_settings
from beenthere.database import store_operation, utcnow
from beenthere.exceptions import (
    EmptyBody,
    InvalidCursor,
    MatchNotFound,
    MessageTooLong,
    NotAMember,
)
from beenthere.models.match import Match
from beenthere.models.message import Message
from beenthere.utils.cursor import before_anchor, decode_cursor, encode_cursor

logger = structlog.get_logger("beenthere.messaging_service")

MAX_PAGE_SIZE = 100


class MessagingService:
    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.max_length: int = settings.MESSAGE_MAX_LENGTH
        self.page_size: int = settings.MESSAGE_PAGE_SIZE
        self.operation_timeout: float = settings.DB_OPERATION_TIMEOUT_SECONDS

    @store_operation
    async def list_messages(
        self,
        match_id: uuid.UUID,
        caller_id: uuid.UUID,
        cursor: str | None,
        limit: int | None,
        db: AsyncSession,
    ) -> tuple[list[Message], str | None]:
        """Return one page of the match's messages and the next cursor.

        ``next_cursor`` is ``None`` on the last page.  Raises
        ``MatchNotFound``, ``NotAMember`` or ``InvalidCursor``.
        """
        await self._member_match(match_id, caller_id, db)
        limit = min(max(limit or self.page_size, 1), MAX_PAGE_SIZE)

        stmt = select(Message).where(Message.match_id == match_id)
        if cursor:
            anchor_id = decode_cursor(cursor)
            anchor = (
                await db.execute(
                    select(Message.created_at, Message.id).where(
                        Message.id == anchor_id, Message.match_id == match_id
                    )
                )
            ).one_or_none()
            if anchor is None:
                raise InvalidCursor("Cursor does not belong to this match", field="cursor")
            stmt = stmt.where(
                before_anchor(Message.created_at, Message.id, anchor.created_at, anchor.id)
            )

        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit + 1)
        messages = list((await db.execute(stmt)).scalars().all())

        next_cursor = None
        if len(messages) > limit:
            messages = messages[:limit]
            next_cursor = encode_cursor(messages[-1].id)
        return messages, next_cursor

    @store_operation
    async def send_message(
        self,
        match_id: uuid.UUID,
        sender_id: uuid.UUID,
        body: str,
        db: AsyncSession,
    ) -> Message:
        if body is None or not body.strip():
            raise EmptyBody("Message body must not be empty", field="body")
        if len(body) > self.max_length:
            raise MessageTooLong(
                f"Message must be at most {self.max_length} characters",
                field="body",
            )

        await self._member_match(match_id, sender_id, db)

        now = utcnow()
        message = Message(
            match_id=match_id,
            sender_user_id=sender_id,
            body=body,
            created_at=now,
        )
        db.add(message)
        await db.execute(
            update(Match)
            .where(Match.id == match_id)
            .values(last_message_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.flush()

        logger.info(
            "message_sent",
            match_id=str(match_id),
            message_id=str(message.id),
            sender_id=str(sender_id),
            length=len(body),
        )
        return message

    @staticmethod
    async def _member_match(
        match_id: uuid.UUID, user_id: uuid.UUID, db: AsyncSession
    ) -> Match:
        match = (
            await db.execute(select(Match).where(Match.id == match_id))
        ).scalar_one_or_none()
        if match is None:
            raise MatchNotFound(f"Match {match_id} not found", field="matchId")
        if not match.has_member(user_id):
            raise NotAMember("You are not a member of this match")
        return match
