"""
BeenThere — Matches & Messaging API

Listing the caller's matches and reading / sending messages inside one.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from beenthere.api.dependencies import (
    get_current_user_id,
    get_matching_service,
    get_messaging_service,
)
from beenthere.database import get_db
from beenthere.schemas.common import Page
from beenthere.schemas.match import MatchListItem
from beenthere.schemas.message import MessageOut, SendMessageRequest, SendMessageResponse
from beenthere.services.matching_service import MatchingService
from beenthere.services.messaging_service import MessagingService

router = APIRouter()


@router.get(
    "",
    response_model=list[MatchListItem],
    summary="Caller's matches, most recently active first",
)
async def list_matches(
    caller_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    matching: MatchingService = Depends(get_matching_service),
) -> list[MatchListItem]:
    return await matching.list_matches(caller_id, db)


@router.get(
    "/{match_id}/messages",
    response_model=Page[MessageOut],
    summary="Messages in a match, newest first",
)
async def list_messages(
    match_id: uuid.UUID,
    cursor: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    caller_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    messaging: MessagingService = Depends(get_messaging_service),
) -> Page[MessageOut]:
    messages, next_cursor = await messaging.list_messages(
        match_id, caller_id, cursor, limit, db
    )
    return Page[MessageOut](
        items=[MessageOut.model_validate(m) for m in messages],
        next_cursor=next_cursor,
    )


@router.post(
    "/{match_id}/messages",
    response_model=SendMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message to the other member of a match",
)
async def send_message(
    match_id: uuid.UUID,
    payload: SendMessageRequest,
    caller_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    messaging: MessagingService = Depends(get_messaging_service),
) -> SendMessageResponse:
    message = await messaging.send_message(match_id, caller_id, payload.body, db)
    return SendMessageResponse(id=message.id)
