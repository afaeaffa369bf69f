from datetime import datetime
from uuid import UUID

from beenthere.schemas.common import CamelModel, ClosedModel


class MessageOut(CamelModel):
    id: UUID
    sender_user_id: UUID
    body: str
    created_at: datetime


class SendMessageRequest(ClosedModel):
    body: str


class SendMessageResponse(CamelModel):
    id: UUID
