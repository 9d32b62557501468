from datetime import datetime

from pydantic import BaseModel

from hirelink.schemas.messages import MessageVariant


class OpenConversationRequest(BaseModel):
    counterpart_id: int


class ConversationOut(BaseModel):
    conversation_id: int
    participant_low: int
    participant_high: int
    counterpart_id: int
    created_at: datetime


class ConversationSummaryOut(BaseModel):
    conversation_id: int
    counterpart_id: int
    last_message_id: int | None = None
    last_message_variant: MessageVariant | None = None
    preview: str
    last_message_at: datetime | None = None
    unread_count: int = 0
    created_at: datetime
