from datetime import datetime
from typing import Literal

from pydantic import BaseModel

NotificationType = Literal["message", "job_application", "hire", "manpower_request", "system"]
ReferenceType = Literal["conversation", "message", "hire"]


class NotificationOut(BaseModel):
    notification_id: int
    user_id: int
    notifier_id: int | None = None
    type: NotificationType
    title: str
    message: str
    reference_id: int | None = None
    reference_type: ReferenceType | None = None
    is_read: bool = False
    created_at: datetime
