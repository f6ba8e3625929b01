import uuid
from datetime import datetime
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field


class QueueItemStatus(str, Enum):
    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


CLAIMABLE_STATUSES = (QueueItemStatus.PENDING, QueueItemStatus.FAILED)


class QueueItem(BaseModel):
    """
    An outbound email waiting in the delivery queue.
    """
    id: str = Field(default_factory=lambda: f"eml_{uuid.uuid4().hex[:8]}", description="Unique queue item identifier")
    user_id: Optional[str] = Field(None, description="User the email is addressed to, if known")
    recipient: str = Field(..., description="Destination email address")
    subject: str = Field(..., description="Email subject line")
    html_body: str = Field(..., description="HTML alternative of the body")
    text_body: str = Field(..., description="Plain text alternative of the body")
    status: QueueItemStatus = QueueItemStatus.PENDING
    attempts: int = Field(default=0, ge=0, description="Delivery attempts made so far")
    last_error: Optional[str] = Field(None, description="Message of the last delivery failure")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(ZoneInfo("UTC")),
        description="Enqueue timestamp with UTC timezone"
    )
    sent_at: Optional[datetime] = None

    def is_dead_letter(self, max_attempts: int) -> bool:
        return self.status == QueueItemStatus.FAILED and self.attempts >= max_attempts

    def is_terminal(self, max_attempts: int) -> bool:
        return self.status == QueueItemStatus.SENT or self.is_dead_letter(max_attempts)
