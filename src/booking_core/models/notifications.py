from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


class NotificationType(str, Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_ACCEPTED = "booking_accepted"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_CANCELLED = "booking_cancelled"


@dataclass
class Notification:
    target_user_id: str
    type: NotificationType
    title: str
    body: str
    data: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notification_id: Optional[str] = None
