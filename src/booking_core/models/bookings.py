from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional


class BookingStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.ACCEPTED})
TERMINAL_STATUSES = frozenset(
    {BookingStatus.REJECTED, BookingStatus.COMPLETED, BookingStatus.CANCELLED}
)


class ActorRole(str, Enum):
    PROVIDER = "provider"
    CONSUMER = "consumer"


@dataclass(frozen=True)
class CategorySnapshot:
    category_id: str
    name: str
    price: Decimal


@dataclass
class Booking:
    booking_id: str
    service_id: str
    provider_id: str
    consumer_id: str
    date: str
    start_time: datetime
    end_time: datetime
    categories: List[CategorySnapshot]
    total_price: Decimal
    status: BookingStatus = BookingStatus.PENDING

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def primary_category(self) -> Optional[CategorySnapshot]:
        return self.categories[0] if self.categories else None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


@dataclass(frozen=True)
class SlotRecord:
    """Lightweight view of a booking held in a provider's day partition."""

    booking_id: str
    provider_id: str
    date: str
    start_time: datetime
    end_time: datetime
    status: BookingStatus


@dataclass
class DaySlots:
    """Slot records and ledger versions read for a window of day keys."""

    slots: List[SlotRecord] = field(default_factory=list)
    ledger_versions: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TaggedBooking:
    booking: Booking
    is_incoming: bool


@dataclass(frozen=True)
class BookingStats:
    pending: int = 0
    upcoming: int = 0
    completed: int = 0
    history: int = 0
    total: int = 0


@dataclass(frozen=True)
class BookingView:
    bookings: List[TaggedBooking] = field(default_factory=list)
    stats: BookingStats = field(default_factory=BookingStats)
